"""
刊登API序列化器。
负责请求数据的反序列化和格式验证；业务规则由领域层校验。
请求字段使用驼峰命名，与响应格式保持一致。
"""
import re

from django.core.validators import MinValueValidator
from rest_framework import serializers

from listings.domain import config

HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
DANGEROUS_PATTERN = re.compile(
    r"(javascript:|on\w+\s*=|<script|<iframe|<object|<embed|<applet|<meta|<link|<style)",
    re.IGNORECASE,
)


def contains_html(value):
    """判断文本是否包含HTML标签或脚本片段"""
    if not value:
        return False
    return bool(HTML_TAG_PATTERN.search(value) or DANGEROUS_PATTERN.search(value))


def _money_field(**kwargs):
    return serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        **kwargs
    )


class ListingCreateSerializer(serializers.Serializer):
    """创建刊登请求序列化器，所有刊登类型共用的字段"""
    itemId = serializers.UUIDField()
    categoryId = serializers.UUIDField()
    title = serializers.CharField(max_length=config.MAX_TITLE_LENGTH)
    description = serializers.CharField(max_length=config.MAX_DESCRIPTION_LENGTH)
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    currency = serializers.CharField(min_length=3, max_length=3, default=config.DEFAULT_CURRENCY)

    def validate_title(self, value):
        """标题不允许包含HTML标记"""
        if contains_html(value):
            raise serializers.ValidationError("标题不能包含HTML标记")
        return value

    def validate_description(self, value):
        if DANGEROUS_PATTERN.search(value):
            raise serializers.ValidationError("描述包含不允许的脚本内容")
        return value

    def validate_currency(self, value):
        return value.upper()


class FreeToAuctionCreateSerializer(ListingCreateSerializer):
    """免费转拍卖刊登，duration为首次出价后的拍卖时长"""
    duration = serializers.DurationField(required=False, allow_null=True)


class ForwardAuctionCreateSerializer(ListingCreateSerializer):
    """正向拍卖刊登"""
    startingPrice = _money_field()
    reservePrice = _money_field(required=False, allow_null=True)
    buyNowPrice = _money_field(required=False, allow_null=True)
    duration = serializers.DurationField(required=False, allow_null=True)
    allowAutoBidding = serializers.BooleanField(default=True)


class ReverseAuctionCreateSerializer(ListingCreateSerializer):
    """反向拍卖刊登"""
    maxPrice = _money_field()
    duration = serializers.DurationField(required=False, allow_null=True)


class FixedPriceCreateSerializer(ListingCreateSerializer):
    """一口价刊登"""
    price = _money_field()


class ListingUpdateSerializer(serializers.Serializer):
    """更新刊登请求序列化器，所有字段可选"""
    title = serializers.CharField(max_length=config.MAX_TITLE_LENGTH, required=False, allow_blank=True)
    description = serializers.CharField(
        max_length=config.MAX_DESCRIPTION_LENGTH, required=False, allow_blank=True
    )
    categoryId = serializers.UUIDField(required=False, allow_null=True)
    latitude = serializers.FloatField(min_value=-90, max_value=90, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180, max_value=180, required=False, allow_null=True)

    def validate_title(self, value):
        if contains_html(value):
            raise serializers.ValidationError("标题不能包含HTML标记")
        return value

    def validate_description(self, value):
        if DANGEROUS_PATTERN.search(value):
            raise serializers.ValidationError("描述包含不允许的脚本内容")
        return value

    def validate(self, attrs):
        """位置必须同时提供经度和纬度"""
        has_lat = attrs.get('latitude') is not None
        has_lon = attrs.get('longitude') is not None
        if has_lat != has_lon:
            raise serializers.ValidationError("纬度和经度必须同时提供")
        return attrs


class ConvertToAuctionSerializer(serializers.Serializer):
    """转为正向拍卖请求序列化器"""
    firstBidAmount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    expectedVersion = serializers.IntegerField(min_value=0, required=False, allow_null=True)

    def validate_currency(self, value):
        return value.upper()


class CategoryCreateSerializer(serializers.Serializer):
    """创建分类请求序列化器"""
    name = serializers.CharField(max_length=config.MAX_CATEGORY_NAME_LENGTH)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    parentId = serializers.UUIDField(required=False, allow_null=True)


class CategoryMoveSerializer(serializers.Serializer):
    """移动分类请求序列化器，parentId为空表示移动为根分类"""
    parentId = serializers.UUIDField(required=False, allow_null=True)
