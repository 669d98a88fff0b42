"""
刊登基础设施层数据库模型。
定义与刊登领域相关的Django ORM模型。
"""
import uuid

from django.db import models


class Category(models.Model):
    """刊登分类数据库模型"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, verbose_name="分类名称")
    description = models.TextField(blank=True, default="", verbose_name="分类描述")
    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='children',
        verbose_name="父分类"
    )
    is_active = models.BooleanField(default=True, verbose_name="是否启用")
    created_at = models.DateTimeField(verbose_name="创建时间")
    updated_at = models.DateTimeField(verbose_name="更新时间")

    class Meta:
        db_table = 'listing_category'
        verbose_name = "刊登分类"
        verbose_name_plural = "刊登分类"
        indexes = [
            models.Index(fields=['name'], name='idx_category_name'),
            models.Index(fields=['parent'], name='idx_category_parent'),
        ]

    def __str__(self):
        return self.name


class Listing(models.Model):
    """刊登数据库模型"""

    class TypeChoices(models.TextChoices):
        FREE = 'Free', '免费赠送'
        FREE_TO_AUCTION = 'FreeToAuction', '免费转拍卖'
        FORWARD_AUCTION = 'ForwardAuction', '正向拍卖'
        REVERSE_AUCTION = 'ReverseAuction', '反向拍卖'
        FIXED_PRICE = 'FixedPrice', '一口价'

    class StatusChoices(models.TextChoices):
        ACTIVE = 'Active', '有效'
        COMPLETED = 'Completed', '已成交'
        EXPIRED = 'Expired', '已过期'
        CANCELLED = 'Cancelled', '已取消'
        SUSPENDED = 'Suspended', '已暂停'
        DRAFT = 'Draft', '草稿'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item_id = models.UUIDField(verbose_name="物品ID")
    # 未删除时等于item_id，软删除后置空；唯一索引允许多个NULL，
    # 从而保证每个物品最多一条未删除的刊登（MySQL不支持带条件的唯一约束）
    active_item_id = models.UUIDField(null=True, blank=True, unique=True, verbose_name="有效物品ID")
    seller_id = models.UUIDField(verbose_name="卖家ID")
    category_id = models.UUIDField(verbose_name="分类ID")
    title = models.CharField(max_length=200, verbose_name="标题")
    description = models.TextField(verbose_name="描述")

    # 地理位置（WGS84，度）
    latitude = models.FloatField(verbose_name="纬度")
    longitude = models.FloatField(verbose_name="经度")

    listing_type = models.CharField(max_length=20, choices=TypeChoices.choices, verbose_name="刊登类型")
    status = models.CharField(
        max_length=20,
        choices=StatusChoices.choices,
        default=StatusChoices.ACTIVE,
        verbose_name="刊登状态"
    )

    # 当前价格
    price_amount = models.DecimalField(max_digits=12, decimal_places=2, verbose_name="价格金额")
    price_currency = models.CharField(max_length=3, default="USD", verbose_name="价格货币")

    # 拍卖设置，非拍卖类型为空
    auction_duration = models.DurationField(null=True, blank=True, verbose_name="拍卖时长")
    auction_currency = models.CharField(max_length=3, null=True, blank=True, verbose_name="拍卖货币")
    auction_starting_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="起拍价"
    )
    auction_reserve_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="保留价"
    )
    auction_max_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="最高价"
    )
    auction_buy_now_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="一口价"
    )
    auction_min_increment = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="最小加价幅度"
    )
    auction_allow_auto_bidding = models.BooleanField(default=False, verbose_name="允许自动出价")

    created_at = models.DateTimeField(verbose_name="创建时间")
    updated_at = models.DateTimeField(verbose_name="更新时间")
    expires_at = models.DateTimeField(null=True, blank=True, verbose_name="过期时间")
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name="成交时间")
    deleted_at = models.DateTimeField(null=True, blank=True, verbose_name="删除时间")
    view_count = models.PositiveIntegerField(default=0, verbose_name="浏览次数")

    # 版本号，用于乐观锁
    version = models.PositiveIntegerField(default=0, verbose_name="版本号")

    class Meta:
        db_table = 'listing'
        verbose_name = "刊登"
        verbose_name_plural = "刊登"
        indexes = [
            models.Index(fields=['latitude', 'longitude'], name='idx_listing_location'),
            models.Index(fields=['status', 'created_at'], name='idx_listing_status_created'),
            models.Index(fields=['status', 'price_amount'], name='idx_listing_status_price'),
            models.Index(fields=['status', 'category_id'], name='idx_listing_status_category'),
            models.Index(fields=['status', 'expires_at'], name='idx_listing_status_expires'),
            models.Index(fields=['seller_id', 'status'], name='idx_listing_seller_status'),
            models.Index(fields=['item_id'], name='idx_listing_item'),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(active_item_id__isnull=True) | models.Q(active_item_id=models.F('item_id')),
                name='listing_active_item_matches',
            ),
            models.CheckConstraint(condition=models.Q(price_amount__gte=0), name='listing_price_gte_0'),
            models.CheckConstraint(
                condition=models.Q(latitude__gte=-90) & models.Q(latitude__lte=90),
                name='listing_latitude_range',
            ),
            models.CheckConstraint(
                condition=models.Q(longitude__gte=-180) & models.Q(longitude__lte=180),
                name='listing_longitude_range',
            ),
        ]

    def __str__(self):
        return self.title


class ItemOwnership(models.Model):
    """
    物品所有权投影。
    物品服务发布的所有权数据在本地的只读副本，用于创建刊登前的所有权校验。
    """
    item_id = models.UUIDField(primary_key=True, verbose_name="物品ID")
    seller_id = models.UUIDField(verbose_name="所有者ID")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="更新时间")

    class Meta:
        db_table = 'listing_item_ownership'
        verbose_name = "物品所有权"
        verbose_name_plural = "物品所有权"

    def __str__(self):
        return f"{self.item_id} -> {self.seller_id}"


class OutboxMessage(models.Model):
    """事务发件箱数据库模型，与刊登数据在同一事务中写入"""

    class StatusChoices(models.TextChoices):
        PENDING = 'PENDING', '待分发'
        DISPATCHED = 'DISPATCHED', '已分发'
        FAILED = 'FAILED', '分发失败'

    id = models.UUIDField(primary_key=True, editable=False, verbose_name="事件ID")
    event_type = models.CharField(max_length=100, verbose_name="事件类型")
    aggregate_type = models.CharField(max_length=100, verbose_name="聚合类型")
    aggregate_id = models.CharField(max_length=64, verbose_name="聚合ID")
    payload = models.JSONField(default=dict, verbose_name="事件负载")
    occurred_on = models.DateTimeField(verbose_name="发生时间")
    status = models.CharField(
        max_length=20,
        choices=StatusChoices.choices,
        default=StatusChoices.PENDING,
        verbose_name="状态"
    )
    attempts = models.PositiveIntegerField(default=0, verbose_name="尝试次数")
    last_error = models.TextField(null=True, blank=True, verbose_name="最后错误")
    dispatched_at = models.DateTimeField(null=True, blank=True, verbose_name="分发时间")

    class Meta:
        db_table = 'listing_outbox'
        verbose_name = "事件发件箱"
        verbose_name_plural = "事件发件箱"
        indexes = [
            models.Index(fields=['status', 'occurred_on'], name='idx_outbox_status_occurred'),
            models.Index(fields=['aggregate_type', 'aggregate_id'], name='idx_outbox_aggregate'),
        ]

    def __str__(self):
        return f"{self.event_type}({self.id})"
