"""
刊登搜索条件与内存检索规则。
查询条件在构造时完成全部校验，非法组合直接抛出ValidationException；
文本相关度评分和距离过滤同时被内存仓储与非PostgreSQL数据库的实现复用。
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
import hashlib
import json
import math
import re
from typing import Any, Iterable, List, Optional, Tuple

from core.domain import ValidationException
from listings.domain import config
from listings.domain.aggregates import Listing, require_identifier
from listings.domain.value_objects import ListingStatus, ListingType, Location

# 每纬度约111.32公里
KM_PER_DEGREE = 111.32

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_SQL_META = ("--", "/*", "*/", "'", '"', ";")
_WHITESPACE = re.compile(r"\s+")


def sanitize_search_term(term: Optional[str]) -> str:
    """
    清洗搜索词：去掉引号、分号、SQL注释符和控制字符，合并空白，截断到最大长度。

    Args:
        term: 原始搜索词

    Returns:
        清洗后的搜索词，可能为空字符串
    """
    if not term:
        return ""
    text = _CONTROL_CHARS.sub(" ", str(term))
    for token in _SQL_META:
        text = text.replace(token, " ")
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:config.MAX_SEARCH_TERM_LENGTH].strip()


def tokenize(term: str) -> List[str]:
    """把清洗后的搜索词拆成去重的小写词元，保持出现顺序"""
    seen = []
    for token in term.lower().split():
        if token not in seen:
            seen.append(token)
    return seen


def relevance_score(tokens: List[str], title: str, description: str) -> float:
    """
    计算文本相关度：每个词元都必须出现在标题或描述中，否则得分为0。
    标题中每次出现计3分，描述中计1分；多词搜索时完整短语出现另有加分。

    Args:
        tokens: 搜索词元
        title: 刊登标题
        description: 刊登描述

    Returns:
        相关度得分，0表示不匹配
    """
    if not tokens:
        return 0.0
    title_text = title.lower()
    description_text = description.lower()
    score = 0.0
    for token in tokens:
        in_title = title_text.count(token)
        in_description = description_text.count(token)
        if not in_title and not in_description:
            return 0.0
        score += in_title * 3 + in_description
    if len(tokens) > 1:
        phrase = " ".join(tokens)
        if phrase in title_text:
            score += 5
        elif phrase in description_text:
            score += 2
    return score


class SortField(str, Enum):
    """排序字段"""
    RELEVANCE = "relevance"
    PRICE = "price"
    DISTANCE = "distance"
    TITLE = "title"
    CREATED_AT = "createdAt"

    @classmethod
    def parse(cls, value: Any) -> 'SortField':
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace("_", "")
        aliases = {
            "relevance": cls.RELEVANCE,
            "price": cls.PRICE,
            "distance": cls.DISTANCE,
            "title": cls.TITLE,
            "createdat": cls.CREATED_AT,
            "created": cls.CREATED_AT,
            "date": cls.CREATED_AT,
        }
        if text not in aliases:
            raise ValidationException("sortBy", f"不支持的排序字段: {value}")
        return aliases[text]


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Any) -> 'SortDirection':
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in ("asc", "ascending"):
            return cls.ASC
        if text in ("desc", "descending"):
            return cls.DESC
        raise ValidationException("sortDir", f"不支持的排序方向: {value}")


class BoundingBox:
    """
    经纬度矩形。min_longitude大于max_longitude时表示跨越180度经线。
    """

    def __init__(self, min_latitude: float, min_longitude: float, max_latitude: float, max_longitude: float):
        south = Location(min_latitude, min_longitude)
        north = Location(max_latitude, max_longitude)
        if south.latitude > north.latitude:
            raise ValidationException("minLat", "最小纬度不能大于最大纬度")
        self.min_latitude = south.latitude
        self.min_longitude = south.longitude
        self.max_latitude = north.latitude
        self.max_longitude = north.longitude

    @classmethod
    def around(cls, center: Location, radius_km: float) -> 'BoundingBox':
        """
        计算覆盖以center为圆心、radius_km为半径的圆的最小矩形，用作索引预过滤。
        靠近两极时经度范围放宽为全部经度。
        """
        lat_delta = radius_km / KM_PER_DEGREE
        min_lat = max(-90.0, center.latitude - lat_delta)
        max_lat = min(90.0, center.latitude + lat_delta)
        if min_lat <= -90.0 or max_lat >= 90.0:
            return cls(min_lat, -180.0, max_lat, 180.0)

        cos_lat = math.cos(math.radians(center.latitude))
        lon_delta = radius_km / (KM_PER_DEGREE * cos_lat) if cos_lat > 1e-9 else 360.0
        if lon_delta >= 180.0:
            return cls(min_lat, -180.0, max_lat, 180.0)

        min_lon = center.longitude - lon_delta
        max_lon = center.longitude + lon_delta
        if min_lon < -180.0:
            min_lon += 360.0
        if max_lon > 180.0:
            max_lon -= 360.0
        return cls(min_lat, min_lon, max_lat, max_lon)

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_longitude > self.max_longitude

    @property
    def latitude_span(self) -> float:
        return self.max_latitude - self.min_latitude

    @property
    def longitude_span(self) -> float:
        if self.crosses_antimeridian:
            return (180.0 - self.min_longitude) + (self.max_longitude + 180.0)
        return self.max_longitude - self.min_longitude

    def longitude_ranges(self) -> List[Tuple[float, float]]:
        """返回一到两个不跨越180度经线的经度区间"""
        if self.crosses_antimeridian:
            return [(self.min_longitude, 180.0), (-180.0, self.max_longitude)]
        return [(self.min_longitude, self.max_longitude)]

    def contains(self, location: Location) -> bool:
        if not self.min_latitude <= location.latitude <= self.max_latitude:
            return False
        return any(lo <= location.longitude <= hi for lo, hi in self.longitude_ranges())

    def to_dict(self):
        return {
            "minLat": self.min_latitude,
            "minLon": self.min_longitude,
            "maxLat": self.max_latitude,
            "maxLon": self.max_longitude,
        }


def _parse_price(value: Any, field_name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationException(field_name, f"无效的价格: {value}")
    if not amount.is_finite() or amount < 0:
        raise ValidationException(field_name, f"无效的价格: {value}")
    return amount


def _parse_currency(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    code = str(value).strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationException("currency", f"无效的货币代码: {value}")
    return code


def _parse_int(value: Any, field_name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationException(field_name, f"必须为整数: {value}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationException(field_name, f"必须为整数: {value}")


def _parse_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationException(field_name, f"必须为数字: {value}")
    if math.isnan(number) or math.isinf(number):
        raise ValidationException(field_name, f"必须为数字: {value}")
    return number


class ListingSearchCriteria:
    """
    刊登查询条件。
    所有过滤条件可以自由组合；status缺省为Active，all_statuses=True时不按状态过滤。
    已软删除的刊登永远不会出现在查询结果中。
    """

    def __init__(
        self,
        text: Optional[str] = None,
        category_id: Any = None,
        seller_id: Any = None,
        listing_type: Any = None,
        status: Any = None,
        all_statuses: bool = False,
        min_price: Any = None,
        max_price: Any = None,
        currency: Any = None,
        latitude: Any = None,
        longitude: Any = None,
        radius_km: Any = None,
        bounding_box: Optional[BoundingBox] = None,
        sort_by: Any = None,
        sort_dir: Any = None,
        page: Any = 1,
        page_size: Any = config.DEFAULT_PAGE_SIZE
    ):
        """
        初始化并校验查询条件。

        Raises:
            ValidationException: 条件非法或组合不被允许时抛出
        """
        self.text = sanitize_search_term(text)
        self.tokens = tokenize(self.text)
        self.category_id = require_identifier(category_id, "categoryId") if category_id else None
        self.seller_id = require_identifier(seller_id, "sellerId") if seller_id else None
        self.listing_type = ListingType.parse(listing_type) if listing_type else None

        if all_statuses and not status:
            self.status = None
        else:
            self.status = ListingStatus.parse(status) if status else ListingStatus.ACTIVE

        self.min_price = _parse_price(min_price, "minPrice")
        self.max_price = _parse_price(max_price, "maxPrice")
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValidationException("minPrice", "最低价不能高于最高价")
        # 价格区间只在同一货币内比较，未指定货币时按默认货币过滤
        self.currency = _parse_currency(currency)
        if self.currency is None and (self.min_price is not None or self.max_price is not None):
            self.currency = config.DEFAULT_CURRENCY

        lat = _parse_float(latitude, "lat")
        lon = _parse_float(longitude, "lon")
        radius = _parse_float(radius_km, "radiusKm")
        if (lat is None) != (lon is None):
            raise ValidationException("lat", "纬度和经度必须同时提供")
        self.center = Location(lat, lon) if lat is not None else None
        if radius is not None and self.center is None:
            raise ValidationException("radiusKm", "按半径搜索必须提供中心点")
        if self.center is not None and radius is None:
            radius = config.DEFAULT_NEARBY_RADIUS_KM
        if radius is not None and (radius <= 0 or radius > config.MAX_SEARCH_RADIUS_KM):
            raise ValidationException("radiusKm", f"搜索半径必须大于0且不超过{config.MAX_SEARCH_RADIUS_KM:g}公里")
        self.radius_km = radius

        if bounding_box is not None and (
            bounding_box.latitude_span > config.MAX_BOUNDING_BOX_SPAN_DEGREES
            or bounding_box.longitude_span > config.MAX_BOUNDING_BOX_SPAN_DEGREES
        ):
            raise ValidationException(
                "bbox", f"矩形范围的经纬度跨度不能超过{config.MAX_BOUNDING_BOX_SPAN_DEGREES:g}度"
            )
        self.bounding_box = bounding_box

        if sort_by:
            self.sort_by = SortField.parse(sort_by)
        else:
            self.sort_by = SortField.RELEVANCE if self.text else SortField.CREATED_AT
        if self.sort_by == SortField.DISTANCE and self.center is None:
            raise ValidationException("sortBy", "按距离排序必须提供中心点")
        if self.sort_by == SortField.RELEVANCE and not self.text:
            self.sort_by = SortField.CREATED_AT
        if sort_dir:
            self.sort_dir = SortDirection.parse(sort_dir)
        elif self.sort_by in (SortField.RELEVANCE, SortField.CREATED_AT):
            self.sort_dir = SortDirection.DESC
        else:
            self.sort_dir = SortDirection.ASC

        self.page = _parse_int(page, "page", 1)
        self.page_size = _parse_int(page_size, "pageSize", config.DEFAULT_PAGE_SIZE)
        if self.page < 1:
            raise ValidationException("page", "页码必须大于等于1")
        if self.page_size < 1 or self.page_size > config.MAX_PAGE_SIZE:
            raise ValidationException("pageSize", f"每页大小必须在1到{config.MAX_PAGE_SIZE}之间")

    @property
    def is_spatial(self) -> bool:
        return self.center is not None or self.bounding_box is not None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def prefilter_box(self) -> Optional[BoundingBox]:
        """半径搜索的索引预过滤矩形"""
        if self.center is None:
            return None
        return BoundingBox.around(self.center, self.radius_km)

    def to_dict(self):
        return {
            "text": self.text,
            "categoryId": str(self.category_id) if self.category_id else None,
            "sellerId": str(self.seller_id) if self.seller_id else None,
            "type": self.listing_type.value if self.listing_type else None,
            "status": self.status.value if self.status else None,
            "minPrice": str(self.min_price) if self.min_price is not None else None,
            "maxPrice": str(self.max_price) if self.max_price is not None else None,
            "currency": self.currency,
            "center": self.center.to_dict() if self.center else None,
            "radiusKm": self.radius_km,
            "bbox": self.bounding_box.to_dict() if self.bounding_box else None,
            "sortBy": self.sort_by.value,
            "sortDir": self.sort_dir.value,
            "page": self.page,
            "pageSize": self.page_size,
        }

    def cache_key(self) -> str:
        """由规范化后的条件计算的缓存键"""
        raw = json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=True)
        return f"search:{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:40]}"


@dataclass
class SearchHit:
    """一条命中记录及其距离和相关度"""
    listing: Listing
    distance_km: Optional[float] = None
    score: float = 0.0


def matches_attributes(listing: Listing, criteria: ListingSearchCriteria) -> bool:
    """判断刊登是否满足非文本、非空间的过滤条件"""
    if listing.is_deleted:
        return False
    if criteria.status is not None and listing.status != criteria.status:
        return False
    if criteria.listing_type is not None and listing.listing_type != criteria.listing_type:
        return False
    if criteria.category_id is not None and listing.category_id != criteria.category_id:
        return False
    if criteria.seller_id is not None and listing.seller_id != criteria.seller_id:
        return False
    if criteria.currency is not None and listing.current_price.currency != criteria.currency:
        return False
    amount = listing.current_price.amount
    if criteria.min_price is not None and amount < criteria.min_price:
        return False
    if criteria.max_price is not None and amount > criteria.max_price:
        return False
    return True


def evaluate(listing: Listing, criteria: ListingSearchCriteria) -> Optional[SearchHit]:
    """
    对单条刊登应用全部过滤条件。

    Returns:
        命中记录，不满足条件时返回None
    """
    if not matches_attributes(listing, criteria):
        return None
    if criteria.bounding_box is not None and not criteria.bounding_box.contains(listing.location):
        return None
    distance = None
    if criteria.center is not None:
        distance = criteria.center.distance_to(listing.location)
        if distance > criteria.radius_km:
            return None
    score = 0.0
    if criteria.tokens:
        score = relevance_score(criteria.tokens, listing.title, listing.description)
        if score <= 0:
            return None
    return SearchHit(listing=listing, distance_km=distance, score=score)


def sort_hits(hits: Iterable[SearchHit], criteria: ListingSearchCriteria) -> List[SearchHit]:
    """按查询条件排序，刊登ID作为最后的稳定排序键"""
    reverse = criteria.sort_dir == SortDirection.DESC
    field = criteria.sort_by

    def key(hit: SearchHit):
        listing = hit.listing
        if field == SortField.PRICE:
            primary = listing.current_price.amount
        elif field == SortField.DISTANCE:
            primary = hit.distance_km
        elif field == SortField.TITLE:
            primary = listing.title.lower()
        elif field == SortField.RELEVANCE:
            primary = (hit.score, listing.created_at)
        else:
            primary = listing.created_at
        return primary

    ordered = sorted(hits, key=lambda h: str(h.listing.id))
    return sorted(ordered, key=key, reverse=reverse)


def nearest_first(hits: Iterable[SearchHit]) -> List[SearchHit]:
    return sorted(hits, key=lambda h: (h.distance_km, str(h.listing.id)))


def run_in_memory_search(
    listings: Iterable[Listing],
    criteria: ListingSearchCriteria
) -> Tuple[List[Listing], int]:
    """
    在内存中的刊登集合上执行完整查询。

    Args:
        listings: 候选刊登
        criteria: 查询条件

    Returns:
        当前页刊登和总数（空间查询最多1000，其他查询最多10000）
    """
    hits = [hit for hit in (evaluate(listing, criteria) for listing in listings) if hit is not None]
    if criteria.center is not None:
        hits = nearest_first(hits)[:config.MAX_SPATIAL_RESULTS]
        total = len(hits)
    elif criteria.bounding_box is not None:
        hits = hits[:config.MAX_SPATIAL_RESULTS]
        total = len(hits)
    else:
        total = min(len(hits), config.MAX_TOTAL_COUNT)
    ordered = sort_hits(hits, criteria)
    page = ordered[criteria.offset:criteria.offset + criteria.page_size]
    return [hit.listing for hit in page], total


__all__ = [
    'sanitize_search_term',
    'tokenize',
    'relevance_score',
    'SortField',
    'SortDirection',
    'BoundingBox',
    'ListingSearchCriteria',
    'SearchHit',
    'matches_attributes',
    'evaluate',
    'sort_hits',
    'nearest_first',
    'run_in_memory_search',
]
