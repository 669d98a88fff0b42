"""
刊登应用服务层的查询对象。
定义用于查询系统状态的查询。
"""
from typing import Any, Optional

from listings.domain import config


class GetListingQuery:
    """获取单个刊登的查询"""

    def __init__(self, listing_id: Any):
        self.listing_id = listing_id


class GetListingByItemQuery:
    """获取物品当前有效刊登的查询"""

    def __init__(self, item_id: Any):
        self.item_id = item_id


class SearchListingsQuery:
    """搜索刊登的查询，参数与HTTP查询参数一一对应"""

    def __init__(
        self,
        text: Optional[str] = None,
        category_id: Any = None,
        min_price: Any = None,
        max_price: Any = None,
        currency: Optional[str] = None,
        listing_type: Any = None,
        status: Any = None,
        latitude: Any = None,
        longitude: Any = None,
        radius_km: Any = None,
        min_latitude: Any = None,
        min_longitude: Any = None,
        max_latitude: Any = None,
        max_longitude: Any = None,
        sort_by: Optional[str] = None,
        sort_dir: Optional[str] = None,
        page: Any = 1,
        page_size: Any = config.DEFAULT_PAGE_SIZE
    ):
        """
        初始化搜索刊登查询。

        Args:
            text: 搜索文本
            category_id: 分类ID过滤
            min_price: 最低价格过滤
            max_price: 最高价格过滤
            currency: 价格所用货币，给出价格区间而未指定时取默认货币
            listing_type: 刊登类型过滤
            status: 状态过滤，缺省为Active
            latitude: 中心点纬度
            longitude: 中心点经度
            radius_km: 搜索半径（公里）
            min_latitude: 矩形范围最小纬度
            min_longitude: 矩形范围最小经度
            max_latitude: 矩形范围最大纬度
            max_longitude: 矩形范围最大经度
            sort_by: 排序字段
            sort_dir: 排序方向
            page: 页码
            page_size: 每页大小
        """
        self.text = text
        self.category_id = category_id
        self.min_price = min_price
        self.max_price = max_price
        self.currency = currency
        self.listing_type = listing_type
        self.status = status
        self.latitude = latitude
        self.longitude = longitude
        self.radius_km = radius_km
        self.min_latitude = min_latitude
        self.min_longitude = min_longitude
        self.max_latitude = max_latitude
        self.max_longitude = max_longitude
        self.sort_by = sort_by
        self.sort_dir = sort_dir
        self.page = page
        self.page_size = page_size

    @property
    def bounding_box_values(self):
        return (self.min_latitude, self.min_longitude, self.max_latitude, self.max_longitude)


class NearbyListingsQuery:
    """附近刊登查询，按距离由近到远排序"""

    def __init__(
        self,
        latitude: Any,
        longitude: Any,
        radius_km: Any = None,
        page: Any = 1,
        page_size: Any = config.DEFAULT_PAGE_SIZE
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.radius_km = radius_km if radius_km not in (None, "") else config.DEFAULT_NEARBY_RADIUS_KM
        self.page = page
        self.page_size = page_size


class ListSellerListingsQuery:
    """卖家刊登列表查询，不指定状态时返回全部未删除刊登"""

    def __init__(
        self,
        seller_id: Any,
        status: Any = None,
        listing_type: Any = None,
        page: Any = 1,
        page_size: Any = config.DEFAULT_PAGE_SIZE
    ):
        self.seller_id = seller_id
        self.status = status
        self.listing_type = listing_type
        self.page = page
        self.page_size = page_size


class ListCategoryListingsQuery:
    """分类下的有效刊登列表查询"""

    def __init__(
        self,
        category_id: Any,
        sort_by: Optional[str] = None,
        sort_dir: Optional[str] = None,
        page: Any = 1,
        page_size: Any = config.DEFAULT_PAGE_SIZE
    ):
        self.category_id = category_id
        self.sort_by = sort_by
        self.sort_dir = sort_dir
        self.page = page
        self.page_size = page_size


class GetCategoryQuery:
    """获取单个分类的查询"""

    def __init__(self, category_id: Any):
        self.category_id = category_id
