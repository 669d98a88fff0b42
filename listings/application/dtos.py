"""
刊登应用服务层的数据传输对象(DTOs)。
定义应用服务与外部通信使用的数据结构，to_dict输出API使用的驼峰命名。
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.domain import Money
from listings.domain.aggregates import Listing
from listings.domain.entities import Category
from listings.domain.value_objects import AuctionSettings


def _money(value: Optional[Money]) -> Optional[Dict[str, str]]:
    return value.to_dict() if value is not None else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ListingDTO:
    """刊登数据传输对象，用于返回刊登信息"""

    def __init__(
        self,
        id: str,
        item_id: str,
        seller_id: str,
        category_id: str,
        title: str,
        description: str,
        latitude: float,
        longitude: float,
        listing_type: str,
        status: str,
        current_price: Dict[str, str],
        auction_settings: Optional[Dict[str, Any]],
        created_at: datetime,
        updated_at: datetime,
        expires_at: Optional[datetime],
        completed_at: Optional[datetime],
        deleted_at: Optional[datetime],
        view_count: int,
        version: int,
        distance_km: Optional[float] = None
    ):
        """
        初始化刊登DTO。

        Args:
            id: 刊登ID
            item_id: 物品ID
            seller_id: 卖家ID
            category_id: 分类ID
            title: 标题
            description: 描述
            latitude: 纬度
            longitude: 经度
            listing_type: 刊登类型
            status: 刊登状态
            current_price: 当前价格字典，包含amount和currency
            auction_settings: 拍卖设置字典
            created_at: 创建时间
            updated_at: 更新时间
            expires_at: 过期时间
            completed_at: 成交时间
            deleted_at: 删除时间
            view_count: 浏览次数
            version: 版本号，转拍卖时用于并发比对
            distance_km: 距查询中心点的距离
        """
        self.id = id
        self.item_id = item_id
        self.seller_id = seller_id
        self.category_id = category_id
        self.title = title
        self.description = description
        self.latitude = latitude
        self.longitude = longitude
        self.listing_type = listing_type
        self.status = status
        self.current_price = current_price
        self.auction_settings = auction_settings
        self.created_at = created_at
        self.updated_at = updated_at
        self.expires_at = expires_at
        self.completed_at = completed_at
        self.deleted_at = deleted_at
        self.view_count = view_count
        self.version = version
        self.distance_km = distance_km

    @staticmethod
    def _auction_settings_dict(settings: Optional[AuctionSettings]) -> Optional[Dict[str, Any]]:
        if settings is None:
            return None
        return {
            "startingPrice": _money(settings.starting_price),
            "reservePrice": _money(settings.reserve_price),
            "maxPrice": _money(settings.max_price),
            "buyNowPrice": _money(settings.buy_now_price),
            "minimumBidIncrement": _money(settings.minimum_bid_increment),
            "durationSeconds": int(settings.duration.total_seconds()),
            "allowAutoBidding": settings.allow_auto_bidding,
        }

    @classmethod
    def from_aggregate(cls, listing: Listing, distance_km: Optional[float] = None) -> 'ListingDTO':
        """
        从刊登聚合根创建DTO。

        Args:
            listing: 刊登聚合根
            distance_km: 距查询中心点的距离

        Returns:
            刊登DTO
        """
        return cls(
            id=str(listing.id),
            item_id=str(listing.item_id),
            seller_id=str(listing.seller_id),
            category_id=str(listing.category_id),
            title=listing.title,
            description=listing.description,
            latitude=listing.location.latitude,
            longitude=listing.location.longitude,
            listing_type=listing.listing_type.value,
            status=listing.status.value,
            current_price=listing.current_price.to_dict(),
            auction_settings=cls._auction_settings_dict(listing.auction_settings),
            created_at=listing.created_at,
            updated_at=listing.updated_at,
            expires_at=listing.expires_at,
            completed_at=listing.completed_at,
            deleted_at=listing.deleted_at,
            view_count=listing.view_count,
            version=listing.version,
            distance_km=distance_km,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> Dict[str, Any]:
        """
        将DTO转换为字典。

        Returns:
            字典表示
        """
        result = {
            "id": self.id,
            "itemId": self.item_id,
            "sellerId": self.seller_id,
            "categoryId": self.category_id,
            "title": self.title,
            "description": self.description,
            "location": {"latitude": self.latitude, "longitude": self.longitude},
            "type": self.listing_type,
            "status": self.status,
            "currentPrice": self.current_price,
            "auctionSettings": self.auction_settings,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "expiresAt": _iso(self.expires_at),
            "completedAt": _iso(self.completed_at),
            "isDeleted": self.is_deleted,
            "viewCount": self.view_count,
            "version": self.version,
        }
        if self.distance_km is not None:
            result["distanceKm"] = round(self.distance_km, 3)
        return result


class ListingPageDTO:
    """分页的刊登列表"""

    def __init__(self, items: List[ListingDTO], total_count: int, page_number: int, page_size: int):
        self.items = items
        self.total_count = total_count
        self.page_number = page_number
        self.page_size = page_size

    def item_dicts(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self.items]


class CategoryDTO:
    """分类数据传输对象"""

    def __init__(
        self,
        id: str,
        name: str,
        description: str,
        parent_id: Optional[str],
        path: str,
        is_active: bool,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.id = id
        self.name = name
        self.description = description
        self.parent_id = parent_id
        self.path = path
        self.is_active = is_active
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def from_entity(cls, category: Category, path: Optional[str] = None) -> 'CategoryDTO':
        """
        从分类实体创建DTO。

        Args:
            category: 分类实体
            path: 从根分类开始的路径，缺省为分类名称
        """
        return cls(
            id=str(category.id),
            name=category.name,
            description=category.description,
            parent_id=str(category.parent_id) if category.parent_id else None,
            path=path or category.name,
            is_active=category.is_active,
            created_at=category.created_at,
            updated_at=category.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parentId": self.parent_id,
            "path": self.path,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
