"""
刊登领域模型中的事件。
定义刊登相关的领域事件，由待办生成、通知、搜索索引等外部订阅者消费。
事件名称即对外的事件类型名。
"""
from typing import Any, List, Optional

from core.domain.events import DomainEvent


class ListingCreated(DomainEvent):
    """刊登创建事件"""

    def __init__(
        self,
        listing_id: Any,
        item_id: Any,
        seller_id: Any,
        category_id: Any,
        listing_type: Any,
        price: Any,
        location: Any,
        expires_at: Any = None
    ):
        """
        初始化刊登创建事件。

        Args:
            listing_id: 刊登ID
            item_id: 物品ID
            seller_id: 卖家ID
            category_id: 分类ID
            listing_type: 刊登类型
            price: 当前价格
            location: 地理位置
            expires_at: 过期时间
        """
        super().__init__()
        self.listing_id = listing_id
        self.item_id = item_id
        self.seller_id = seller_id
        self.category_id = category_id
        self.listing_type = listing_type
        self.price = price
        self.location = location
        self.expires_at = expires_at


class ListingConvertedToAuction(DomainEvent):
    """免费刊登因首次出价转为正向拍卖"""

    def __init__(self, listing_id: Any, seller_id: Any, first_bid_amount: Any, expires_at: Any):
        super().__init__()
        self.listing_id = listing_id
        self.seller_id = seller_id
        self.first_bid_amount = first_bid_amount
        self.expires_at = expires_at


class ListingLocationUpdated(DomainEvent):
    """刊登位置变更事件"""

    def __init__(self, listing_id: Any, seller_id: Any, old_location: Any, new_location: Any):
        super().__init__()
        self.listing_id = listing_id
        self.seller_id = seller_id
        self.old_location = old_location
        self.new_location = new_location


class ListingUpdated(DomainEvent):
    """刊登详情更新事件"""

    def __init__(self, listing_id: Any, seller_id: Any, updated_fields: List[str]):
        """
        初始化刊登更新事件。

        Args:
            listing_id: 刊登ID
            seller_id: 卖家ID
            updated_fields: 更新的字段列表
        """
        super().__init__()
        self.listing_id = listing_id
        self.seller_id = seller_id
        self.updated_fields = updated_fields


class ListingExpired(DomainEvent):
    """刊登过期事件"""

    def __init__(self, listing_id: Any, seller_id: Any, item_id: Any):
        super().__init__()
        self.listing_id = listing_id
        self.seller_id = seller_id
        self.item_id = item_id


class ListingCompleted(DomainEvent):
    """刊登成交事件"""

    def __init__(self, listing_id: Any, seller_id: Any, item_id: Any, final_price: Any):
        super().__init__()
        self.listing_id = listing_id
        self.seller_id = seller_id
        self.item_id = item_id
        self.final_price = final_price


class ListingSoftDeleted(DomainEvent):
    """刊登软删除事件"""

    def __init__(self, listing_id: Any, seller_id: Any, item_id: Any, previous_status: Optional[Any] = None):
        super().__init__()
        self.listing_id = listing_id
        self.seller_id = seller_id
        self.item_id = item_id
        self.previous_status = previous_status


class ListingRestored(DomainEvent):
    """刊登恢复事件"""

    def __init__(self, listing_id: Any, seller_id: Any, item_id: Any):
        super().__init__()
        self.listing_id = listing_id
        self.seller_id = seller_id
        self.item_id = item_id
