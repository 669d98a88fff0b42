"""
刊登应用服务层的命令对象。
定义用于修改系统状态的命令。命令只携带原始输入，值对象由应用服务构造。
"""
from datetime import timedelta
from decimal import Decimal
from typing import Any, Optional


class CreateListingCommand:
    """创建刊登命令，listing_type决定使用哪个工厂方法"""

    def __init__(
        self,
        listing_type: Any,
        seller_id: Any,
        item_id: Any,
        category_id: Any,
        title: str,
        description: str,
        latitude: float,
        longitude: float,
        currency: str = "USD",
        price: Optional[Decimal] = None,
        starting_price: Optional[Decimal] = None,
        reserve_price: Optional[Decimal] = None,
        buy_now_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        duration: Optional[timedelta] = None,
        allow_auto_bidding: bool = True
    ):
        """
        初始化创建刊登命令。

        Args:
            listing_type: 刊登类型
            seller_id: 请求方卖家ID
            item_id: 物品ID
            category_id: 分类ID
            title: 标题
            description: 描述
            latitude: 纬度
            longitude: 经度
            currency: 货币代码
            price: 一口价
            starting_price: 正向拍卖起拍价
            reserve_price: 正向拍卖保留价
            buy_now_price: 正向拍卖一口价
            max_price: 反向拍卖最高价
            duration: 拍卖时长
            allow_auto_bidding: 正向拍卖是否允许自动出价
        """
        self.listing_type = listing_type
        self.seller_id = seller_id
        self.item_id = item_id
        self.category_id = category_id
        self.title = title
        self.description = description
        self.latitude = latitude
        self.longitude = longitude
        self.currency = currency
        self.price = price
        self.starting_price = starting_price
        self.reserve_price = reserve_price
        self.buy_now_price = buy_now_price
        self.max_price = max_price
        self.duration = duration
        self.allow_auto_bidding = allow_auto_bidding


class UpdateListingCommand:
    """更新刊登命令，未提供的字段保持不变"""

    def __init__(
        self,
        listing_id: Any,
        requester_id: Any,
        title: Optional[str] = None,
        description: Optional[str] = None,
        category_id: Any = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None
    ):
        """
        初始化更新刊登命令。

        Args:
            listing_id: 刊登ID
            requester_id: 请求方ID，必须是刊登的卖家
            title: 新标题
            description: 新描述
            category_id: 新分类ID
            latitude: 新纬度
            longitude: 新经度
        """
        self.listing_id = listing_id
        self.requester_id = requester_id
        self.title = title
        self.description = description
        self.category_id = category_id
        self.latitude = latitude
        self.longitude = longitude


class ListingActionCommand:
    """针对单个刊登的卖家操作命令（删除、恢复、标记过期、标记成交）"""

    def __init__(self, listing_id: Any, requester_id: Any):
        self.listing_id = listing_id
        self.requester_id = requester_id


class ConvertToAuctionCommand:
    """首次出价触发的转拍卖命令，由出价服务发出"""

    def __init__(
        self,
        listing_id: Any,
        first_bid_amount: Decimal,
        currency: str = "USD",
        expected_version: Optional[int] = None
    ):
        """
        初始化转拍卖命令。

        Args:
            listing_id: 刊登ID
            first_bid_amount: 首次出价金额
            currency: 货币代码
            expected_version: 调用方读取到的版本号，提供时做比对
        """
        self.listing_id = listing_id
        self.first_bid_amount = first_bid_amount
        self.currency = currency
        self.expected_version = expected_version


class CreateCategoryCommand:
    """创建分类命令"""

    def __init__(self, name: str, description: str = "", parent_id: Any = None):
        """
        初始化创建分类命令。

        Args:
            name: 分类名称
            description: 分类描述
            parent_id: 父分类ID
        """
        self.name = name
        self.description = description
        self.parent_id = parent_id


class MoveCategoryCommand:
    """移动分类命令，parent_id为None表示移动为根分类"""

    def __init__(self, category_id: Any, parent_id: Any = None):
        self.category_id = category_id
        self.parent_id = parent_id
