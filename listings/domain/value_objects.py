"""
刊登领域模型中的值对象。
包含刊登类型、刊登状态、地理位置和拍卖设置。
"""
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
import math
from typing import Any, Dict, Optional

from core.domain import Money, ValueObject, ValidationException
from listings.domain import config

EARTH_RADIUS_KM = 6371.0


class ListingType(str, Enum):
    """
    刊登类型，封闭枚举。
    类型相关的数据放在可选的AuctionSettings中，而不是子类层次。
    """
    FREE = "Free"                        # 免费赠送，30天后过期
    FREE_TO_AUCTION = "FreeToAuction"    # 免费起步，首次出价后转为正向拍卖
    FORWARD_AUCTION = "ForwardAuction"   # 正向拍卖，价高者得
    REVERSE_AUCTION = "ReverseAuction"   # 反向拍卖，价低者得
    FIXED_PRICE = "FixedPrice"           # 一口价

    @property
    def is_auction(self) -> bool:
        return self in (ListingType.FREE_TO_AUCTION, ListingType.FORWARD_AUCTION, ListingType.REVERSE_AUCTION)

    @classmethod
    def parse(cls, value: Any) -> 'ListingType':
        """
        解析刊登类型，接受枚举值或名称（大小写不敏感）。

        Raises:
            ValidationException: 未知类型时抛出
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if text.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValidationException("listing_type", f"未知的刊登类型: {value}")


class ListingStatus(str, Enum):
    """刊登状态，封闭枚举"""
    ACTIVE = "Active"          # 有效，可浏览可交易
    COMPLETED = "Completed"    # 已成交
    EXPIRED = "Expired"        # 已过期
    CANCELLED = "Cancelled"    # 已取消（软删除）
    SUSPENDED = "Suspended"    # 被管理员暂停
    DRAFT = "Draft"            # 草稿，工厂方法不会产生

    @classmethod
    def parse(cls, value: Any) -> 'ListingStatus':
        """
        解析刊登状态，接受枚举值或名称（大小写不敏感）。

        Raises:
            ValidationException: 未知状态时抛出
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if text.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValidationException("status", f"未知的刊登状态: {value}")


def _coordinate(value: Any, field_name: str, bound: float) -> float:
    if isinstance(value, bool):
        raise ValidationException(field_name, f"无效的坐标: {value}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationException(field_name, f"无效的坐标: {value}")
    if math.isnan(number) or number < -bound or number > bound:
        raise ValidationException(field_name, f"必须在-{bound:g}到{bound:g}之间: {value}")
    return number


class Location(ValueObject):
    """
    地理位置值对象（WGS84经纬度，度）。
    """

    def __init__(self, latitude: float, longitude: float):
        """
        初始化地理位置。

        Args:
            latitude: 纬度，范围[-90, 90]
            longitude: 经度，范围[-180, 180]

        Raises:
            ValidationException: 坐标越界或非数字时抛出
        """
        self.latitude = _coordinate(latitude, "latitude", 90)
        self.longitude = _coordinate(longitude, "longitude", 180)

    def distance_to(self, other: 'Location') -> float:
        """
        使用Haversine公式计算两点间的大圆距离。

        Args:
            other: 另一个位置

        Returns:
            距离（公里），对称且非负，同一点为0
        """
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(other.latitude)
        d_lat = lat2 - lat1
        d_lon = math.radians(other.longitude - self.longitude)

        a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
        # 浮点误差可能让a略微越出[0, 1]
        a = min(1.0, max(0.0, a))
        return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    def __str__(self) -> str:
        return f"({self.latitude}, {self.longitude})"


def calculate_minimum_bid_increment(base_price: Money) -> Money:
    """
    计算最小加价幅度：基准价的5%，不低于1.00，保留两位小数。

    Args:
        base_price: 起拍价或最高价

    Returns:
        最小加价幅度
    """
    increment = max(base_price.amount * config.MIN_BID_INCREMENT_RATE, config.MIN_BID_INCREMENT_FLOOR)
    return Money(increment.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP), base_price.currency)


class AuctionSettings(ValueObject):
    """
    拍卖设置值对象。
    只能通过for_forward_auction、for_reverse_auction、for_free_to_auction三个命名构造方法创建。
    """

    _factory_token = object()

    def __init__(
        self,
        duration: timedelta,
        starting_price: Optional[Money] = None,
        reserve_price: Optional[Money] = None,
        max_price: Optional[Money] = None,
        buy_now_price: Optional[Money] = None,
        minimum_bid_increment: Optional[Money] = None,
        allow_auto_bidding: bool = True,
        _token: Any = None
    ):
        if _token is not AuctionSettings._factory_token:
            raise TypeError("请使用AuctionSettings的命名构造方法创建拍卖设置")
        if not isinstance(duration, timedelta):
            raise ValidationException("duration", f"无效的拍卖时长: {duration}")
        if duration < config.MIN_AUCTION_DURATION:
            raise ValidationException("duration", f"拍卖时长不能少于{config.MIN_AUCTION_DURATION}")
        if duration > config.MAX_AUCTION_DURATION:
            raise ValidationException("duration", f"拍卖时长不能超过{config.MAX_AUCTION_DURATION}")

        self.duration = duration
        self.starting_price = starting_price
        self.reserve_price = reserve_price
        self.max_price = max_price
        self.buy_now_price = buy_now_price
        self.minimum_bid_increment = minimum_bid_increment
        self.allow_auto_bidding = allow_auto_bidding

    @classmethod
    def for_forward_auction(
        cls,
        starting_price: Money,
        duration: timedelta,
        reserve_price: Optional[Money] = None,
        buy_now_price: Optional[Money] = None,
        allow_auto_bidding: bool = True
    ) -> 'AuctionSettings':
        """
        创建正向拍卖设置。

        Raises:
            ValidationException: 保留价或一口价低于起拍价、货币不一致或时长越界时抛出
        """
        if starting_price is None:
            raise ValidationException("starting_price", "起拍价不能为空")
        if reserve_price is not None and reserve_price < starting_price:
            raise ValidationException("reserve_price", "保留价必须大于或等于起拍价")
        if buy_now_price is not None and buy_now_price < starting_price:
            raise ValidationException("buy_now_price", "一口价必须大于或等于起拍价")
        return cls(
            duration=duration,
            starting_price=starting_price,
            reserve_price=reserve_price,
            buy_now_price=buy_now_price,
            minimum_bid_increment=calculate_minimum_bid_increment(starting_price),
            allow_auto_bidding=allow_auto_bidding,
            _token=cls._factory_token,
        )

    @classmethod
    def for_reverse_auction(cls, max_price: Money, duration: timedelta) -> 'AuctionSettings':
        """创建反向拍卖设置（不允许自动出价）"""
        if max_price is None:
            raise ValidationException("max_price", "最高价不能为空")
        return cls(
            duration=duration,
            max_price=max_price,
            minimum_bid_increment=calculate_minimum_bid_increment(max_price),
            allow_auto_bidding=False,
            _token=cls._factory_token,
        )

    @classmethod
    def for_free_to_auction(cls, duration: timedelta, currency: str = config.DEFAULT_CURRENCY) -> 'AuctionSettings':
        """创建免费转拍卖设置：起拍价为0，最小加价固定为1.00，允许自动出价"""
        return cls(
            duration=duration,
            starting_price=Money.zero(currency),
            minimum_bid_increment=Money(config.MIN_BID_INCREMENT_FLOOR, currency),
            allow_auto_bidding=True,
            _token=cls._factory_token,
        )

    @classmethod
    def reconstitute(
        cls,
        duration: timedelta,
        starting_price: Optional[Money] = None,
        reserve_price: Optional[Money] = None,
        max_price: Optional[Money] = None,
        buy_now_price: Optional[Money] = None,
        minimum_bid_increment: Optional[Money] = None,
        allow_auto_bidding: bool = True
    ) -> 'AuctionSettings':
        """由仓储从持久化数据重建，价格关系已在创建时校验过"""
        return cls(
            duration=duration,
            starting_price=starting_price,
            reserve_price=reserve_price,
            max_price=max_price,
            buy_now_price=buy_now_price,
            minimum_bid_increment=minimum_bid_increment,
            allow_auto_bidding=allow_auto_bidding,
            _token=cls._factory_token,
        )

    @property
    def currency(self) -> str:
        for price in (self.starting_price, self.max_price, self.minimum_bid_increment):
            if price is not None:
                return price.currency
        return config.DEFAULT_CURRENCY

    def to_dict(self) -> Dict[str, Any]:
        def money(value: Optional[Money]):
            return value.to_dict() if value is not None else None

        return {
            "starting_price": money(self.starting_price),
            "reserve_price": money(self.reserve_price),
            "max_price": money(self.max_price),
            "buy_now_price": money(self.buy_now_price),
            "minimum_bid_increment": money(self.minimum_bid_increment),
            "duration_seconds": int(self.duration.total_seconds()),
            "allow_auto_bidding": self.allow_auto_bidding,
        }
