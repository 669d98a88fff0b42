"""
刊登领域模型中的聚合根。
刊登只能通过五个类型化的工厂方法创建，之后只能通过命名的领域操作修改。
每次状态变更都会在聚合内暂存一个领域事件，由仓储在同一事务中写入发件箱。
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from core.domain import (
    AggregateRoot,
    CurrencyMismatchException,
    InvalidStateTransitionException,
    Money,
    ValidationException,
)
from listings.domain import config
from listings.domain.events import (
    ListingCompleted,
    ListingConvertedToAuction,
    ListingCreated,
    ListingExpired,
    ListingLocationUpdated,
    ListingRestored,
    ListingSoftDeleted,
    ListingUpdated,
)
from listings.domain.value_objects import AuctionSettings, ListingStatus, ListingType, Location

ENTITY_NAME = "刊登"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_identifier(value: Any, field_name: str) -> uuid.UUID:
    """
    把外部传入的标识转换为UUID，并拒绝空值和全零UUID。

    Raises:
        ValidationException: 标识为空或格式非法时抛出
    """
    if value is None or value == "":
        raise ValidationException(field_name, "标识不能为空")
    try:
        identifier = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationException(field_name, f"无效的标识: {value}")
    if identifier.int == 0:
        raise ValidationException(field_name, "标识不能为空")
    return identifier


def validate_title(title: Any) -> str:
    text = str(title).strip() if title is not None else ""
    if not text:
        raise ValidationException("title", "标题不能为空")
    if len(text) > config.MAX_TITLE_LENGTH:
        raise ValidationException("title", f"标题长度不能超过{config.MAX_TITLE_LENGTH}个字符")
    return text


def validate_description(description: Any) -> str:
    text = str(description).strip() if description is not None else ""
    if not text:
        raise ValidationException("description", "描述不能为空")
    if len(text) > config.MAX_DESCRIPTION_LENGTH:
        raise ValidationException("description", f"描述长度不能超过{config.MAX_DESCRIPTION_LENGTH}个字符")
    return text


class Listing(AggregateRoot):
    """
    刊登聚合根。
    五种刊登类型用ListingType枚举加可选的AuctionSettings表示，不使用子类。
    """

    _factory_token = object()

    def __init__(
        self,
        *,
        id: Any,
        item_id: uuid.UUID,
        seller_id: uuid.UUID,
        category_id: uuid.UUID,
        title: str,
        description: str,
        location: Location,
        listing_type: ListingType,
        status: ListingStatus,
        current_price: Money,
        auction_settings: Optional[AuctionSettings],
        created_at: datetime,
        updated_at: datetime,
        expires_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
        deleted_at: Optional[datetime] = None,
        view_count: int = 0,
        _token: Any = None
    ):
        if _token is not Listing._factory_token:
            raise TypeError("请使用Listing的工厂方法创建刊登")
        super().__init__(id)
        self._item_id = item_id
        self._seller_id = seller_id
        self._category_id = category_id
        self._title = title
        self._description = description
        self._location = location
        self._listing_type = listing_type
        self._status = status
        self._current_price = current_price
        self._auction_settings = auction_settings
        self._created_at = created_at
        self._updated_at = updated_at
        self._expires_at = expires_at
        self._completed_at = completed_at
        self._deleted_at = deleted_at
        self._view_count = view_count

    # ------------------------------------------------------------------
    # 工厂方法
    # ------------------------------------------------------------------

    @classmethod
    def _create(
        cls,
        item_id: Any,
        seller_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        listing_type: ListingType,
        current_price: Money,
        auction_settings: Optional[AuctionSettings] = None,
        expires_at: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> 'Listing':
        if not isinstance(location, Location):
            raise ValidationException("location", "位置不能为空")
        now = now or _utcnow()
        listing = cls(
            id=uuid.uuid4(),
            item_id=require_identifier(item_id, "item_id"),
            seller_id=require_identifier(seller_id, "seller_id"),
            category_id=require_identifier(category_id, "category_id"),
            title=validate_title(title),
            description=validate_description(description),
            location=location,
            listing_type=listing_type,
            status=ListingStatus.ACTIVE,
            current_price=current_price,
            auction_settings=auction_settings,
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
            _token=cls._factory_token,
        )
        listing.add_domain_event(
            ListingCreated(
                listing_id=listing.id,
                item_id=listing.item_id,
                seller_id=listing.seller_id,
                category_id=listing.category_id,
                listing_type=listing.listing_type,
                price=listing.current_price,
                location=listing.location,
                expires_at=listing.expires_at,
            )
        )
        return listing

    @classmethod
    def create_free(
        cls,
        item_id: Any,
        seller_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        currency: str = config.DEFAULT_CURRENCY
    ) -> 'Listing':
        """
        创建免费赠送刊登：价格为0，30天后过期。

        Args:
            item_id: 物品ID
            seller_id: 卖家ID
            category_id: 分类ID
            title: 标题
            description: 描述
            location: 地理位置
            currency: 货币代码

        Returns:
            新建的刊登
        """
        now = _utcnow()
        return cls._create(
            item_id, seller_id, category_id, title, description, location,
            listing_type=ListingType.FREE,
            current_price=Money.zero(currency),
            expires_at=now + config.FREE_LISTING_DURATION,
            now=now,
        )

    @classmethod
    def create_free_to_auction(
        cls,
        item_id: Any,
        seller_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        duration=None,
        currency: str = config.DEFAULT_CURRENCY
    ) -> 'Listing':
        """
        创建免费转拍卖刊登：价格为0，不设过期时间，首次出价后转为正向拍卖。

        Args:
            duration: 转为拍卖后的拍卖时长，默认7天
        """
        settings = AuctionSettings.for_free_to_auction(duration or config.DEFAULT_AUCTION_DURATION, currency)
        return cls._create(
            item_id, seller_id, category_id, title, description, location,
            listing_type=ListingType.FREE_TO_AUCTION,
            current_price=Money.zero(settings.currency),
            auction_settings=settings,
        )

    @classmethod
    def create_forward_auction(
        cls,
        item_id: Any,
        seller_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        starting_price: Money,
        duration=None,
        reserve_price: Optional[Money] = None,
        buy_now_price: Optional[Money] = None,
        allow_auto_bidding: bool = True
    ) -> 'Listing':
        """
        创建正向拍卖刊登：当前价格为起拍价，拍卖时长后过期。

        Raises:
            ValidationException: 保留价或一口价低于起拍价、时长越界时抛出
        """
        settings = AuctionSettings.for_forward_auction(
            starting_price=starting_price,
            duration=duration or config.DEFAULT_AUCTION_DURATION,
            reserve_price=reserve_price,
            buy_now_price=buy_now_price,
            allow_auto_bidding=allow_auto_bidding,
        )
        now = _utcnow()
        return cls._create(
            item_id, seller_id, category_id, title, description, location,
            listing_type=ListingType.FORWARD_AUCTION,
            current_price=starting_price,
            auction_settings=settings,
            expires_at=now + settings.duration,
            now=now,
        )

    @classmethod
    def create_reverse_auction(
        cls,
        item_id: Any,
        seller_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        max_price: Money,
        duration=None
    ) -> 'Listing':
        """创建反向拍卖刊登：当前价格为买方愿付的最高价"""
        settings = AuctionSettings.for_reverse_auction(max_price, duration or config.DEFAULT_AUCTION_DURATION)
        now = _utcnow()
        return cls._create(
            item_id, seller_id, category_id, title, description, location,
            listing_type=ListingType.REVERSE_AUCTION,
            current_price=max_price,
            auction_settings=settings,
            expires_at=now + settings.duration,
            now=now,
        )

    @classmethod
    def create_fixed_price(
        cls,
        item_id: Any,
        seller_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        price: Money
    ) -> 'Listing':
        """创建一口价刊登，不设过期时间"""
        if not isinstance(price, Money):
            raise ValidationException("price", "价格不能为空")
        return cls._create(
            item_id, seller_id, category_id, title, description, location,
            listing_type=ListingType.FIXED_PRICE,
            current_price=price,
        )

    @classmethod
    def reconstitute(cls, version: int = 0, **fields) -> 'Listing':
        """
        由仓储从持久化数据重建聚合，不产生领域事件。

        Args:
            version: 持久化版本号
            **fields: 聚合字段
        """
        listing = cls(_token=cls._factory_token, **fields)
        listing.mark_persisted(version)
        return listing

    # ------------------------------------------------------------------
    # 只读属性
    # ------------------------------------------------------------------

    @property
    def item_id(self) -> uuid.UUID:
        return self._item_id

    @property
    def seller_id(self) -> uuid.UUID:
        return self._seller_id

    @property
    def category_id(self) -> uuid.UUID:
        return self._category_id

    @property
    def title(self) -> str:
        return self._title

    @property
    def description(self) -> str:
        return self._description

    @property
    def location(self) -> Location:
        return self._location

    @property
    def listing_type(self) -> ListingType:
        return self._listing_type

    @property
    def status(self) -> ListingStatus:
        return self._status

    @property
    def current_price(self) -> Money:
        return self._current_price

    @property
    def auction_settings(self) -> Optional[AuctionSettings]:
        return self._auction_settings

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    @property
    def completed_at(self) -> Optional[datetime]:
        return self._completed_at

    @property
    def deleted_at(self) -> Optional[datetime]:
        return self._deleted_at

    @property
    def view_count(self) -> int:
        return self._view_count

    @property
    def is_deleted(self) -> bool:
        """软删除标记由删除时间推导"""
        return self._deleted_at is not None

    def is_owned_by(self, seller_id: Any) -> bool:
        return str(self._seller_id) == str(seller_id)

    def is_past_expiry(self, now: Optional[datetime] = None) -> bool:
        """有效刊登是否已超过过期时间"""
        if self._expires_at is None or self._status != ListingStatus.ACTIVE or self.is_deleted:
            return False
        return self._expires_at <= (now or _utcnow())

    # ------------------------------------------------------------------
    # 状态迁移
    # ------------------------------------------------------------------

    def _ensure_active(self, operation: str) -> None:
        if self.is_deleted or self._status != ListingStatus.ACTIVE:
            raise InvalidStateTransitionException(ENTITY_NAME, self._status.value, operation)

    def _touch(self) -> datetime:
        self._updated_at = _utcnow()
        return self._updated_at

    def convert_to_forward_auction(self, first_bid_amount: Money) -> None:
        """
        首次出价触发的类型迁移：FreeToAuction -> ForwardAuction。
        只能成功一次，重复调用会失败而不是静默重放。

        Args:
            first_bid_amount: 首次出价金额，成为当前价格

        Raises:
            InvalidStateTransitionException: 类型不是FreeToAuction或状态不是Active时抛出
            CurrencyMismatchException: 出价货币与刊登货币不一致时抛出
        """
        operation = "转为正向拍卖"
        if self._listing_type != ListingType.FREE_TO_AUCTION:
            raise InvalidStateTransitionException(
                ENTITY_NAME, self._listing_type.value, operation, "只有免费转拍卖刊登可以转换"
            )
        self._ensure_active(operation)
        if not isinstance(first_bid_amount, Money):
            raise ValidationException("first_bid_amount", "首次出价不能为空")
        if first_bid_amount.currency != self._current_price.currency:
            raise CurrencyMismatchException(self._current_price.currency, first_bid_amount.currency)

        now = self._touch()
        self._listing_type = ListingType.FORWARD_AUCTION
        self._current_price = first_bid_amount
        self._expires_at = now + self._auction_settings.duration

        self.add_domain_event(
            ListingConvertedToAuction(
                listing_id=self.id,
                seller_id=self._seller_id,
                first_bid_amount=first_bid_amount,
                expires_at=self._expires_at,
            )
        )

    def update_location(self, location: Location) -> None:
        """
        更新刊登位置，仅有效刊登可以修改。

        Raises:
            InvalidStateTransitionException: 刊登不是Active状态时抛出
        """
        self._ensure_active("更新位置")
        if not isinstance(location, Location):
            raise ValidationException("location", "位置不能为空")
        if location == self._location:
            return

        old_location = self._location
        self._location = location
        self._touch()
        self.add_domain_event(
            ListingLocationUpdated(
                listing_id=self.id,
                seller_id=self._seller_id,
                old_location=old_location,
                new_location=location,
            )
        )

    def update_details(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
        category_id: Any = None
    ) -> List[str]:
        """
        更新刊登详情。空白的标题或描述视为未提供。

        Args:
            title: 新标题
            description: 新描述
            category_id: 新分类ID

        Returns:
            实际发生变化的字段列表

        Raises:
            InvalidStateTransitionException: 刊登已删除或不是Active/Draft状态时抛出
            ValidationException: 文本超长时抛出
        """
        if self.is_deleted or self._status not in (ListingStatus.ACTIVE, ListingStatus.DRAFT):
            raise InvalidStateTransitionException(ENTITY_NAME, self._status.value, "更新详情")

        changes: Dict[str, Any] = {}
        if title is not None and str(title).strip():
            new_title = validate_title(title)
            if new_title != self._title:
                changes["title"] = new_title
        if description is not None and str(description).strip():
            new_description = validate_description(description)
            if new_description != self._description:
                changes["description"] = new_description
        if category_id is not None:
            new_category_id = require_identifier(category_id, "category_id")
            if new_category_id != self._category_id:
                changes["category_id"] = new_category_id

        if not changes:
            return []

        for field_name, value in changes.items():
            setattr(self, f"_{field_name}", value)
        self._touch()

        updated_fields = list(changes.keys())
        self.add_domain_event(
            ListingUpdated(listing_id=self.id, seller_id=self._seller_id, updated_fields=updated_fields)
        )
        return updated_fields

    def mark_as_expired(self) -> None:
        """
        标记为已过期（终态）。

        Raises:
            InvalidStateTransitionException: 刊登不是Active状态时抛出
        """
        self._ensure_active("标记过期")
        self._status = ListingStatus.EXPIRED
        self._touch()
        self.add_domain_event(
            ListingExpired(listing_id=self.id, seller_id=self._seller_id, item_id=self._item_id)
        )

    def mark_as_completed(self) -> None:
        """
        标记为已成交（终态）。

        Raises:
            InvalidStateTransitionException: 刊登不是Active状态时抛出
        """
        self._ensure_active("标记成交")
        self._status = ListingStatus.COMPLETED
        self._completed_at = self._touch()
        self.add_domain_event(
            ListingCompleted(
                listing_id=self.id,
                seller_id=self._seller_id,
                item_id=self._item_id,
                final_price=self._current_price,
            )
        )

    def soft_delete(self) -> None:
        """
        软删除：记录删除时间，状态强制为Cancelled。

        Raises:
            InvalidStateTransitionException: 已经删除时抛出
        """
        if self.is_deleted:
            raise InvalidStateTransitionException(ENTITY_NAME, self._status.value, "删除", "刊登已被删除")
        previous_status = self._status
        self._deleted_at = self._touch()
        self._status = ListingStatus.CANCELLED
        self.add_domain_event(
            ListingSoftDeleted(
                listing_id=self.id,
                seller_id=self._seller_id,
                item_id=self._item_id,
                previous_status=previous_status,
            )
        )

    def restore(self) -> None:
        """
        恢复软删除的刊登，状态回到Active。

        Raises:
            InvalidStateTransitionException: 未被删除时抛出
        """
        if not self.is_deleted:
            raise InvalidStateTransitionException(ENTITY_NAME, self._status.value, "恢复", "刊登未被删除")
        self._deleted_at = None
        self._status = ListingStatus.ACTIVE
        self._touch()
        self.add_domain_event(
            ListingRestored(listing_id=self.id, seller_id=self._seller_id, item_id=self._item_id)
        )

    def increment_view_count(self) -> int:
        """浏览次数加一，无前置条件"""
        self._view_count += 1
        return self._view_count

    def to_dict(self) -> Dict[str, Any]:
        """
        将刊登聚合转换为字典表示。

        Returns:
            刊登聚合的字典表示
        """
        return {
            "id": str(self.id),
            "item_id": str(self._item_id),
            "seller_id": str(self._seller_id),
            "category_id": str(self._category_id),
            "title": self._title,
            "description": self._description,
            "location": self._location.to_dict(),
            "listing_type": self._listing_type.value,
            "status": self._status.value,
            "current_price": self._current_price.to_dict(),
            "auction_settings": self._auction_settings.to_dict() if self._auction_settings else None,
            "created_at": self._created_at.isoformat(),
            "updated_at": self._updated_at.isoformat(),
            "expires_at": self._expires_at.isoformat() if self._expires_at else None,
            "completed_at": self._completed_at.isoformat() if self._completed_at else None,
            "deleted_at": self._deleted_at.isoformat() if self._deleted_at else None,
            "is_deleted": self.is_deleted,
            "view_count": self._view_count,
            "version": self.version,
        }
