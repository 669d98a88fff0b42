"""
刊登应用服务。
定义刊登相关的应用层服务，处理命令和查询，协调领域层和基础设施层。
写操作在事务中完成，提交后同步失效缓存并触发发件箱分发；
预期内的业务失败以Result返回，查询参数非法时直接抛出ValidationException。
"""
from datetime import datetime
from typing import Any, Callable, List, Optional

from loguru import logger

from core.domain import (
    AuthorizationException,
    ConcurrencyException,
    DomainException,
    DuplicateListingException,
    EntityNotFoundException,
    InvalidStateTransitionException,
    Money,
    Result,
    ValidationException,
)
from core.infrastructure.cancellation import CancellationToken
from core.infrastructure.outbox import OutboxDispatcher
from core.infrastructure.transaction import TransactionManager
from listings.application.commands import (
    ConvertToAuctionCommand,
    CreateCategoryCommand,
    CreateListingCommand,
    ListingActionCommand,
    MoveCategoryCommand,
    UpdateListingCommand,
)
from listings.application.dtos import CategoryDTO, ListingDTO, ListingPageDTO
from listings.application.queries import (
    GetCategoryQuery,
    GetListingByItemQuery,
    GetListingQuery,
    ListCategoryListingsQuery,
    ListSellerListingsQuery,
    NearbyListingsQuery,
    SearchListingsQuery,
)
from listings.domain import config
from listings.domain.aggregates import ENTITY_NAME, Listing, require_identifier
from listings.domain.repositories import CategoryRepository, ListingRepository
from listings.domain.search import BoundingBox, ListingSearchCriteria, SortDirection, SortField
from listings.domain.services import CATEGORY_ENTITY, CategoryService, ListingDomainService
from listings.domain.value_objects import ListingType, Location

# 浏览计数遇到版本冲突时的重试次数
VIEW_COUNT_RETRIES = 3


def _optional_money(amount: Any, currency: str) -> Optional[Money]:
    if amount is None or amount == "":
        return None
    return Money(amount, currency)


class ListingApplicationService:
    """
    刊登应用服务。
    处理刊登相关的应用层逻辑，协调领域服务、仓储、缓存和发件箱。
    """

    def __init__(
        self,
        listing_domain_service: ListingDomainService,
        category_service: CategoryService,
        listing_repository: ListingRepository,
        category_repository: CategoryRepository,
        transaction_manager: TransactionManager,
        cache_manager=None,
        outbox_dispatcher: Optional[OutboxDispatcher] = None,
        request_timeout: Optional[float] = None,
        dispatch_on_commit: bool = True
    ):
        """
        初始化刊登应用服务。

        Args:
            listing_domain_service: 刊登领域服务
            category_service: 分类领域服务
            listing_repository: 刊登仓储
            category_repository: 分类仓储
            transaction_manager: 事务管理器
            cache_manager: 刊登缓存管理器
            outbox_dispatcher: 发件箱分发器
            request_timeout: 未提供取消令牌时使用的超时秒数
            dispatch_on_commit: 是否在事务提交后立即分发领域事件
        """
        self.listing_domain_service = listing_domain_service
        self.category_service = category_service
        self.listing_repository = listing_repository
        self.category_repository = category_repository
        self.transaction_manager = transaction_manager
        self.cache_manager = cache_manager
        self.outbox_dispatcher = outbox_dispatcher
        self.request_timeout = request_timeout
        self.dispatch_on_commit = dispatch_on_commit

    # ==================== 内部方法 ====================

    def _token(self, cancellation_token: Optional[CancellationToken]) -> CancellationToken:
        if cancellation_token is not None:
            return cancellation_token
        return CancellationToken.with_timeout(self.request_timeout)

    def _after_commit(self, listing_id: Any) -> None:
        """
        登记提交后的缓存失效和事件分发。
        在事务中调用时随事务提交执行，回滚时被丢弃；不在事务中时立即执行。
        """
        if self.cache_manager is not None:
            self.transaction_manager.on_commit(lambda: self.cache_manager.invalidate_listing(listing_id))
        if self.outbox_dispatcher is not None and self.dispatch_on_commit:
            self.transaction_manager.on_commit(self.outbox_dispatcher.dispatch_pending)

    def _load_listing(self, listing_id: Any) -> Listing:
        listing_uuid = require_identifier(listing_id, "listing_id")
        listing = self.listing_repository.get_by_id(listing_uuid)
        if listing is None:
            raise EntityNotFoundException(ENTITY_NAME, listing_uuid)
        return listing

    @staticmethod
    def _ensure_owner(listing: Listing, requester_id: Any, operation: str) -> None:
        if requester_id is None or not listing.is_owned_by(requester_id):
            raise AuthorizationException(requester_id, operation, f"{ENTITY_NAME}:{listing.id}")

    def _run_write(
        self,
        operation: str,
        listing_id: Any,
        action: Callable[[CancellationToken], Any],
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result:
        """
        在事务中执行一个写操作，领域异常转换为失败结果并回滚。

        Args:
            operation: 操作名称，用于日志和取消异常
            listing_id: 刊登ID
            action: 接收取消令牌、返回成功值的函数
            cancellation_token: 取消令牌
        """
        token = self._token(cancellation_token)
        try:
            with self.transaction_manager.start():
                token.raise_if_cancelled(operation)
                value = action(token)
                token.raise_if_cancelled(operation)
                self._after_commit(listing_id)
        except DomainException as e:
            logger.warning(f"{operation}失败: listing_id={listing_id}, {e.__class__.__name__}: {e}")
            return Result.failure(e)
        logger.info(f"{operation}成功: listing_id={listing_id}")
        return Result.success(value)

    # ==================== 命令处理方法 ====================

    def create_listing(
        self,
        command: CreateListingCommand,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[ListingDTO]:
        """
        创建刊登，按刊登类型调用对应的领域服务操作。

        Args:
            command: 创建刊登命令
            cancellation_token: 取消令牌

        Returns:
            成功时携带刊登DTO的Result
        """
        token = self._token(cancellation_token)
        service = self.listing_domain_service
        try:
            listing_type = ListingType.parse(command.listing_type)
            location = Location(command.latitude, command.longitude)
            currency = command.currency or config.DEFAULT_CURRENCY
            common = dict(
                seller_id=command.seller_id,
                item_id=command.item_id,
                category_id=command.category_id,
                title=command.title,
                description=command.description,
                location=location,
                cancellation_token=token,
            )
            if listing_type == ListingType.FREE:
                result = service.create_free_listing(**common)
            elif listing_type == ListingType.FREE_TO_AUCTION:
                result = service.create_free_to_auction_listing(duration=command.duration, **common)
            elif listing_type == ListingType.FORWARD_AUCTION:
                result = service.create_forward_auction_listing(
                    starting_price=Money(command.starting_price, currency),
                    duration=command.duration,
                    reserve_price=_optional_money(command.reserve_price, currency),
                    buy_now_price=_optional_money(command.buy_now_price, currency),
                    allow_auto_bidding=command.allow_auto_bidding,
                    **common
                )
            elif listing_type == ListingType.REVERSE_AUCTION:
                result = service.create_reverse_auction_listing(
                    max_price=Money(command.max_price, currency),
                    duration=command.duration,
                    **common
                )
            elif listing_type == ListingType.FIXED_PRICE:
                result = service.create_fixed_price_listing(price=Money(command.price, currency), **common)
            else:
                raise AssertionError(f"未处理的刊登类型: {listing_type}")
        except DomainException as e:
            logger.warning(f"创建刊登参数无效: item_id={command.item_id}, {e}")
            return Result.failure(e)

        if result.is_failure:
            return result
        listing = result.value
        self._after_commit(listing.id)
        return Result.success(ListingDTO.from_aggregate(listing))

    def update_listing(
        self,
        command: UpdateListingCommand,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[ListingDTO]:
        """
        更新刊登的标题、描述、分类和位置，只有卖家本人可以修改。

        Args:
            command: 更新刊登命令
            cancellation_token: 取消令牌
        """
        operation = "更新刊登"

        def action(token: CancellationToken) -> ListingDTO:
            listing = self._load_listing(command.listing_id)
            if listing.is_deleted:
                raise EntityNotFoundException(ENTITY_NAME, listing.id)
            self._ensure_owner(listing, command.requester_id, operation)

            listing.update_details(
                title=command.title,
                description=command.description,
                category_id=command.category_id,
            )
            if command.latitude is not None or command.longitude is not None:
                listing.update_location(Location(command.latitude, command.longitude))
            token.raise_if_cancelled(operation)
            return ListingDTO.from_aggregate(self.listing_repository.save(listing))

        return self._run_write(operation, command.listing_id, action, cancellation_token)

    def delete_listing(
        self,
        command: ListingActionCommand,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[bool]:
        """
        软删除刊登。已删除的刊登再次删除视为成功。

        Returns:
            成功时携带本次是否实际执行了删除
        """
        operation = "删除刊登"

        def action(token: CancellationToken) -> bool:
            listing = self._load_listing(command.listing_id)
            self._ensure_owner(listing, command.requester_id, operation)
            if listing.is_deleted:
                return False
            listing.soft_delete()
            self.listing_repository.save(listing)
            return True

        return self._run_write(operation, command.listing_id, action, cancellation_token)

    def restore_listing(
        self,
        command: ListingActionCommand,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[ListingDTO]:
        """
        恢复软删除的刊登。物品已有其他未删除刊登时返回冲突。
        """
        operation = "恢复刊登"

        def action(token: CancellationToken) -> ListingDTO:
            listing = self._load_listing(command.listing_id)
            self._ensure_owner(listing, command.requester_id, operation)
            if listing.is_deleted and self.listing_repository.exists_active_for_item(listing.item_id):
                raise DuplicateListingException(listing.item_id)
            listing.restore()
            return ListingDTO.from_aggregate(self.listing_repository.save(listing))

        return self._run_write(operation, command.listing_id, action, cancellation_token)

    def convert_to_auction(
        self,
        command: ConvertToAuctionCommand,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[ListingDTO]:
        """
        首次出价后把免费转拍卖刊登转为正向拍卖。
        并发的两次转换只有一次成功，另一次得到ConcurrencyException或非法状态迁移。

        Args:
            command: 转拍卖命令
            cancellation_token: 取消令牌
        """
        operation = "转为正向拍卖"

        def action(token: CancellationToken) -> ListingDTO:
            listing = self._load_listing(command.listing_id)
            if command.expected_version is not None and listing.version != int(command.expected_version):
                raise ConcurrencyException(ENTITY_NAME, listing.id, int(command.expected_version))
            first_bid = Money(command.first_bid_amount, command.currency or listing.current_price.currency)
            listing.convert_to_forward_auction(first_bid)
            return ListingDTO.from_aggregate(self.listing_repository.save(listing))

        return self._run_write(operation, command.listing_id, action, cancellation_token)

    def mark_expired(self, command: ListingActionCommand) -> Result[ListingDTO]:
        """
        标记刊登过期。requester_id为None表示系统操作，不做所有权校验。
        """
        operation = "标记刊登过期"

        def action(token: CancellationToken) -> ListingDTO:
            listing = self._load_listing(command.listing_id)
            if command.requester_id is not None:
                self._ensure_owner(listing, command.requester_id, operation)
            listing.mark_as_expired()
            return ListingDTO.from_aggregate(self.listing_repository.save(listing))

        return self._run_write(operation, command.listing_id, action)

    def mark_completed(self, command: ListingActionCommand) -> Result[ListingDTO]:
        """
        标记刊登成交。requester_id为None表示系统操作，不做所有权校验。
        """
        operation = "标记刊登成交"

        def action(token: CancellationToken) -> ListingDTO:
            listing = self._load_listing(command.listing_id)
            if command.requester_id is not None:
                self._ensure_owner(listing, command.requester_id, operation)
            listing.mark_as_completed()
            return ListingDTO.from_aggregate(self.listing_repository.save(listing))

        return self._run_write(operation, command.listing_id, action)

    def record_view(self, listing_id: Any) -> Result[int]:
        """
        记录一次浏览。版本冲突时重新读取后重试。

        Returns:
            成功时携带新的浏览次数
        """
        def action(token: CancellationToken) -> int:
            listing = self._load_listing(listing_id)
            if listing.is_deleted:
                raise EntityNotFoundException(ENTITY_NAME, listing.id)
            count = listing.increment_view_count()
            self.listing_repository.save(listing)
            return count

        result = None
        for _ in range(VIEW_COUNT_RETRIES):
            result = self._run_write("记录浏览", listing_id, action)
            if result.is_success or not isinstance(result.error, ConcurrencyException):
                return result
        return result

    def expire_due_listings(self, now: Optional[datetime] = None, limit: int = 500) -> int:
        """
        把已超过过期时间的有效刊登标记为过期，每条刊登使用独立事务。

        Args:
            now: 当前时间
            limit: 本次最多处理的数量

        Returns:
            实际标记过期的数量
        """
        expired = 0
        for listing in self.listing_repository.find_expired(now, limit):
            try:
                with self.transaction_manager.start():
                    listing.mark_as_expired()
                    self.listing_repository.save(listing)
                    self._after_commit(listing.id)
            except (ConcurrencyException, InvalidStateTransitionException) as e:
                logger.warning(f"刊登过期处理跳过: listing_id={listing.id}, {e}")
                continue
            expired += 1
        if expired:
            logger.info(f"已标记{expired}条刊登过期")
        return expired

    # ==================== 查询处理方法 ====================

    def get_listing(self, query: GetListingQuery) -> Optional[ListingDTO]:
        """
        获取刊登详情，已删除的刊登视为不存在。

        Args:
            query: 获取刊登查询

        Returns:
            刊登DTO，不存在时返回None
        """
        listing_id = require_identifier(query.listing_id, "listing_id")
        cache_key = None
        if self.cache_manager is not None:
            cache_key = self.cache_manager.listing_key(listing_id)
            cached = self.cache_manager.get(cache_key)
            if cached is not None:
                return cached

        listing = self.listing_repository.get_by_id(listing_id)
        if listing is None or listing.is_deleted:
            return None
        dto = ListingDTO.from_aggregate(listing)
        if self.cache_manager is not None:
            self.cache_manager.set(cache_key, dto)
        return dto

    def get_listing_by_item(self, query: GetListingByItemQuery) -> Optional[ListingDTO]:
        """获取物品当前未删除的刊登"""
        item_id = require_identifier(query.item_id, "item_id")
        listing = self.listing_repository.get_active_by_item(item_id)
        return ListingDTO.from_aggregate(listing) if listing is not None else None

    def _run_search(self, criteria: ListingSearchCriteria) -> ListingPageDTO:
        cache_key = None
        if self.cache_manager is not None:
            cache_key = self.cache_manager.page_key(criteria.cache_key())
            cached = self.cache_manager.get(cache_key)
            if cached is not None:
                return cached

        listings, total = self.listing_repository.search(criteria)
        items: List[ListingDTO] = []
        for listing in listings:
            distance = criteria.center.distance_to(listing.location) if criteria.center is not None else None
            items.append(ListingDTO.from_aggregate(listing, distance_km=distance))
        page = ListingPageDTO(items=items, total_count=total, page_number=criteria.page, page_size=criteria.page_size)

        if self.cache_manager is not None:
            self.cache_manager.set(cache_key, page)
        return page

    def search_listings(self, query: SearchListingsQuery) -> ListingPageDTO:
        """
        搜索刊登。

        Args:
            query: 搜索刊登查询

        Returns:
            分页结果

        Raises:
            ValidationException: 查询参数非法或组合不被允许时抛出
        """
        bbox_values = query.bounding_box_values
        bounding_box = None
        if any(v not in (None, "") for v in bbox_values):
            if any(v in (None, "") for v in bbox_values):
                raise ValidationException("bbox", "矩形范围必须同时提供minLat、minLon、maxLat、maxLon")
            bounding_box = BoundingBox(*bbox_values)

        criteria = ListingSearchCriteria(
            text=query.text,
            category_id=query.category_id,
            listing_type=query.listing_type,
            status=query.status,
            min_price=query.min_price,
            max_price=query.max_price,
            currency=query.currency,
            latitude=query.latitude,
            longitude=query.longitude,
            radius_km=query.radius_km,
            bounding_box=bounding_box,
            sort_by=query.sort_by,
            sort_dir=query.sort_dir,
            page=query.page,
            page_size=query.page_size,
        )
        return self._run_search(criteria)

    def nearby_listings(self, query: NearbyListingsQuery) -> ListingPageDTO:
        """附近的有效刊登，由近到远"""
        criteria = ListingSearchCriteria(
            latitude=query.latitude,
            longitude=query.longitude,
            radius_km=query.radius_km,
            sort_by=SortField.DISTANCE,
            sort_dir=SortDirection.ASC,
            page=query.page,
            page_size=query.page_size,
        )
        return self._run_search(criteria)

    def list_seller_listings(self, query: ListSellerListingsQuery) -> ListingPageDTO:
        """卖家的刊登列表，不指定状态时包含全部未删除刊登"""
        criteria = ListingSearchCriteria(
            seller_id=query.seller_id,
            status=query.status,
            all_statuses=True,
            listing_type=query.listing_type,
            page=query.page,
            page_size=query.page_size,
        )
        return self._run_search(criteria)

    def list_category_listings(self, query: ListCategoryListingsQuery) -> ListingPageDTO:
        """分类下的有效刊登列表"""
        category_id = require_identifier(query.category_id, "categoryId")
        if not self.category_repository.exists(category_id):
            raise EntityNotFoundException(CATEGORY_ENTITY, category_id)
        criteria = ListingSearchCriteria(
            category_id=category_id,
            sort_by=query.sort_by,
            sort_dir=query.sort_dir,
            page=query.page,
            page_size=query.page_size,
        )
        return self._run_search(criteria)

    # ==================== 分类 ====================

    def create_category(self, command: CreateCategoryCommand) -> CategoryDTO:
        """
        创建分类。

        Raises:
            EntityNotFoundException: 父分类不存在时抛出
            ValidationException: 名称非法时抛出
        """
        with self.transaction_manager.start():
            category = self.category_service.create_category(
                name=command.name,
                description=command.description,
                parent_id=command.parent_id,
            )
            return CategoryDTO.from_entity(category, self.category_service.category_path(category))

    def get_category(self, query: GetCategoryQuery) -> Optional[CategoryDTO]:
        category_id = require_identifier(query.category_id, "category_id")
        category = self.category_repository.get_by_id(category_id)
        if category is None:
            return None
        return CategoryDTO.from_entity(category, self.category_service.category_path(category))

    def move_category(self, command: MoveCategoryCommand) -> CategoryDTO:
        """
        移动分类。

        Raises:
            EntityNotFoundException: 分类或新父分类不存在时抛出
            ValidationException: 移动会形成环路时抛出
        """
        with self.transaction_manager.start():
            category = self.category_service.move_category(command.category_id, command.parent_id)
            return CategoryDTO.from_entity(category, self.category_service.category_path(category))
