"""
刊登领域模型中的服务。
ListingDomainService编排刊登创建的多步流程：所有权校验、唯一性校验、工厂创建和持久化，
全部步骤在同一事务中执行，预期内的业务失败以Result返回。
CategoryService维护分类树，移动分类时通过真实的祖先遍历检测环路。
"""
from typing import Any, Callable, List, Optional

from loguru import logger

from core.domain import (
    AuthorizationException,
    ConflictException,
    DomainException,
    DuplicateListingException,
    EntityNotFoundException,
    Money,
    Result,
    ValidationException,
)
from core.infrastructure.cancellation import CancellationToken
from core.infrastructure.transaction import TransactionManager
from listings.domain.aggregates import Listing, require_identifier
from listings.domain.entities import Category
from listings.domain.repositories import CategoryRepository, ItemOwnershipService, ListingRepository
from listings.domain.value_objects import Location

ITEM_ENTITY = "物品"
CATEGORY_ENTITY = "分类"


class ListingDomainService:
    """
    刊登领域服务。
    每种刊登类型一个创建操作，流程完全相同，只是调用的工厂方法不同。
    """

    def __init__(
        self,
        listing_repository: ListingRepository,
        item_ownership_service: ItemOwnershipService,
        transaction_manager: TransactionManager
    ):
        """
        初始化刊登领域服务。

        Args:
            listing_repository: 刊登仓储
            item_ownership_service: 物品所有权查询服务
            transaction_manager: 事务管理器
        """
        self.listing_repository = listing_repository
        self.item_ownership_service = item_ownership_service
        self.transaction_manager = transaction_manager

    def _create_listing(
        self,
        operation: str,
        seller_id: Any,
        item_id: Any,
        factory: Callable[[], Listing],
        cancellation_token: Optional[CancellationToken]
    ) -> Result[Listing]:
        """
        创建流程：
        1. 查询物品所有者，不存在返回NotFound
        2. 请求方不是所有者返回Unauthorized
        3. 物品已有未删除刊登返回Conflict
        4. 调用工厂方法创建刊登
        5. 持久化并提交

        任何一步失败都会回滚事务；存储层唯一约束冲突同样转换为Conflict。
        """
        token = cancellation_token or CancellationToken.none()
        try:
            with self.transaction_manager.start():
                token.raise_if_cancelled(operation)
                item_uuid = require_identifier(item_id, "item_id")
                seller_uuid = require_identifier(seller_id, "seller_id")

                owner_id = self.item_ownership_service.get_owner_id(item_uuid)
                if owner_id is None:
                    raise EntityNotFoundException(ITEM_ENTITY, item_uuid)
                token.raise_if_cancelled(operation)

                if str(owner_id) != str(seller_uuid):
                    raise AuthorizationException(seller_uuid, operation, f"{ITEM_ENTITY}:{item_uuid}")

                if self.listing_repository.exists_active_for_item(item_uuid):
                    raise DuplicateListingException(item_uuid)
                token.raise_if_cancelled(operation)

                listing = factory()
                self.listing_repository.add(listing)
                token.raise_if_cancelled(operation)
        except DomainException as e:
            logger.warning(f"{operation}失败: item_id={item_id}, seller_id={seller_id}, {e.__class__.__name__}: {e}")
            return Result.failure(e)

        logger.info(f"{operation}成功: listing_id={listing.id}, item_id={listing.item_id}")
        return Result.success(listing)

    def create_free_listing(
        self,
        seller_id: Any,
        item_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[Listing]:
        """
        创建免费赠送刊登。

        Args:
            seller_id: 请求方卖家ID
            item_id: 物品ID
            category_id: 分类ID
            title: 标题
            description: 描述
            location: 地理位置
            cancellation_token: 取消令牌

        Returns:
            成功时携带新建刊登的Result
        """
        return self._create_listing(
            "创建免费刊登", seller_id, item_id,
            lambda: Listing.create_free(item_id, seller_id, category_id, title, description, location),
            cancellation_token,
        )

    def create_free_to_auction_listing(
        self,
        seller_id: Any,
        item_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        duration=None,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[Listing]:
        """创建免费转拍卖刊登，duration为转换后的拍卖时长"""
        return self._create_listing(
            "创建免费转拍卖刊登", seller_id, item_id,
            lambda: Listing.create_free_to_auction(
                item_id, seller_id, category_id, title, description, location, duration=duration
            ),
            cancellation_token,
        )

    def create_forward_auction_listing(
        self,
        seller_id: Any,
        item_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        starting_price: Money,
        duration=None,
        reserve_price: Optional[Money] = None,
        buy_now_price: Optional[Money] = None,
        allow_auto_bidding: bool = True,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[Listing]:
        """创建正向拍卖刊登"""
        return self._create_listing(
            "创建正向拍卖刊登", seller_id, item_id,
            lambda: Listing.create_forward_auction(
                item_id, seller_id, category_id, title, description, location,
                starting_price=starting_price,
                duration=duration,
                reserve_price=reserve_price,
                buy_now_price=buy_now_price,
                allow_auto_bidding=allow_auto_bidding,
            ),
            cancellation_token,
        )

    def create_reverse_auction_listing(
        self,
        seller_id: Any,
        item_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        max_price: Money,
        duration=None,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[Listing]:
        """创建反向拍卖刊登"""
        return self._create_listing(
            "创建反向拍卖刊登", seller_id, item_id,
            lambda: Listing.create_reverse_auction(
                item_id, seller_id, category_id, title, description, location,
                max_price=max_price, duration=duration,
            ),
            cancellation_token,
        )

    def create_fixed_price_listing(
        self,
        seller_id: Any,
        item_id: Any,
        category_id: Any,
        title: str,
        description: str,
        location: Location,
        price: Money,
        cancellation_token: Optional[CancellationToken] = None
    ) -> Result[Listing]:
        """创建一口价刊登"""
        return self._create_listing(
            "创建一口价刊登", seller_id, item_id,
            lambda: Listing.create_fixed_price(
                item_id, seller_id, category_id, title, description, location, price=price
            ),
            cancellation_token,
        )


class CategoryService:
    """
    分类领域服务。
    负责分类的创建和移动，保证分类树中不出现环路。
    """

    def __init__(self, category_repository: CategoryRepository):
        self.category_repository = category_repository

    def create_category(self, name: str, description: str = "", parent_id: Any = None) -> Category:
        """
        创建分类。

        Args:
            name: 分类名称
            description: 分类描述
            parent_id: 父分类ID

        Returns:
            已保存的分类

        Raises:
            EntityNotFoundException: 父分类不存在时抛出
            ValidationException: 名称非法时抛出
        """
        if parent_id is not None:
            parent_id = require_identifier(parent_id, "parent_id")
            if not self.category_repository.exists(parent_id):
                raise EntityNotFoundException(CATEGORY_ENTITY, parent_id)

        category = Category(name=name, description=description, parent_id=parent_id)
        saved = self.category_repository.add(category)
        logger.info(f"分类创建成功: id={saved.id}, name={saved.name}")
        return saved

    def ancestor_ids(self, category_id: Any) -> List[Any]:
        """
        从直接父分类开始向上遍历到根，返回祖先ID列表（近的在前）。

        Raises:
            ConflictException: 存储中的数据已经存在环路时抛出
        """
        ancestors = []
        visited = {str(category_id)}
        current = self.category_repository.get_parent_id(category_id)
        while current is not None:
            if str(current) in visited:
                raise ConflictException("分类树中存在环路", resource=f"category:{current}")
            visited.add(str(current))
            ancestors.append(current)
            current = self.category_repository.get_parent_id(current)
        return ancestors

    def would_create_cycle(self, category_id: Any, new_parent_id: Any) -> bool:
        """
        判断把category_id移动到new_parent_id下是否会形成环路。
        新父分类是自身，或者自身出现在新父分类的祖先链上，即形成环路。
        """
        if new_parent_id is None:
            return False
        if str(new_parent_id) == str(category_id):
            return True
        visited = set()
        current = new_parent_id
        while current is not None:
            key = str(current)
            if key == str(category_id):
                return True
            if key in visited:
                # 既有数据中的环路，同样不允许挂接
                return True
            visited.add(key)
            current = self.category_repository.get_parent_id(current)
        return False

    def move_category(self, category_id: Any, new_parent_id: Any) -> Category:
        """
        移动分类到新的父分类下，new_parent_id为None表示移动为根分类。

        Raises:
            EntityNotFoundException: 分类或新父分类不存在时抛出
            ValidationException: 移动会形成环路时抛出
        """
        category_id = require_identifier(category_id, "category_id")
        category = self.category_repository.get_by_id(category_id)
        if category is None:
            raise EntityNotFoundException(CATEGORY_ENTITY, category_id)

        if new_parent_id is not None:
            new_parent_id = require_identifier(new_parent_id, "parent_id")
            if not self.category_repository.exists(new_parent_id):
                raise EntityNotFoundException(CATEGORY_ENTITY, new_parent_id)
            if self.would_create_cycle(category_id, new_parent_id):
                raise ValidationException("parent_id", "不能把分类移动到自身或其子分类下")

        category.move_to(new_parent_id)
        saved = self.category_repository.save(category)
        logger.info(f"分类已移动: id={category_id}, parent_id={new_parent_id}")
        return saved

    def category_path(self, category: Category) -> str:
        """返回从根分类到该分类的路径"""
        names = []
        for ancestor_id in reversed(self.ancestor_ids(category.id)):
            ancestor = self.category_repository.get_by_id(ancestor_id)
            if ancestor is not None:
                names.append(ancestor.name)
        return category.category_path(names)
