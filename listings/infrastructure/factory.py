"""
刊登基础设施层工厂。
负责创建和管理基础设施层对象，包括仓储、服务实例，并组装刊登应用服务。
"""
from functools import lru_cache
from typing import Optional

from django_redis import get_redis_connection
from loguru import logger

from core.infrastructure.cache import CacheService, MemoryCacheService, NoCacheService, RedisCacheService
from core.infrastructure.outbox import OutboxDispatcher
from core.infrastructure.transaction import DjangoTransactionManager, TransactionManager
from listings.application.listing_service import ListingApplicationService
from listings.domain import config
from listings.domain.repositories import CategoryRepository, ItemOwnershipService, ListingRepository
from listings.domain.services import CategoryService, ListingDomainService
from listings.infrastructure.repositories.django_category_repository import DjangoCategoryRepository
from listings.infrastructure.repositories.django_listing_repository import DjangoListingRepository
from listings.infrastructure.repositories.django_outbox_repository import DjangoOutboxRepository
from listings.infrastructure.services.cache_manager import ListingCacheManager
from listings.infrastructure.services.item_ownership_service import DjangoItemOwnershipService


@lru_cache(maxsize=None)
def create_cache_service(backend: Optional[str] = None) -> CacheService:
    """
    按配置创建缓存服务，同一进程内复用同一个实例。

    Args:
        backend: redis / memory / none，默认读取LISTING_SETTINGS['CACHE_BACKEND']

    Returns:
        缓存服务实例
    """
    backend = (backend or config.CACHE_BACKEND).lower()
    if backend == "redis":
        return RedisCacheService(redis_client=get_redis_connection("default"))
    if backend == "memory":
        return MemoryCacheService(default_ttl=config.CACHE_TIMEOUT, max_ttl=config.MAX_CACHE_TIMEOUT)
    if backend == "none":
        return NoCacheService()
    raise ValueError(f"未知的缓存后端: {backend}")


class ListingInfrastructureFactory:
    """
    刊登基础设施层工厂类。
    负责创建刊登领域的基础设施层对象，如仓储和服务实例。
    """

    def __init__(self, cache_service: CacheService, transaction_manager: TransactionManager):
        """
        初始化刊登基础设施层工厂。

        Args:
            cache_service: 缓存服务
            transaction_manager: 事务管理器
        """
        self.cache_service = cache_service
        self.transaction_manager = transaction_manager

        # 存储已创建的实例
        self._outbox_repository = None
        self._listing_repository = None
        self._category_repository = None
        self._item_ownership_service = None
        self._cache_manager = None
        self._outbox_dispatcher = None

    def create_outbox_repository(self) -> DjangoOutboxRepository:
        if not self._outbox_repository:
            self._outbox_repository = DjangoOutboxRepository()
        return self._outbox_repository

    def create_listing_repository(self) -> ListingRepository:
        """
        创建刊登仓储。

        Returns:
            刊登仓储实例
        """
        if not self._listing_repository:
            self._listing_repository = DjangoListingRepository(self.create_outbox_repository())
        return self._listing_repository

    def create_category_repository(self) -> CategoryRepository:
        if not self._category_repository:
            self._category_repository = DjangoCategoryRepository()
        return self._category_repository

    def create_item_ownership_service(self) -> ItemOwnershipService:
        if not self._item_ownership_service:
            self._item_ownership_service = DjangoItemOwnershipService()
        return self._item_ownership_service

    def create_cache_manager(self) -> ListingCacheManager:
        if not self._cache_manager:
            self._cache_manager = ListingCacheManager(cache_service=self.cache_service)
        return self._cache_manager

    def create_outbox_dispatcher(self) -> OutboxDispatcher:
        """
        创建发件箱分发器。

        Returns:
            发件箱分发器实例，默认发布到进程内的DomainEvents
        """
        if not self._outbox_dispatcher:
            self._outbox_dispatcher = OutboxDispatcher(
                outbox_repository=self.create_outbox_repository(),
                batch_size=config.OUTBOX_BATCH_SIZE,
                max_attempts=config.OUTBOX_MAX_ATTEMPTS,
            )
        return self._outbox_dispatcher

    def create_listing_service(self) -> ListingApplicationService:
        """
        组装刊登应用服务。

        Returns:
            刊登应用服务实例
        """
        listing_repository = self.create_listing_repository()
        category_repository = self.create_category_repository()

        listing_domain_service = ListingDomainService(
            listing_repository=listing_repository,
            item_ownership_service=self.create_item_ownership_service(),
            transaction_manager=self.transaction_manager,
        )
        category_service = CategoryService(category_repository=category_repository)

        return ListingApplicationService(
            listing_domain_service=listing_domain_service,
            category_service=category_service,
            listing_repository=listing_repository,
            category_repository=category_repository,
            transaction_manager=self.transaction_manager,
            cache_manager=self.create_cache_manager(),
            outbox_dispatcher=self.create_outbox_dispatcher(),
            request_timeout=config.REQUEST_TIMEOUT,
            dispatch_on_commit=config.DISPATCH_EVENTS_ON_COMMIT,
        )


def build_listing_service() -> ListingApplicationService:
    """使用当前Django配置组装刊登应用服务"""
    factory = ListingInfrastructureFactory(
        cache_service=create_cache_service(),
        transaction_manager=DjangoTransactionManager(),
    )
    logger.debug(f"刊登应用服务已组装: cache_backend={config.CACHE_BACKEND}")
    return factory.create_listing_service()
