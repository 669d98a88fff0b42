"""
测试公共夹具。
领域和应用层测试使用内存仓储与NoOpTransactionManager；
涉及Django ORM和API的测试通过pytest-django的django_db标记访问内存SQLite。
"""
import uuid

import pytest

from core.domain import Money
from core.domain.events import DomainEvents
from core.infrastructure.cache import MemoryCacheService
from core.infrastructure.outbox import InMemoryOutboxRepository, OutboxDispatcher
from core.infrastructure.transaction import NoOpTransactionManager
from listings.application.listing_service import ListingApplicationService
from listings.domain.aggregates import Listing
from listings.domain.services import CategoryService, ListingDomainService
from listings.domain.value_objects import Location
from listings.infrastructure.factory import create_cache_service
from listings.infrastructure.repositories.memory_repositories import (
    InMemoryCategoryRepository,
    InMemoryItemOwnershipService,
    InMemoryListingRepository,
)
from listings.infrastructure.services.cache_manager import ListingCacheManager

NEW_YORK = (40.7128, -74.0060)


@pytest.fixture(autouse=True)
def reset_shared_state():
    """清理进程级共享状态：领域事件处理器和刊登缓存"""
    DomainEvents.clear_handlers()
    create_cache_service().clear()
    yield
    DomainEvents.clear_handlers()
    create_cache_service().clear()


@pytest.fixture
def transaction_manager():
    return NoOpTransactionManager()


@pytest.fixture
def outbox_repository(transaction_manager):
    return InMemoryOutboxRepository(transaction_manager=transaction_manager)


@pytest.fixture
def listing_repository(outbox_repository, transaction_manager):
    return InMemoryListingRepository(outbox_repository, transaction_manager=transaction_manager)


@pytest.fixture
def category_repository():
    return InMemoryCategoryRepository()


@pytest.fixture
def ownership_service():
    return InMemoryItemOwnershipService()


@pytest.fixture
def cache_service():
    return MemoryCacheService(default_ttl=300, max_ttl=900)


@pytest.fixture
def domain_service(listing_repository, ownership_service, transaction_manager):
    return ListingDomainService(
        listing_repository=listing_repository,
        item_ownership_service=ownership_service,
        transaction_manager=transaction_manager,
    )


@pytest.fixture
def category_service(category_repository):
    return CategoryService(category_repository=category_repository)


@pytest.fixture
def listing_service(
    domain_service,
    category_service,
    listing_repository,
    category_repository,
    transaction_manager,
    cache_service,
    outbox_repository,
):
    """使用内存实现组装的刊登应用服务"""
    return ListingApplicationService(
        listing_domain_service=domain_service,
        category_service=category_service,
        listing_repository=listing_repository,
        category_repository=category_repository,
        transaction_manager=transaction_manager,
        cache_manager=ListingCacheManager(cache_service=cache_service),
        outbox_dispatcher=OutboxDispatcher(outbox_repository=outbox_repository, max_attempts=3),
        request_timeout=None,
    )


@pytest.fixture
def seller_id():
    return uuid.uuid4()


@pytest.fixture
def category_id():
    return uuid.uuid4()


@pytest.fixture
def location():
    return Location(*NEW_YORK)


@pytest.fixture
def owned_item(ownership_service, seller_id):
    """登记一个归属于seller_id的物品"""
    item_id = uuid.uuid4()
    ownership_service.register(item_id, seller_id)
    return item_id


@pytest.fixture
def make_listing(faker, seller_id, category_id, location):
    """
    构造一口价刊登的工厂夹具。

    Example:
        listing = make_listing(price=Money(20), location=Location(1, 2))
    """

    def factory(title=None, description=None, price=None, location=location, seller=seller_id, category=category_id):
        return Listing.create_fixed_price(
            item_id=uuid.uuid4(),
            seller_id=seller,
            category_id=category,
            title=title or faker.sentence(nb_words=4),
            description=description or faker.paragraph(nb_sentences=2),
            location=location,
            price=price or Money("25.00"),
        )

    return factory
