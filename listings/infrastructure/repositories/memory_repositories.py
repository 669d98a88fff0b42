"""
内存仓储实现。
用于单元测试和无数据库的本地运行：行为与Django实现保持一致，
包括物品唯一性约束、版本号比对，以及配合NoOpTransactionManager的回滚补偿。
"""
import copy
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import uuid

from loguru import logger

from core.domain import ConcurrencyException, DuplicateListingException
from core.infrastructure.outbox import OutboxRecord, OutboxRepository
from core.infrastructure.transaction import TransactionManager
from listings.domain.aggregates import ENTITY_NAME, Listing
from listings.domain.entities import Category
from listings.domain.repositories import CategoryRepository, ItemOwnershipService, ListingRepository
from listings.domain.search import ListingSearchCriteria, run_in_memory_search
from listings.infrastructure.repositories.django_listing_repository import AGGREGATE_TYPE


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def _snapshot(listing: Listing) -> Listing:
    # 值对象不可变，浅拷贝即可隔离存储中的状态
    stored = copy.copy(listing)
    stored._domain_events = []
    return stored


class InMemoryListingRepository(ListingRepository):
    """
    内存刊登仓储。
    """

    def __init__(
        self,
        outbox_repository: OutboxRepository,
        transaction_manager: Optional[TransactionManager] = None
    ):
        """
        初始化内存刊登仓储。

        Args:
            outbox_repository: 发件箱仓储
            transaction_manager: 事务管理器，用于登记回滚补偿
        """
        self.outbox_repository = outbox_repository
        self.transaction_manager = transaction_manager
        self._listings: Dict[uuid.UUID, Listing] = {}
        self._lock = threading.RLock()

    def _on_rollback(self, callback) -> None:
        if self.transaction_manager is not None:
            self.transaction_manager.on_rollback(callback)

    def _active_for_item(self, item_id: uuid.UUID, exclude_id: Any = None) -> Optional[Listing]:
        for stored in self._listings.values():
            if stored.item_id == item_id and not stored.is_deleted and stored.id != exclude_id:
                return stored
        return None

    def get_by_id(self, id: Any) -> Optional[Listing]:
        listing_id = _as_uuid(id)
        with self._lock:
            stored = self._listings.get(listing_id)
            return _snapshot(stored) if stored is not None else None

    def get_active_by_item(self, item_id: Any) -> Optional[Listing]:
        item_uuid = _as_uuid(item_id)
        with self._lock:
            stored = self._active_for_item(item_uuid)
            return _snapshot(stored) if stored is not None else None

    def exists_active_for_item(self, item_id: Any) -> bool:
        item_uuid = _as_uuid(item_id)
        with self._lock:
            return self._active_for_item(item_uuid) is not None

    def add(self, listing: Listing) -> Listing:
        with self._lock:
            if self._active_for_item(listing.item_id) is not None:
                raise DuplicateListingException(listing.item_id)
            listing.mark_persisted(1)
            self._listings[listing.id] = _snapshot(listing)
            self._write_outbox(listing)
        self._on_rollback(lambda: self._remove(listing.id))
        logger.debug(f"刊登已新增(内存): id={listing.id}")
        return listing

    def save(self, listing: Listing) -> Listing:
        with self._lock:
            previous = self._listings.get(listing.id)
            if previous is None or previous.version != listing.version:
                raise ConcurrencyException(ENTITY_NAME, listing.id, listing.version)
            if not listing.is_deleted and self._active_for_item(listing.item_id, exclude_id=listing.id):
                raise DuplicateListingException(listing.item_id)
            listing.mark_persisted(previous.version + 1)
            self._listings[listing.id] = _snapshot(listing)
            self._write_outbox(listing)
        self._on_rollback(lambda: self._put(previous))
        return listing

    def _remove(self, listing_id: uuid.UUID) -> None:
        with self._lock:
            self._listings.pop(listing_id, None)

    def _put(self, listing: Listing) -> None:
        with self._lock:
            self._listings[listing.id] = listing

    def _write_outbox(self, listing: Listing) -> None:
        for event in listing.clear_domain_events():
            self.outbox_repository.add(OutboxRecord.from_event(event, AGGREGATE_TYPE, listing.id))

    def search(self, criteria: ListingSearchCriteria) -> Tuple[List[Listing], int]:
        with self._lock:
            candidates = [_snapshot(stored) for stored in self._listings.values()]
        return run_in_memory_search(candidates, criteria)

    def find_expired(self, now: Optional[datetime] = None, limit: int = 500) -> List[Listing]:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            due = [
                _snapshot(stored) for stored in self._listings.values()
                if not stored.is_deleted and stored.is_past_expiry(now)
            ]
        due.sort(key=lambda listing: listing.expires_at)
        return due[:limit]

    def count(self) -> int:
        with self._lock:
            return len(self._listings)


class InMemoryCategoryRepository(CategoryRepository):
    """内存分类仓储"""

    def __init__(self):
        self._categories: Dict[uuid.UUID, Category] = {}
        self._lock = threading.RLock()

    def get_by_id(self, id: Any) -> Optional[Category]:
        with self._lock:
            stored = self._categories.get(_as_uuid(id))
            return copy.copy(stored) if stored is not None else None

    def get_parent_id(self, category_id: Any) -> Optional[uuid.UUID]:
        with self._lock:
            stored = self._categories.get(_as_uuid(category_id))
            return stored.parent_id if stored is not None else None

    def get_children(self, parent_id: Any) -> List[Category]:
        parent_uuid = _as_uuid(parent_id)
        with self._lock:
            children = [copy.copy(c) for c in self._categories.values() if c.parent_id == parent_uuid]
        return sorted(children, key=lambda c: c.name)

    def exists(self, category_id: Any) -> bool:
        with self._lock:
            return _as_uuid(category_id) in self._categories

    def add(self, category: Category) -> Category:
        with self._lock:
            self._categories[category.id] = copy.copy(category)
        return category

    def save(self, category: Category) -> Category:
        return self.add(category)


class InMemoryItemOwnershipService(ItemOwnershipService):
    """内存物品所有权服务，测试中通过register登记物品归属"""

    def __init__(self):
        self._owners: Dict[uuid.UUID, uuid.UUID] = {}

    def register(self, item_id: Any, seller_id: Any) -> None:
        self._owners[_as_uuid(item_id)] = _as_uuid(seller_id)

    def get_owner_id(self, item_id: Any) -> Optional[uuid.UUID]:
        return self._owners.get(_as_uuid(item_id))
