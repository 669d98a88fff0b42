"""
基础设施组件测试：缓存、发件箱分发、取消令牌、内存事务和Result。
"""
import time

import pytest

from core.domain import DomainEvents, OperationCancelledException, Result, ValidationException
from core.infrastructure.cache import MemoryCacheService, NoCacheService
from core.infrastructure.cancellation import CancellationToken
from core.infrastructure.outbox import (
    InMemoryOutboxRepository,
    OutboxDispatcher,
    OutboxRecord,
    OutboxStatus,
)
from listings.application.dtos import ListingDTO, ListingPageDTO
from listings.domain.events import ListingCreated
from listings.infrastructure.services.cache_manager import ListingCacheManager


class TestMemoryCache:
    def test_set_and_get(self, cache_service):
        cache_service.set("listing:1", {"title": "Lamp"})
        assert cache_service.get("listing:1") == {"title": "Lamp"}
        assert cache_service.exists("listing:1")

    def test_entry_expires(self, cache_service):
        cache_service.set("listing:1", "value", ttl=0)
        assert cache_service.get("listing:1") is None

    def test_ttl_is_capped(self):
        cache = MemoryCacheService(default_ttl=1, max_ttl=1)
        cache.set("key", "value", ttl=3600)
        time.sleep(1.05)
        assert cache.get("key") is None

    def test_delete_pattern(self, cache_service):
        cache_service.set("search:a", 1)
        cache_service.set("search:b", 2)
        cache_service.set("listing:1", 3)

        assert cache_service.delete_pattern("search:*") == 2
        assert cache_service.get("search:a") is None
        assert cache_service.get("listing:1") == 3

    def test_no_cache_service(self):
        cache = NoCacheService()
        cache.set("key", "value")
        assert cache.get("key") is None
        assert cache.delete_pattern("*") == 0


class TestListingCacheManager:
    def test_invalidate_listing_clears_detail_and_pages(self, cache_service, make_listing):
        manager = ListingCacheManager(cache_service=cache_service)
        listing = make_listing()
        dto = ListingDTO.from_aggregate(listing)
        manager.set(manager.listing_key(listing.id), dto)
        manager.set(manager.page_key("search:abc"), ListingPageDTO([dto], 1, 1, 10))
        other = make_listing()
        manager.set(manager.listing_key(other.id), "kept")

        manager.invalidate_listing(listing.id)

        assert manager.get(manager.listing_key(listing.id)) is None
        assert manager.get(manager.page_key("search:abc")) is None
        assert manager.get(manager.listing_key(other.id)) == "kept"

    def test_fill_started_before_invalidation_is_never_served(self, cache_service, make_listing):
        manager = ListingCacheManager(cache_service=cache_service)
        listing = make_listing()
        stale = ListingDTO.from_aggregate(listing)
        detail_key = manager.listing_key(listing.id)
        page_key = manager.page_key("search:abc")

        # 读取方查库期间，写操作提交并使缓存失效
        manager.invalidate_listing(listing.id)
        manager.set(detail_key, stale)
        manager.set(page_key, ListingPageDTO([stale], 1, 1, 10))

        assert manager.get(manager.listing_key(listing.id)) is None
        assert manager.get(manager.page_key("search:abc")) is None

    def test_keys_are_stable_between_writes(self, cache_service):
        manager = ListingCacheManager(cache_service=cache_service)
        assert manager.listing_key("a") == manager.listing_key("a")
        assert manager.page_key("search:abc") == manager.page_key("search:abc")
        assert manager.page_key("search:abc").startswith("search:abc:")


class TestOutboxDispatcher:
    @pytest.fixture
    def record(self, make_listing):
        listing = make_listing()
        event = listing.domain_events[0]
        return OutboxRecord.from_event(event, "Listing", listing.id)

    def test_record_round_trips_to_event(self, record):
        event = record.to_event()
        assert isinstance(event, ListingCreated)
        assert event.id == record.id
        assert event.listing_id == record.aggregate_id
        assert event.listing_type == "FixedPrice"

    def test_unknown_event_type(self, record):
        record.event_type = "SomethingElse"
        with pytest.raises(ValueError):
            record.to_event()

    def test_dispatch_publishes_and_marks_dispatched(self, record):
        outbox = InMemoryOutboxRepository()
        outbox.add(record)
        received = []
        DomainEvents.register(ListingCreated, received.append)

        dispatched = OutboxDispatcher(outbox).dispatch_pending()

        assert dispatched == 1
        assert [event.id for event in received] == [record.id]
        stored = outbox.all()[0]
        assert stored.status == OutboxStatus.DISPATCHED
        assert stored.dispatched_at is not None
        assert OutboxDispatcher(outbox).dispatch_pending() == 0

    def test_failures_are_retried_until_max_attempts(self, record):
        outbox = InMemoryOutboxRepository()
        outbox.add(record)

        def failing(event):
            raise RuntimeError("broker unavailable")

        dispatcher = OutboxDispatcher(outbox, publisher=failing, max_attempts=2)

        assert dispatcher.dispatch_pending() == 0
        assert outbox.all()[0].status == OutboxStatus.PENDING
        assert dispatcher.dispatch_pending() == 0
        stored = outbox.all()[0]
        assert stored.status == OutboxStatus.FAILED
        assert stored.attempts == 2
        assert stored.last_error == "broker unavailable"
        assert dispatcher.dispatch_pending() == 0


class TestCancellationToken:
    def test_manual_cancel(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(OperationCancelledException):
            token.raise_if_cancelled("创建刊登")

    def test_timeout(self):
        token = CancellationToken.with_timeout(0.01)
        time.sleep(0.05)
        assert token.is_cancelled

    def test_no_timeout(self):
        assert not CancellationToken.with_timeout(None).is_cancelled
        assert not CancellationToken.with_timeout(0).is_cancelled


class TestNoOpTransactionManager:
    def test_commit_callbacks_run_when_outermost_block_exits(self, transaction_manager):
        calls = []
        with transaction_manager.start():
            with transaction_manager.start():
                transaction_manager.on_commit(lambda: calls.append("commit"))
            assert calls == []
        assert calls == ["commit"]

    def test_commit_callback_outside_transaction_runs_immediately(self, transaction_manager):
        calls = []
        transaction_manager.on_commit(lambda: calls.append("now"))
        assert calls == ["now"]

    def test_rollback_runs_compensations_in_reverse(self, transaction_manager):
        calls = []
        with pytest.raises(RuntimeError):
            with transaction_manager.start():
                transaction_manager.on_rollback(lambda: calls.append("first"))
                transaction_manager.on_rollback(lambda: calls.append("second"))
                transaction_manager.on_commit(lambda: calls.append("commit"))
                raise RuntimeError("boom")
        assert calls == ["second", "first"]
        assert not transaction_manager.in_transaction


class TestResult:
    def test_success(self):
        result = Result.success(5)
        assert result.is_success
        assert result.unwrap() == 5
        assert result.error is None

    def test_failure(self):
        error = ValidationException("title", "标题不能为空")
        result = Result.failure(error)
        assert result.is_failure
        assert result.error is error
        with pytest.raises(ValueError):
            result.value
        with pytest.raises(ValidationException):
            result.unwrap()
