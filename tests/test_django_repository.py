"""
Django ORM仓储与管理命令测试，使用内存SQLite。
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
import uuid

import pytest
from django.core.management import call_command

from core.domain import ConcurrencyException, DuplicateListingException, Money
from core.infrastructure.outbox import OutboxStatus
from listings.domain import config
from listings.domain.aggregates import Listing
from listings.domain.search import BoundingBox, ListingSearchCriteria
from listings.domain.services import CategoryService
from listings.domain.value_objects import ListingStatus, ListingType, Location
from listings.infrastructure.models import Listing as ListingModel, OutboxMessage
from listings.infrastructure.repositories.django_category_repository import DjangoCategoryRepository
from listings.infrastructure.repositories.django_listing_repository import DjangoListingRepository
from listings.infrastructure.repositories.django_outbox_repository import DjangoOutboxRepository
from listings.infrastructure.services.item_ownership_service import DjangoItemOwnershipService
from tests.conftest import NEW_YORK

pytestmark = pytest.mark.django_db


@pytest.fixture
def outbox():
    return DjangoOutboxRepository()


@pytest.fixture
def repository(outbox):
    return DjangoListingRepository(outbox)


@pytest.fixture
def bulk_stored():
    """绕过仓储批量写入刊登行，用于构造大数据量场景"""

    def factory(listings):
        ListingModel.objects.bulk_create([
            ListingModel(id=listing.id, version=1, **DjangoListingRepository._to_model_fields(listing))
            for listing in listings
        ])
        return listings

    return factory


@pytest.fixture
def stored(repository, make_listing):
    """构造并保存一口价刊登"""

    def factory(**kwargs):
        return repository.add(make_listing(**kwargs))

    return factory


class TestPersistence:
    def test_auction_round_trip(self, repository, seller_id, category_id, location):
        listing = Listing.create_forward_auction(
            item_id=uuid.uuid4(), seller_id=seller_id, category_id=category_id,
            title="Guitar", description="Acoustic", location=location,
            starting_price=Money("100"), reserve_price=Money("150"), buy_now_price=Money("300"),
            duration=timedelta(days=7),
        )
        repository.add(listing)

        loaded = repository.get_by_id(listing.id)

        assert loaded.version == 1
        assert loaded.listing_type == ListingType.FORWARD_AUCTION
        assert loaded.current_price == Money("100")
        assert loaded.location == location
        assert loaded.expires_at == listing.expires_at
        settings = loaded.auction_settings
        assert settings.duration == timedelta(days=7)
        assert settings.reserve_price == Money("150")
        assert settings.buy_now_price == Money("300")
        assert settings.minimum_bid_increment == Money("5.00")
        assert settings.allow_auto_bidding is True
        assert loaded.domain_events == []

    def test_unknown_id(self, repository):
        assert repository.get_by_id(uuid.uuid4()) is None
        assert repository.get_by_id("not-a-uuid") is None

    def test_storage_rejects_second_active_listing(self, repository, make_listing):
        first = make_listing()
        repository.add(first)
        second = make_listing()
        second_item = Listing.create_free(
            item_id=first.item_id, seller_id=second.seller_id, category_id=second.category_id,
            title="Same item", description="again", location=second.location,
        )

        with pytest.raises(DuplicateListingException):
            repository.add(second_item)
        assert ListingModel.objects.filter(item_id=first.item_id).count() == 1

    def test_item_can_be_relisted_after_soft_delete(self, repository, stored, make_listing):
        first = stored()
        first.soft_delete()
        repository.save(first)

        relisted = Listing.create_free(
            item_id=first.item_id, seller_id=first.seller_id, category_id=first.category_id,
            title="Relisted", description="again", location=first.location,
        )
        repository.add(relisted)

        assert repository.get_active_by_item(first.item_id).id == relisted.id
        assert ListingModel.objects.get(id=first.id).active_item_id is None

    def test_stale_version_is_rejected(self, repository, stored):
        listing = stored()
        first = repository.get_by_id(listing.id)
        second = repository.get_by_id(listing.id)
        first.update_details(title="First writer")
        second.update_details(title="Second writer")

        repository.save(first)
        with pytest.raises(ConcurrencyException):
            repository.save(second)

        assert repository.get_by_id(listing.id).title == "First writer"
        assert repository.get_by_id(listing.id).version == 2

    def test_find_expired(self, repository, stored, seller_id, category_id, location):
        auction = Listing.create_forward_auction(
            item_id=uuid.uuid4(), seller_id=seller_id, category_id=category_id,
            title="Watch", description="Vintage", location=location,
            starting_price=Money("50"), duration=timedelta(hours=1),
        )
        repository.add(auction)
        stored()

        assert repository.find_expired() == []
        due = repository.find_expired(datetime.now(timezone.utc) + timedelta(hours=2))
        assert [listing.id for listing in due] == [auction.id]


class TestOutbox:
    def test_events_are_written_with_listing(self, stored, outbox):
        listing = stored()

        message = OutboxMessage.objects.get()
        assert message.event_type == "ListingCreated"
        assert message.aggregate_id == str(listing.id)
        assert message.payload["listing_id"] == str(listing.id)
        assert [record.id for record in outbox.get_pending()] == [message.id]

    def test_mark_dispatched_and_failed(self, stored, outbox):
        stored()
        stored()
        first, second = outbox.get_pending()

        outbox.mark_dispatched(first.id)
        outbox.mark_failed(second.id, "broker unavailable", max_attempts=2)
        assert [record.id for record in outbox.get_pending()] == [second.id]

        outbox.mark_failed(second.id, "broker unavailable", max_attempts=2)
        assert outbox.get_pending() == []
        failed = OutboxMessage.objects.get(id=second.id)
        assert failed.status == OutboxStatus.FAILED.value
        assert failed.attempts == 2


class TestSearch:
    def test_radius_search(self, repository, stored):
        lat, lon = NEW_YORK
        five_km = stored(location=Location(lat + 0.045, lon))
        two_km = stored(location=Location(lat + 0.018, lon))
        stored(location=Location(lat + 0.45, lon))

        results, total = repository.search(
            ListingSearchCriteria(latitude=lat, longitude=lon, radius_km=10, sort_by="distance")
        )

        assert total == 2
        assert [listing.id for listing in results] == [two_km.id, five_km.id]

    def test_text_search_with_token_matching(self, repository, stored):
        best = stored(title="Vintage oak table", description="Solid")
        weaker = stored(title="Dining table", description="made of OAK")
        stored(title="Oak chair", description="sturdy")

        results, total = repository.search(ListingSearchCriteria(text="oak table"))

        assert total == 2
        assert [listing.id for listing in results] == [best.id, weaker.id]

    def test_bounding_box_across_antimeridian(self, repository, stored):
        west = stored(location=Location(0, 179.9))
        east = stored(location=Location(0, -179.9))
        stored(location=Location(0, 0))

        results, total = repository.search(ListingSearchCriteria(bounding_box=BoundingBox(-1, 179, 1, -179)))

        assert total == 2
        assert {listing.id for listing in results} == {west.id, east.id}

    def test_sort_and_paginate_in_database(self, repository, stored):
        for amount in ("30", "10", "20"):
            stored(price=Money(amount))

        results, total = repository.search(ListingSearchCriteria(sort_by="price", sort_dir="desc", page_size=2))

        assert total == 3
        assert [listing.current_price.amount for listing in results] == [Decimal("30.00"), Decimal("20.00")]

    def test_title_sort_is_case_insensitive(self, repository, stored):
        for title in ("banana", "Apple", "cherry"):
            stored(title=title)

        results, _ = repository.search(ListingSearchCriteria(sort_by="title"))

        assert [listing.title for listing in results] == ["Apple", "banana", "cherry"]

    def test_price_range_stays_within_currency(self, repository, stored):
        dollars = stored(price=Money("60", "USD"))
        euros = stored(price=Money("60", "EUR"))

        results, total = repository.search(ListingSearchCriteria(min_price="50"))
        assert total == 1
        assert results[0].id == dollars.id

        results, _ = repository.search(ListingSearchCriteria(min_price="50", currency="EUR"))
        assert [listing.id for listing in results] == [euros.id]

    def test_deleted_and_inactive_are_excluded(self, repository, stored):
        active = stored()
        expired = stored()
        expired.mark_as_expired()
        repository.save(expired)
        deleted = stored()
        deleted.soft_delete()
        repository.save(deleted)

        results, total = repository.search(ListingSearchCriteria())
        assert total == 1
        assert results[0].id == active.id

        results, total = repository.search(ListingSearchCriteria(all_statuses=True))
        assert {listing.id for listing in results} == {active.id, expired.id}


class TestSearchAtScale:
    @pytest.fixture
    def loaded_rows(self, monkeypatch):
        """统计从数据库行构造的聚合数量"""
        counter = []
        original = DjangoListingRepository._to_domain_aggregate

        def counting(model):
            counter.append(model.id)
            return original(model)

        monkeypatch.setattr(DjangoListingRepository, "_to_domain_aggregate", staticmethod(counting))
        return counter

    def test_older_relevant_listing_ranks_first_among_many_matches(self, repository, make_listing, bulk_stored):
        best = make_listing(title="vintage couch vintage couch", description="Solid frame")
        newer = [make_listing(title=f"Sofa {i}", description="a comfy couch") for i in range(1005)]
        bulk_stored([best] + newer)

        results, total = repository.search(ListingSearchCriteria(text="couch"))

        assert total == 1006
        assert results[0].id == best.id
        assert len(results) == config.DEFAULT_PAGE_SIZE

    def test_relevance_ascending_puts_weakest_first(self, repository, stored):
        strong = stored(title="Oak table oak", description="oak")
        weak = stored(title="Table", description="made of oak")

        results, _ = repository.search(ListingSearchCriteria(text="oak", sort_dir="asc"))

        assert [listing.id for listing in results] == [weak.id, strong.id]

    def test_radius_search_loads_at_most_the_spatial_cap(self, repository, make_listing, bulk_stored, loaded_rows):
        lat, lon = NEW_YORK
        listings = bulk_stored([
            make_listing(location=Location(lat + 0.00002 * i, lon)) for i in range(config.MAX_SPATIAL_RESULTS + 5)
        ])

        results, total = repository.search(ListingSearchCriteria(
            latitude=lat, longitude=lon, radius_km=10, sort_by="distance",
            page=config.MAX_SPATIAL_RESULTS // 10, page_size=10,
        ))

        assert total == config.MAX_SPATIAL_RESULTS
        assert len(loaded_rows) <= config.MAX_SPATIAL_RESULTS + 10
        expected = listings[config.MAX_SPATIAL_RESULTS - 10:config.MAX_SPATIAL_RESULTS]
        assert [listing.id for listing in results] == [listing.id for listing in expected]

    def test_radius_candidates_are_the_nearest_across_antimeridian(self, repository, stored, monkeypatch):
        monkeypatch.setattr(config, "MAX_SPATIAL_RESULTS", 2)
        near_east = stored(location=Location(0, -179.99))
        near_west = stored(location=Location(0, 179.97))
        stored(location=Location(0, 179.9))

        results, total = repository.search(
            ListingSearchCriteria(latitude=0, longitude=179.995, radius_km=50, sort_by="distance")
        )

        assert total == 2
        assert [listing.id for listing in results] == [near_east.id, near_west.id]

    def test_total_count_is_capped(self, repository, make_listing, bulk_stored, monkeypatch):
        monkeypatch.setattr(config, "MAX_TOTAL_COUNT", 5)
        bulk_stored([make_listing(title=f"Lamp {i}") for i in range(8)])

        _, total = repository.search(ListingSearchCriteria())
        assert total == 5
        _, total = repository.search(ListingSearchCriteria(text="lamp"))
        assert total == 5


class TestCategoryRepository:
    def test_tree_operations(self):
        service = CategoryService(DjangoCategoryRepository())
        root = service.create_category("Home")
        child = service.create_category("Kitchen", parent_id=root.id)

        assert service.category_path(child) == "Home/Kitchen"
        assert [c.id for c in service.category_repository.get_children(root.id)] == [child.id]
        moved = service.move_category(child.id, None)
        assert moved.is_root


class TestItemOwnership:
    def test_register_and_lookup(self):
        service = DjangoItemOwnershipService()
        item_id, seller_id = uuid.uuid4(), uuid.uuid4()

        service.register(item_id, seller_id)

        assert service.get_owner_id(item_id) == seller_id
        assert service.get_owner_id(uuid.uuid4()) is None


class TestManagementCommands:
    def test_expire_listings(self, stored):
        listing = stored()
        ListingModel.objects.filter(id=listing.id).update(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        out = StringIO()

        call_command('expire_listings', '--limit', '10', stdout=out)

        assert ListingModel.objects.get(id=listing.id).status == ListingStatus.EXPIRED.value
        assert "1" in out.getvalue()

    def test_dispatch_outbox(self, stored):
        stored()
        stored()
        out = StringIO()

        call_command('dispatch_outbox', '--batch-size', '1', stdout=out)

        assert not OutboxMessage.objects.filter(status=OutboxMessage.StatusChoices.PENDING).exists()
        assert OutboxMessage.objects.filter(status=OutboxMessage.StatusChoices.DISPATCHED).count() == 2
