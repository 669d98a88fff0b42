"""
刊登应用服务测试：命令、查询、缓存失效和提交后的事件分发。
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest

from core.domain import (
    AuthorizationException,
    ConcurrencyException,
    DomainEvents,
    DuplicateListingException,
    EntityNotFoundException,
    InvalidStateTransitionException,
    Money,
    ValidationException,
)
from listings.application import (
    ConvertToAuctionCommand,
    CreateCategoryCommand,
    CreateListingCommand,
    GetListingByItemQuery,
    GetListingQuery,
    ListCategoryListingsQuery,
    ListingActionCommand,
    ListSellerListingsQuery,
    NearbyListingsQuery,
    SearchListingsQuery,
    UpdateListingCommand,
)
from listings.domain.events import ListingConvertedToAuction, ListingCreated
from tests.conftest import NEW_YORK


@pytest.fixture
def create(listing_service, ownership_service, seller_id, category_id):
    """通过应用服务创建刊登，默认创建一口价刊登"""

    def factory(listing_type="FixedPrice", item_id=None, title="Oak table", latitude=NEW_YORK[0],
                longitude=NEW_YORK[1], **kwargs):
        if item_id is None:
            item_id = uuid.uuid4()
            ownership_service.register(item_id, seller_id)
        if listing_type == "FixedPrice":
            kwargs.setdefault("price", Decimal("25.00"))
        command = CreateListingCommand(
            listing_type=listing_type,
            seller_id=seller_id,
            item_id=item_id,
            category_id=category_id,
            title=title,
            description="Solid wood furniture",
            latitude=latitude,
            longitude=longitude,
            **kwargs
        )
        return listing_service.create_listing(command)

    return factory


class TestCreate:
    def test_create_returns_dto(self, create):
        result = create(listing_type="ForwardAuction", starting_price=Decimal("100"),
                        reserve_price=Decimal("150"), duration=timedelta(days=7))
        assert result.is_success
        dto = result.value
        data = dto.to_dict()
        assert data["type"] == "ForwardAuction"
        assert data["currentPrice"] == {"amount": "100.00", "currency": "USD"}
        assert data["auctionSettings"]["minimumBidIncrement"] == {"amount": "5.00", "currency": "USD"}
        assert data["version"] == 1

    def test_invalid_coordinates_fail_without_writes(self, create, listing_repository):
        result = create(latitude=91)
        assert isinstance(result.error, ValidationException)
        assert listing_repository.count() == 0

    def test_unknown_type_fails(self, create):
        result = create(listing_type="Barter")
        assert isinstance(result.error, ValidationException)

    def test_created_event_is_dispatched_after_commit(self, create, outbox_repository):
        received = []
        DomainEvents.register(ListingCreated, received.append)

        dto = create().value

        assert len(received) == 1
        assert received[0].listing_id == dto.id
        assert [r.status.value for r in outbox_repository.all()] == ["DISPATCHED"]


class TestUpdate:
    def test_owner_updates_details_and_location(self, create, listing_service, seller_id):
        dto = create().value
        result = listing_service.update_listing(UpdateListingCommand(
            listing_id=dto.id, requester_id=seller_id, title="Walnut table", latitude=34.05, longitude=-118.24
        ))
        assert result.is_success
        assert result.value.title == "Walnut table"
        assert result.value.latitude == pytest.approx(34.05)
        assert result.value.version == 2

    def test_non_owner_cannot_update(self, create, listing_service):
        dto = create().value
        result = listing_service.update_listing(UpdateListingCommand(
            listing_id=dto.id, requester_id=uuid.uuid4(), title="Hijacked"
        ))
        assert isinstance(result.error, AuthorizationException)
        assert listing_service.get_listing(GetListingQuery(dto.id)).title == "Oak table"

    def test_update_missing_listing(self, listing_service, seller_id):
        result = listing_service.update_listing(UpdateListingCommand(
            listing_id=uuid.uuid4(), requester_id=seller_id, title="x"
        ))
        assert isinstance(result.error, EntityNotFoundException)

    def test_cached_detail_is_invalidated_by_update(self, create, listing_service, seller_id):
        dto = create().value
        assert listing_service.get_listing(GetListingQuery(dto.id)).title == "Oak table"

        listing_service.update_listing(UpdateListingCommand(
            listing_id=dto.id, requester_id=seller_id, title="Pine table"
        ))

        assert listing_service.get_listing(GetListingQuery(dto.id)).title == "Pine table"

    def test_read_racing_an_update_does_not_pin_stale_detail(
        self, create, listing_service, listing_repository, seller_id, monkeypatch
    ):
        dto = create().value
        original_get = listing_repository.get_by_id
        raced = []

        def get_then_commit_update(listing_id):
            snapshot = original_get(listing_id)
            if not raced:
                raced.append(True)
                listing_service.update_listing(UpdateListingCommand(
                    listing_id=dto.id, requester_id=seller_id, title="Pine table"
                ))
            return snapshot

        monkeypatch.setattr(listing_repository, "get_by_id", get_then_commit_update)

        # 本次读取拿到的是更新前的快照
        assert listing_service.get_listing(GetListingQuery(dto.id)).title == "Oak table"
        monkeypatch.setattr(listing_repository, "get_by_id", original_get)
        assert listing_service.get_listing(GetListingQuery(dto.id)).title == "Pine table"


class TestDeleteAndRestore:
    def test_delete_is_idempotent(self, create, listing_service, seller_id):
        dto = create().value
        command = ListingActionCommand(listing_id=dto.id, requester_id=seller_id)

        assert listing_service.delete_listing(command).value is True
        assert listing_service.delete_listing(command).value is False
        assert listing_service.get_listing(GetListingQuery(dto.id)) is None

    def test_non_owner_cannot_delete(self, create, listing_service):
        dto = create().value
        result = listing_service.delete_listing(ListingActionCommand(listing_id=dto.id, requester_id=uuid.uuid4()))
        assert isinstance(result.error, AuthorizationException)

    def test_restore(self, create, listing_service, seller_id):
        dto = create().value
        command = ListingActionCommand(listing_id=dto.id, requester_id=seller_id)
        listing_service.delete_listing(command)

        restored = listing_service.restore_listing(command)

        assert restored.is_success
        assert restored.value.status == "Active"
        assert not restored.value.is_deleted

    def test_restore_conflicts_with_newer_listing_for_item(self, create, listing_service, seller_id):
        first = create().value
        listing_service.delete_listing(ListingActionCommand(listing_id=first.id, requester_id=seller_id))
        assert create(item_id=uuid.UUID(first.item_id)).is_success

        result = listing_service.restore_listing(ListingActionCommand(listing_id=first.id, requester_id=seller_id))

        assert isinstance(result.error, DuplicateListingException)


class TestConversion:
    def test_convert_free_to_auction(self, create, listing_service):
        received = []
        DomainEvents.register(ListingConvertedToAuction, received.append)
        dto = create(listing_type="FreeToAuction", duration=timedelta(days=3)).value

        result = listing_service.convert_to_auction(ConvertToAuctionCommand(
            listing_id=dto.id, first_bid_amount=Decimal("10"), expected_version=dto.version
        ))

        assert result.is_success
        assert result.value.listing_type == "ForwardAuction"
        assert result.value.current_price == {"amount": "10.00", "currency": "USD"}
        assert result.value.expires_at is not None
        assert len(received) == 1

    def test_second_conversion_fails(self, create, listing_service):
        dto = create(listing_type="FreeToAuction").value
        command = ConvertToAuctionCommand(listing_id=dto.id, first_bid_amount=Decimal("10"))
        assert listing_service.convert_to_auction(command).is_success

        result = listing_service.convert_to_auction(command)
        assert isinstance(result.error, InvalidStateTransitionException)

    def test_stale_expected_version_conflicts(self, create, listing_service):
        dto = create(listing_type="FreeToAuction").value
        result = listing_service.convert_to_auction(ConvertToAuctionCommand(
            listing_id=dto.id, first_bid_amount=Decimal("10"), expected_version=dto.version + 1
        ))
        assert isinstance(result.error, ConcurrencyException)

    def test_racing_conversions_on_stale_copies(self, create, listing_repository, transaction_manager):
        dto = create(listing_type="FreeToAuction").value
        first = listing_repository.get_by_id(dto.id)
        second = listing_repository.get_by_id(dto.id)
        first.convert_to_forward_auction(Money("10"))
        second.convert_to_forward_auction(Money("12"))

        with transaction_manager.start():
            listing_repository.save(first)
        with pytest.raises(ConcurrencyException):
            with transaction_manager.start():
                listing_repository.save(second)


class TestStatusOperations:
    def test_mark_completed_by_owner(self, create, listing_service, seller_id):
        dto = create().value
        result = listing_service.mark_completed(ListingActionCommand(listing_id=dto.id, requester_id=seller_id))
        assert result.value.status == "Completed"

    def test_system_can_expire_without_requester(self, create, listing_service):
        dto = create().value
        result = listing_service.mark_expired(ListingActionCommand(listing_id=dto.id, requester_id=None))
        assert result.value.status == "Expired"
        again = listing_service.mark_expired(ListingActionCommand(listing_id=dto.id, requester_id=None))
        assert isinstance(again.error, InvalidStateTransitionException)

    def test_record_view(self, create, listing_service):
        dto = create().value
        assert listing_service.record_view(dto.id).value == 1
        assert listing_service.record_view(dto.id).value == 2
        assert isinstance(listing_service.record_view(uuid.uuid4()).error, EntityNotFoundException)

    def test_expire_due_listings(self, create, listing_service):
        auction = create(listing_type="ForwardAuction", starting_price=Decimal("5"), duration=timedelta(days=1)).value
        fixed = create().value

        expired = listing_service.expire_due_listings(now=datetime.now(timezone.utc) + timedelta(days=2))

        assert expired == 1
        assert listing_service.get_listing(GetListingQuery(auction.id)).status == "Expired"
        assert listing_service.get_listing(GetListingQuery(fixed.id)).status == "Active"


class TestQueries:
    def test_get_listing_by_item(self, create, listing_service):
        dto = create().value
        found = listing_service.get_listing_by_item(GetListingByItemQuery(dto.item_id))
        assert found.id == dto.id
        assert listing_service.get_listing_by_item(GetListingByItemQuery(uuid.uuid4())) is None

    def test_search_cache_is_invalidated_by_new_listing(self, create, listing_service):
        create(title="Oak table")
        query = SearchListingsQuery(text="table")
        assert listing_service.search_listings(query).total_count == 1

        create(title="Glass table")

        assert listing_service.search_listings(query).total_count == 2

    def test_nearby_is_sorted_by_distance(self, create, listing_service):
        far = create(latitude=NEW_YORK[0] + 0.045).value
        near = create(latitude=NEW_YORK[0] + 0.018).value
        create(latitude=NEW_YORK[0] + 0.45)

        page = listing_service.nearby_listings(NearbyListingsQuery(latitude=NEW_YORK[0], longitude=NEW_YORK[1]))

        assert [item.id for item in page.items] == [near.id, far.id]
        assert page.items[0].distance_km == pytest.approx(2.0, abs=0.05)

    def test_seller_listings_include_all_statuses(self, create, listing_service, seller_id):
        active = create().value
        completed = create().value
        listing_service.mark_completed(ListingActionCommand(listing_id=completed.id, requester_id=seller_id))
        create_other = create().value
        listing_service.delete_listing(ListingActionCommand(listing_id=create_other.id, requester_id=seller_id))

        page = listing_service.list_seller_listings(ListSellerListingsQuery(seller_id=seller_id))
        assert {item.id for item in page.items} == {active.id, completed.id}

        only_active = listing_service.list_seller_listings(ListSellerListingsQuery(seller_id=seller_id, status="Active"))
        assert [item.id for item in only_active.items] == [active.id]

    def test_invalid_search_raises_validation(self, listing_service):
        with pytest.raises(ValidationException):
            listing_service.search_listings(SearchListingsQuery(page_size=101))
        with pytest.raises(ValidationException):
            listing_service.search_listings(SearchListingsQuery(min_latitude=1, min_longitude=1))

    def test_category_listings_require_existing_category(self, listing_service):
        with pytest.raises(EntityNotFoundException):
            listing_service.list_category_listings(ListCategoryListingsQuery(category_id=uuid.uuid4()))

    def test_category_listings(self, listing_service, ownership_service, seller_id):
        category = listing_service.create_category(CreateCategoryCommand(name="Furniture"))
        item_id = uuid.uuid4()
        ownership_service.register(item_id, seller_id)
        listing_service.create_listing(CreateListingCommand(
            listing_type="Free", seller_id=seller_id, item_id=item_id, category_id=category.id,
            title="Chair", description="Wooden chair", latitude=0, longitude=0,
        ))

        page = listing_service.list_category_listings(ListCategoryListingsQuery(category_id=category.id))
        assert page.total_count == 1
        assert page.items[0].title == "Chair"
