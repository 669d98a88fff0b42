"""
刊登聚合测试：五个工厂方法、状态迁移和领域事件。
"""
from datetime import datetime, timedelta, timezone
import uuid

import pytest

from core.domain import (
    CurrencyMismatchException,
    InvalidStateTransitionException,
    Money,
    ValidationException,
)
from listings.domain.aggregates import Listing
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
from listings.domain.value_objects import ListingStatus, ListingType, Location


@pytest.fixture
def ids():
    return dict(item_id=uuid.uuid4(), seller_id=uuid.uuid4(), category_id=uuid.uuid4())


@pytest.fixture
def free_to_auction(ids, location):
    return Listing.create_free_to_auction(
        title="Old bicycle", description="Needs new tires", location=location,
        duration=timedelta(days=5), **ids
    )


def event_types(listing):
    return [type(event) for event in listing.domain_events]


class TestFactories:
    def test_free_listing(self, ids, location):
        before = datetime.now(timezone.utc)
        listing = Listing.create_free(title="Free Couch", description="Comfy", location=location, **ids)

        assert listing.status == ListingStatus.ACTIVE
        assert listing.listing_type == ListingType.FREE
        assert listing.current_price == Money("0", "USD")
        assert listing.auction_settings is None
        assert before + timedelta(days=30) <= listing.expires_at <= datetime.now(timezone.utc) + timedelta(days=30)
        assert event_types(listing) == [ListingCreated]

    def test_free_to_auction_listing(self, free_to_auction):
        assert free_to_auction.listing_type == ListingType.FREE_TO_AUCTION
        assert free_to_auction.current_price.is_zero()
        assert free_to_auction.expires_at is None
        assert free_to_auction.auction_settings.duration == timedelta(days=5)
        assert free_to_auction.auction_settings.allow_auto_bidding is True

    def test_forward_auction_listing(self, ids, location):
        listing = Listing.create_forward_auction(
            title="Guitar", description="Acoustic", location=location,
            starting_price=Money("100"), reserve_price=Money("150"), duration=timedelta(days=7), **ids
        )
        assert listing.listing_type == ListingType.FORWARD_AUCTION
        assert listing.current_price == Money("100")
        assert listing.auction_settings.minimum_bid_increment == Money("5.00")
        assert listing.expires_at - listing.created_at == timedelta(days=7)

    def test_forward_auction_defaults_to_seven_days(self, ids, location):
        listing = Listing.create_forward_auction(
            title="Guitar", description="Acoustic", location=location, starting_price=Money("100"), **ids
        )
        assert listing.auction_settings.duration == timedelta(days=7)

    def test_forward_auction_with_low_reserve_fails(self, ids, location):
        with pytest.raises(ValidationException):
            Listing.create_forward_auction(
                title="Guitar", description="Acoustic", location=location,
                starting_price=Money("100"), reserve_price=Money("50"), duration=timedelta(days=7), **ids
            )

    def test_reverse_auction_listing(self, ids, location):
        listing = Listing.create_reverse_auction(
            title="Wanted: lawn mower", description="Any brand", location=location,
            max_price=Money("80"), duration=timedelta(days=3), **ids
        )
        assert listing.listing_type == ListingType.REVERSE_AUCTION
        assert listing.current_price == Money("80")
        assert listing.auction_settings.allow_auto_bidding is False
        assert listing.expires_at is not None

    def test_fixed_price_listing(self, ids, location):
        listing = Listing.create_fixed_price(
            title="Desk", description="Standing desk", location=location, price=Money("199.99"), **ids
        )
        assert listing.listing_type == ListingType.FIXED_PRICE
        assert listing.status == ListingStatus.ACTIVE
        assert listing.expires_at is None

    def test_direct_construction_is_not_allowed(self, ids, location):
        now = datetime.now(timezone.utc)
        with pytest.raises(TypeError):
            Listing(
                id=uuid.uuid4(), title="x", description="y", location=location,
                listing_type=ListingType.FREE, status=ListingStatus.ACTIVE, current_price=Money(0),
                auction_settings=None, created_at=now, updated_at=now, **ids
            )

    @pytest.mark.parametrize("title", ["", "   ", "x" * 201])
    def test_invalid_title(self, ids, location, title):
        with pytest.raises(ValidationException):
            Listing.create_free(title=title, description="desc", location=location, **ids)

    def test_description_length_limit(self, ids, location):
        Listing.create_free(title="ok", description="d" * 5000, location=location, **ids)
        with pytest.raises(ValidationException):
            Listing.create_free(title="ok", description="d" * 5001, location=location, **ids)

    def test_nil_identifier_is_rejected(self, ids, location):
        ids["item_id"] = uuid.UUID(int=0)
        with pytest.raises(ValidationException):
            Listing.create_free(title="ok", description="desc", location=location, **ids)


class TestConversion:
    def test_convert_free_to_auction(self, free_to_auction):
        free_to_auction.clear_domain_events()
        before = datetime.now(timezone.utc)

        free_to_auction.convert_to_forward_auction(Money("10"))

        assert free_to_auction.listing_type == ListingType.FORWARD_AUCTION
        assert free_to_auction.current_price == Money("10")
        assert free_to_auction.expires_at >= before + timedelta(days=5)
        assert event_types(free_to_auction) == [ListingConvertedToAuction]

    def test_second_conversion_fails(self, free_to_auction):
        free_to_auction.convert_to_forward_auction(Money("10"))
        with pytest.raises(InvalidStateTransitionException):
            free_to_auction.convert_to_forward_auction(Money("12"))
        assert free_to_auction.current_price == Money("10")

    def test_only_free_to_auction_can_convert(self, ids, location):
        listing = Listing.create_fixed_price(
            title="Desk", description="Standing desk", location=location, price=Money("50"), **ids
        )
        with pytest.raises(InvalidStateTransitionException):
            listing.convert_to_forward_auction(Money("10"))

    def test_inactive_listing_cannot_convert(self, free_to_auction):
        free_to_auction.soft_delete()
        with pytest.raises(InvalidStateTransitionException):
            free_to_auction.convert_to_forward_auction(Money("10"))

    def test_currency_must_match(self, free_to_auction):
        with pytest.raises(CurrencyMismatchException):
            free_to_auction.convert_to_forward_auction(Money("10", "EUR"))
        assert free_to_auction.listing_type == ListingType.FREE_TO_AUCTION


class TestLifecycle:
    @pytest.fixture
    def listing(self, ids, location):
        listing = Listing.create_fixed_price(
            title="Lamp", description="Brass lamp", location=location, price=Money("30"), **ids
        )
        listing.clear_domain_events()
        return listing

    def test_soft_delete_and_restore(self, listing):
        listing.soft_delete()
        assert listing.is_deleted
        assert listing.status == ListingStatus.CANCELLED

        listing.restore()
        assert not listing.is_deleted
        assert listing.status == ListingStatus.ACTIVE
        assert event_types(listing) == [ListingSoftDeleted, ListingRestored]

    def test_soft_delete_twice_fails(self, listing):
        listing.soft_delete()
        with pytest.raises(InvalidStateTransitionException):
            listing.soft_delete()

    def test_restore_without_delete_fails(self, listing):
        with pytest.raises(InvalidStateTransitionException):
            listing.restore()

    def test_soft_delete_event_carries_previous_status(self, listing):
        listing.mark_as_expired()
        listing.soft_delete()
        event = listing.domain_events[-1]
        assert event.previous_status == ListingStatus.EXPIRED

    def test_expired_is_terminal(self, listing):
        listing.mark_as_expired()
        assert listing.status == ListingStatus.EXPIRED
        with pytest.raises(InvalidStateTransitionException):
            listing.mark_as_completed()
        with pytest.raises(InvalidStateTransitionException):
            listing.mark_as_expired()
        assert event_types(listing) == [ListingExpired]

    def test_completed_records_time_and_price(self, listing):
        listing.mark_as_completed()
        assert listing.status == ListingStatus.COMPLETED
        assert listing.completed_at is not None
        event = listing.domain_events[-1]
        assert isinstance(event, ListingCompleted)
        assert event.final_price == Money("30")

    def test_update_location(self, listing):
        new_location = Location(34.0522, -118.2437)
        listing.update_location(new_location)
        assert listing.location == new_location
        assert event_types(listing) == [ListingLocationUpdated]

    def test_update_location_to_same_point_is_noop(self, listing, location):
        listing.update_location(Location(location.latitude, location.longitude))
        assert listing.domain_events == []

    def test_update_location_requires_active(self, listing):
        listing.mark_as_completed()
        with pytest.raises(InvalidStateTransitionException):
            listing.update_location(Location(0, 0))

    def test_update_details_reports_changed_fields(self, listing):
        changed = listing.update_details(title="Brass lamp", description="   ")
        assert changed == ["title"]
        assert listing.title == "Brass lamp"
        assert listing.description == "Brass lamp"
        assert event_types(listing) == [ListingUpdated]

    def test_update_details_without_changes(self, listing):
        assert listing.update_details(title=listing.title) == []
        assert listing.domain_events == []

    def test_update_details_on_deleted_listing_fails(self, listing):
        listing.soft_delete()
        with pytest.raises(InvalidStateTransitionException):
            listing.update_details(title="New")

    def test_view_count_has_no_precondition(self, listing):
        listing.mark_as_expired()
        assert listing.increment_view_count() == 1
        assert listing.increment_view_count() == 2

    def test_past_expiry(self, ids, location):
        listing = Listing.create_free(title="Chair", description="Wooden", location=location, **ids)
        assert not listing.is_past_expiry()
        assert listing.is_past_expiry(datetime.now(timezone.utc) + timedelta(days=31))
