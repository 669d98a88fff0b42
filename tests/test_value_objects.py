"""
值对象测试：Money、Location、AuctionSettings以及类型/状态枚举。
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from core.domain import CurrencyMismatchException, Money, ValidationException
from listings.domain.value_objects import (
    AuctionSettings,
    ListingStatus,
    ListingType,
    Location,
    calculate_minimum_bid_increment,
)


class TestMoney:
    def test_negative_amount_is_rejected(self):
        with pytest.raises(ValidationException):
            Money("-0.01")

    def test_blank_currency_is_rejected(self):
        with pytest.raises(ValidationException):
            Money("1.00", "  ")

    def test_non_numeric_amount_is_rejected(self):
        with pytest.raises(ValidationException):
            Money("abc")

    def test_currency_is_normalized(self):
        assert Money("1", "eur").currency == "EUR"

    def test_addition_and_subtraction_are_inverse(self):
        a = Money("12.34")
        b = Money("0.66")
        assert (a + b) - b == a
        assert (a + b).amount == Decimal("13.00")

    def test_subtraction_below_zero_fails(self):
        with pytest.raises(ValidationException):
            Money("1.00") - Money("2.00")

    def test_cross_currency_arithmetic_fails(self):
        with pytest.raises(CurrencyMismatchException):
            Money("1", "USD") + Money("1", "EUR")
        with pytest.raises(CurrencyMismatchException):
            Money("1", "USD") < Money("2", "EUR")

    def test_cents_helpers(self):
        assert Money.from_cents(1999).amount == Decimal("19.99")
        assert Money("10.005").to_cents() == 1001
        with pytest.raises(ValidationException):
            Money.from_cents(1.5)

    def test_money_is_immutable(self):
        money = Money("5")
        with pytest.raises(AttributeError):
            money.amount = Decimal("6")

    def test_to_dict_uses_two_decimals(self):
        assert Money(0).to_dict() == {"amount": "0.00", "currency": "USD"}


class TestLocation:
    @pytest.mark.parametrize("latitude,longitude", [(90.01, 0), (-90.01, 0), (0, 180.5), (0, -181)])
    def test_out_of_range_coordinates_are_rejected(self, latitude, longitude):
        with pytest.raises(ValidationException):
            Location(latitude, longitude)

    def test_non_numeric_coordinate_is_rejected(self):
        with pytest.raises(ValidationException):
            Location("north", 0)

    def test_distance_is_zero_for_same_point(self):
        point = Location(40.7128, -74.0060)
        assert point.distance_to(Location(40.7128, -74.0060)) == 0

    def test_distance_is_symmetric_and_positive(self):
        new_york = Location(40.7128, -74.0060)
        london = Location(51.5074, -0.1278)
        there = new_york.distance_to(london)
        back = london.distance_to(new_york)
        assert there == pytest.approx(back)
        # 纽约到伦敦约5570公里
        assert 5500 < there < 5650

    def test_distance_across_antimeridian(self):
        west = Location(0, 179.9)
        east = Location(0, -179.9)
        assert west.distance_to(east) == pytest.approx(22.24, abs=0.05)

    def test_equal_locations_are_equal(self):
        assert Location(1.5, 2.5) == Location(1.5, 2.5)
        assert hash(Location(1.5, 2.5)) == hash(Location(1.5, 2.5))


class TestAuctionSettings:
    def test_minimum_increment_is_five_percent(self):
        assert calculate_minimum_bid_increment(Money("100")) == Money("5.00")
        assert calculate_minimum_bid_increment(Money("123.45")) == Money("6.17")

    def test_minimum_increment_has_one_dollar_floor(self):
        assert calculate_minimum_bid_increment(Money("10")) == Money("1.00")
        assert calculate_minimum_bid_increment(Money("0")) == Money("1.00")

    def test_forward_auction_settings(self):
        settings = AuctionSettings.for_forward_auction(
            starting_price=Money("100"),
            duration=timedelta(days=7),
            reserve_price=Money("150"),
            buy_now_price=Money("300"),
        )
        assert settings.minimum_bid_increment == Money("5.00")
        assert settings.allow_auto_bidding is True
        assert settings.currency == "USD"

    @pytest.mark.parametrize("duration", [timedelta(minutes=59), timedelta(days=30, seconds=1)])
    def test_duration_bounds(self, duration):
        with pytest.raises(ValidationException):
            AuctionSettings.for_forward_auction(starting_price=Money("10"), duration=duration)

    def test_duration_bounds_are_inclusive(self):
        AuctionSettings.for_forward_auction(starting_price=Money("10"), duration=timedelta(hours=1))
        AuctionSettings.for_forward_auction(starting_price=Money("10"), duration=timedelta(days=30))

    def test_reserve_below_starting_price_is_rejected(self):
        with pytest.raises(ValidationException):
            AuctionSettings.for_forward_auction(
                starting_price=Money("100"), duration=timedelta(days=7), reserve_price=Money("50")
            )

    def test_buy_now_below_starting_price_is_rejected(self):
        with pytest.raises(ValidationException):
            AuctionSettings.for_forward_auction(
                starting_price=Money("100"), duration=timedelta(days=7), buy_now_price=Money("99.99")
            )

    def test_reverse_auction_disables_auto_bidding(self):
        settings = AuctionSettings.for_reverse_auction(Money("80"), timedelta(days=3))
        assert settings.max_price == Money("80")
        assert settings.allow_auto_bidding is False
        assert settings.minimum_bid_increment == Money("4.00")

    def test_free_to_auction_settings(self):
        settings = AuctionSettings.for_free_to_auction(timedelta(days=2))
        assert settings.starting_price == Money("0")
        assert settings.minimum_bid_increment == Money("1.00")
        assert settings.allow_auto_bidding is True

    def test_direct_construction_is_not_allowed(self):
        with pytest.raises(TypeError):
            AuctionSettings(duration=timedelta(days=1))


class TestEnums:
    def test_listing_type_parse_accepts_value_and_name(self):
        assert ListingType.parse("ForwardAuction") is ListingType.FORWARD_AUCTION
        assert ListingType.parse("fixed_price") is ListingType.FIXED_PRICE

    def test_unknown_listing_type_is_rejected(self):
        with pytest.raises(ValidationException):
            ListingType.parse("Barter")

    def test_auction_types(self):
        assert ListingType.FREE_TO_AUCTION.is_auction
        assert not ListingType.FIXED_PRICE.is_auction

    def test_status_parse(self):
        assert ListingStatus.parse("expired") is ListingStatus.EXPIRED
        with pytest.raises(ValidationException):
            ListingStatus.parse("Sold")
