"""
Pricing visibility tests.

One listing, different truths: producers see the order total, carriers
see their own per-truck price.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from backend.app.domain.freight.pricing_visibility import PricingError, PricingVisibilityEngine
from backend.app.models.enums import UserRole
from backend.app.models.freight_enums import AssignmentStatus, PricingType


def freight_row(**overrides):
    values = dict(
        pricing_type=PricingType.FIXED,
        price=Decimal("100.00"),
        price_per_km=None,
        price_per_ton=None,
        distance_km=None,
        weight_tons=None,
        required_trucks=1,
        accepted_trucks=0,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def assignment(agreed_price, status=AssignmentStatus.ACCEPTED):
    return SimpleNamespace(agreed_price=Decimal(agreed_price), status=status)


class TestUnitPrice:

    def test_fixed(self):
        assert PricingVisibilityEngine.unit_price(freight_row(price=Decimal("1500"))) == Decimal("1500.00")

    def test_per_km(self):
        row = freight_row(pricing_type=PricingType.PER_KM, price=None,
                          price_per_km=Decimal("3.50"), distance_km=Decimal("420"))
        assert PricingVisibilityEngine.unit_price(row) == Decimal("1470.00")

    def test_per_ton_rounds_half_up(self):
        row = freight_row(pricing_type=PricingType.PER_TON, price=None,
                          price_per_ton=Decimal("12.345"), weight_tons=Decimal("1"))
        assert PricingVisibilityEngine.unit_price(row) == Decimal("12.35")

    def test_missing_input_raises(self):
        row = freight_row(pricing_type=PricingType.PER_KM, price=None, price_per_km=Decimal("3"))
        with pytest.raises(PricingError) as exc_info:
            PricingVisibilityEngine.unit_price(row)
        assert exc_info.value.reason == "MISSING_PRICE_INPUT"


class TestRoleViews:

    def test_producer_sees_sum_of_agreed_prices(self):
        row = freight_row(required_trucks=3, accepted_trucks=3)
        assignments = [assignment("100"), assignment("120"), assignment("90")]

        view = PricingVisibilityEngine.view_for(row, UserRole.PRODUCER, assignments)

        assert view.display_price == Decimal("310.00")
        assert view.payment_price == Decimal("310.00")
        assert view.is_aggregate

    def test_each_driver_sees_own_agreed_price(self):
        row = freight_row(required_trucks=3, accepted_trucks=3)
        assignments = [assignment("100"), assignment("120"), assignment("90")]

        for mine in assignments:
            view = PricingVisibilityEngine.view_for(row, UserRole.DRIVER, assignments, mine)
            assert view.display_price == mine.agreed_price
            assert view.payment_price == mine.agreed_price
            assert not view.is_aggregate

    def test_producer_total_before_acceptance_is_unit_times_trucks(self):
        row = freight_row(price=Decimal("250"), required_trucks=4)
        view = PricingVisibilityEngine.view_for(row, "PRODUTOR", [])
        assert view.display_price == Decimal("1000.00")
        assert view.unit_price == Decimal("250.00")

    def test_producer_total_ignores_cancelled_assignments(self):
        row = freight_row(required_trucks=2, accepted_trucks=1)
        assignments = [assignment("100"), assignment("999", AssignmentStatus.CANCELLED)]
        assert PricingVisibilityEngine.producer_total(row, assignments) == Decimal("100.00")

    def test_carrier_without_assignment_sees_listed_unit_price(self):
        row = freight_row(pricing_type=PricingType.PER_KM, price=None,
                          price_per_km=Decimal("2"), distance_km=Decimal("500"), required_trucks=3)
        view = PricingVisibilityEngine.view_for(row, UserRole.COMPANY)
        assert view.display_price == Decimal("1000.00")
        assert view.payment_price is None
        assert view.unit_rate == Decimal("2.00")
        assert view.unit_suffix == "/km"

    def test_agreed_price_wins_over_changed_listing(self):
        row = freight_row(price=Decimal("500"))
        mine = assignment("420")
        assert PricingVisibilityEngine.carrier_price(row, mine) == Decimal("420.00")


class TestValidateAgreedPrice:

    def test_valid_price_is_quantized(self):
        assert PricingVisibilityEngine.validate_agreed_price("99.999") == Decimal("100.00")

    @pytest.mark.parametrize("price,reason", [
        (None, "PRICE_REQUIRED"),
        (Decimal("0"), "PRICE_NOT_POSITIVE"),
        (Decimal("-5"), "PRICE_NOT_POSITIVE"),
    ])
    def test_rejects_missing_or_non_positive(self, price, reason):
        with pytest.raises(PricingError) as exc_info:
            PricingVisibilityEngine.validate_agreed_price(price)
        assert exc_info.value.reason == reason

    def test_rejects_below_floor(self):
        with pytest.raises(PricingError) as exc_info:
            PricingVisibilityEngine.validate_agreed_price(Decimal("80"), floor=Decimal("95.50"))
        assert exc_info.value.reason == "PRICE_BELOW_FLOOR"
