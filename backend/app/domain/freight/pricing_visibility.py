"""
Pricing Visibility Engine.

Computes the price each party is allowed to see from one underlying
listing. Producers see the aggregate cost of the order; drivers and
companies only ever see a per-truck price.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from backend.app.models.enums import UserRole
from backend.app.models.freight_enums import AssignmentStatus, PricingType


CENTS = Decimal("0.01")

UNIT_SUFFIXES = {
    PricingType.FIXED: "/carreta",
    PricingType.PER_KM: "/km",
    PricingType.PER_TON: "/ton",
}

# Assignments whose agreed price counts toward the producer's total
BILLABLE_ASSIGNMENT_STATUSES = (AssignmentStatus.ACCEPTED, AssignmentStatus.COMPLETED)


class PricingError(ValueError):
    """Raised when a price cannot be computed or fails validation."""

    def __init__(self, message: str, reason: str = "INVALID_PRICE"):
        self.reason = reason
        super().__init__(message)


@dataclass(frozen=True)
class PriceView:
    """What one viewer sees for one freight."""
    viewer_role: UserRole
    pricing_type: PricingType
    display_price: Decimal
    payment_price: Optional[Decimal]
    unit_price: Decimal
    unit_rate: Optional[Decimal]
    unit_suffix: str
    is_aggregate: bool
    required_trucks: int
    accepted_trucks: int


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _positive(value, field: str) -> Decimal:
    if value is None:
        raise PricingError(f"{field} is required for this pricing type", reason="MISSING_PRICE_INPUT")
    amount = Decimal(str(value))
    if amount <= 0:
        raise PricingError(f"{field} must be greater than zero", reason="MISSING_PRICE_INPUT")
    return amount


class PricingVisibilityEngine:

    @staticmethod
    def unit_rate(freight) -> Optional[Decimal]:
        """The listed rate in the freight's own unit (per truck, km or ton)."""
        if freight.pricing_type == PricingType.PER_KM:
            return freight.price_per_km
        if freight.pricing_type == PricingType.PER_TON:
            return freight.price_per_ton
        return freight.price

    @staticmethod
    def unit_price(freight) -> Decimal:
        """
        Per-truck price derived from the listing.

        Raises:
            PricingError: If the inputs the pricing type needs are missing
        """
        if freight.pricing_type == PricingType.PER_KM:
            rate = _positive(freight.price_per_km, "price_per_km")
            return _money(rate * _positive(freight.distance_km, "distance_km"))
        if freight.pricing_type == PricingType.PER_TON:
            rate = _positive(freight.price_per_ton, "price_per_ton")
            return _money(rate * _positive(freight.weight_tons, "weight_tons"))
        return _money(_positive(freight.price, "price"))

    @staticmethod
    def producer_total(freight, assignments: Iterable) -> Decimal:
        """
        Aggregate cost of the order as seen by its producer.

        Sum of agreed prices over billable assignments; before any truck is
        accepted, the listed unit price times the required trucks.
        """
        agreed = [
            _money(a.agreed_price)
            for a in assignments
            if a.status in BILLABLE_ASSIGNMENT_STATUSES and a.agreed_price is not None
        ]
        if agreed:
            return sum(agreed, Decimal("0.00"))
        unit = PricingVisibilityEngine.unit_price(freight)
        return _money(unit * (freight.required_trucks or 1))

    @staticmethod
    def carrier_price(freight, viewer_assignment=None) -> Decimal:
        """Per-truck price for a driver or company; agreed price wins once set."""
        if viewer_assignment is not None and viewer_assignment.agreed_price is not None:
            return _money(viewer_assignment.agreed_price)
        return PricingVisibilityEngine.unit_price(freight)

    @staticmethod
    def view_for(
        freight,
        viewer_role: UserRole,
        assignments: Iterable = (),
        viewer_assignment=None,
    ) -> PriceView:
        """
        Build the price view for a viewer.

        Args:
            freight: Freight row
            viewer_role: Role of the user looking at the freight
            assignments: All assignments of the freight (producer view)
            viewer_assignment: The viewer's own assignment, if any (carrier view)

        Returns:
            PriceView scoped to the viewer's role
        """
        viewer_role = UserRole(viewer_role)
        unit = PricingVisibilityEngine.unit_price(freight)
        aggregate = viewer_role in (UserRole.PRODUCER, UserRole.ADMIN)

        if aggregate:
            display = PricingVisibilityEngine.producer_total(freight, assignments)
            payment = display
        else:
            display = PricingVisibilityEngine.carrier_price(freight, viewer_assignment)
            payment = _money(viewer_assignment.agreed_price) if (
                viewer_assignment is not None and viewer_assignment.agreed_price is not None
            ) else None

        rate = PricingVisibilityEngine.unit_rate(freight)
        return PriceView(
            viewer_role=viewer_role,
            pricing_type=freight.pricing_type,
            display_price=display,
            payment_price=payment,
            unit_price=unit,
            unit_rate=_money(rate) if rate is not None else None,
            unit_suffix=UNIT_SUFFIXES[freight.pricing_type],
            is_aggregate=aggregate,
            required_trucks=freight.required_trucks or 1,
            accepted_trucks=freight.accepted_trucks or 0,
        )

    @staticmethod
    def validate_agreed_price(price, floor=None) -> Decimal:
        """
        Validate a per-truck price before it is snapshotted on an assignment.

        Args:
            price: Candidate agreed price
            floor: Regulatory minimum per truck, when one applies

        Returns:
            The price, quantized

        Raises:
            PricingError: If the price is missing, not positive or below the floor
        """
        if price is None:
            raise PricingError("Agreed price is required", reason="PRICE_REQUIRED")
        amount = _money(price)
        if amount <= 0:
            raise PricingError("Agreed price must be greater than zero", reason="PRICE_NOT_POSITIVE")
        if floor is not None and amount < _money(floor):
            raise PricingError(
                f"Agreed price {amount} is below the regulatory minimum {_money(floor)}",
                reason="PRICE_BELOW_FLOOR",
            )
        return amount
