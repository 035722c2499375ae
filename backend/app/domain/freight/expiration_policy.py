"""
Freight expiration policy.

Each service category has a time-to-live counted from creation. Only
freights nobody has committed to yet may be auto-cancelled.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from backend.app.domain.freight.status_registry import OPEN_STATUSES
from backend.app.models.freight_enums import FreightStatus, ServiceCategory


DEFAULT_TTL_HOURS = 72

CATEGORY_TTL_HOURS: Dict[ServiceCategory, int] = {
    ServiceCategory.GUINCHO: 2,
    ServiceCategory.FRETE_MOTO: 4,
    ServiceCategory.FRETE_URBANO: 24,
    ServiceCategory.MUDANCA: 48,
    ServiceCategory.MUDANCA_RESIDENCIAL: 48,
    ServiceCategory.MUDANCA_COMERCIAL: 48,
    ServiceCategory.CARGA: DEFAULT_TTL_HOURS,
    ServiceCategory.SERVICE: 168,
}

# Checked in order for free-text categories
_KEYWORD_TTL_HOURS = (
    ("GUINCHO", 2),
    ("MOTO", 4),
    ("MUDANCA", 48),
    ("URBANO", 24),
)


def ttl_hours(category) -> int:
    """
    Time-to-live in hours for a category.

    Accepts the enum or a raw string; unknown strings are matched by keyword
    and otherwise get the bulk cargo TTL.
    """
    if category is None:
        return DEFAULT_TTL_HOURS
    if isinstance(category, ServiceCategory):
        return CATEGORY_TTL_HOURS[category]

    key = str(category).strip().upper()
    if key in ServiceCategory.__members__:
        return CATEGORY_TTL_HOURS[ServiceCategory(key)]
    for keyword, hours in _KEYWORD_TTL_HOURS:
        if keyword in key:
            return hours
    return DEFAULT_TTL_HOURS


def can_auto_cancel(status: FreightStatus) -> bool:
    """True only while no party has committed to the freight."""
    return status in OPEN_STATUSES


def _as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def expires_at(category, created_at: datetime) -> datetime:
    return _as_utc_naive(created_at) + timedelta(hours=ttl_hours(category))


def time_remaining(category, created_at: datetime, now: Optional[datetime] = None) -> timedelta:
    """Time left before expiry, never negative."""
    now = _as_utc_naive(now or datetime.utcnow())
    remaining = expires_at(category, created_at) - now
    return max(remaining, timedelta(0))


def is_expired(freight, now: Optional[datetime] = None) -> bool:
    """
    Check whether a freight's TTL has lapsed and it may be auto-cancelled.

    A freight with committed trucks never expires, even on a partially
    staffed multi-truck order.
    """
    if not can_auto_cancel(freight.status) or (freight.accepted_trucks or 0) > 0:
        return False
    if freight.created_at is None:
        return False
    now = _as_utc_naive(now or datetime.utcnow())
    return now >= expires_at(freight.service_category, freight.created_at)


def lapsed_cutoffs(now: Optional[datetime] = None) -> Dict[ServiceCategory, datetime]:
    """Per category, the latest creation time whose TTL has lapsed by `now`."""
    now = _as_utc_naive(now or datetime.utcnow())
    return {category: now - timedelta(hours=hours) for category, hours in CATEGORY_TTL_HOURS.items()}
