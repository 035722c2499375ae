"""
Freight list classification.

Derives the bucket a freight is listed under from its status and pickup date.
"""

import enum
from datetime import date, datetime
from typing import Optional

from backend.app.domain.freight.status_registry import (
    FINAL_STATUSES, IN_PROGRESS_STATUSES, OPEN_STATUSES, normalize
)
from backend.app.models.freight_enums import FreightStatus


class FreightBucket(str, enum.Enum):
    """List buckets shown to users."""
    OPEN = "open"
    ACTIVE = "active"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


def classify(status, pickup_date: Optional[date], today: Optional[date] = None) -> FreightBucket:
    """
    Classify a freight into a list bucket.

    Args:
        status: Freight status (raw values are normalized)
        pickup_date: Scheduled pickup date, if any
        today: Reference date, defaults to the current date

    Returns:
        FreightBucket
    """
    status = normalize(status)
    if status in IN_PROGRESS_STATUSES:
        return FreightBucket.ACTIVE
    if status in OPEN_STATUSES:
        return FreightBucket.OPEN
    if status in FINAL_STATUSES:
        return FreightBucket.COMPLETED

    # ACCEPTED: scheduled until the pickup day arrives
    if status == FreightStatus.ACCEPTED:
        if pickup_date is None:
            return FreightBucket.ACTIVE
        if isinstance(pickup_date, datetime):
            pickup_date = pickup_date.date()
        today = today or date.today()
        return FreightBucket.ACTIVE if pickup_date <= today else FreightBucket.SCHEDULED

    raise ValueError(f"Unclassified status: {status}")
