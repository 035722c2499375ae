"""
Freight status history service.

Appends audit entries for freight transitions and reads them back.
Entries are never updated or deleted.
"""

from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.models.freight_status_history import FreightStatusHistory
from backend.app.models.freight_enums import FreightStatus


class HistoryNote:
    """Standardized history notes."""
    FREIGHT_CREATED = "Freight created"
    TRUCK_ACCEPTED = "Truck accepted at listed price"
    PROPOSAL_ACCEPTED = "Proposal accepted"
    NEGOTIATION_STARTED = "Proposal received"
    DRIVER_WITHDREW = "Driver withdrew from freight"
    DRIVER_RELEASED = "Driver released by producer"
    CANCELLED = "Freight cancelled"
    EXPIRED = "Freight expired without acceptance"
    REOPENED = "Freight reopened for bidding"
    DELIVERY_REPORTED = "Delivery reported by driver"
    SETTLED = "Freight settled"
    ADMIN_OVERRIDE = "Administrative override"


async def record_status_change(
    db: AsyncSession,
    freight_id: int,
    status: FreightStatus,
    previous_status: Optional[FreightStatus] = None,
    changed_by: Optional[int] = None,
    notes: Optional[str] = None,
    location: Optional[Tuple[float, float]] = None,
) -> FreightStatusHistory:
    """
    Append a status history entry.

    Args:
        db: Database session (caller commits)
        freight_id: Freight that changed
        status: Status after the change
        previous_status: Status before the change
        changed_by: Acting user, None for system jobs
        notes: Free-text context (use HistoryNote constants)
        location: (lat, lng) reported with the change

    Returns:
        Created FreightStatusHistory instance
    """
    lat, lng = location if location else (None, None)
    entry = FreightStatusHistory(
        freight_id=freight_id,
        status=status,
        previous_status=previous_status,
        changed_by=changed_by,
        notes=notes[:500] if notes else None,
        location_lat=lat,
        location_lng=lng,
    )
    db.add(entry)
    await db.flush()
    return entry


async def get_freight_history(
    db: AsyncSession,
    freight_id: int,
    limit: int = 100
) -> list[FreightStatusHistory]:
    """
    Retrieve the history of a freight, oldest first.

    Args:
        db: Database session
        freight_id: Freight to read
        limit: Maximum number of entries

    Returns:
        List of FreightStatusHistory instances
    """
    query = (
        select(FreightStatusHistory)
        .where(FreightStatusHistory.freight_id == freight_id)
        .order_by(FreightStatusHistory.created_at, FreightStatusHistory.id)
        .limit(limit)
    )
    result = await db.execute(query)
    return result.scalars().all()
