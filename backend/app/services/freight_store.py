"""
Freight storage service.

Every change to a freight's status or truck count goes through one of the
conditional writes below: a single `UPDATE ... WHERE <predicate>` whose
rowcount tells the caller whether it won. No application-level locks;
the database's row atomicity is the only thing trusted.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Union

from sqlalchemy import and_, case, func, literal, null, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.freight import expiration_policy
from backend.app.domain.freight.status_registry import OPEN_STATUSES
from backend.app.models.cancellation_request import CancellationRequest
from backend.app.models.enums import UserRole
from backend.app.models.freight import Freight
from backend.app.models.freight_assignment import FreightAssignment
from backend.app.models.freight_enums import (
    AssignmentStatus, CancellationRequestStatus, FreightStatus, ProposalStatus
)
from backend.app.models.freight_proposal import FreightProposal
from backend.app.models.tracking_consent import TrackingConsent
from backend.app.models.user import User


ACCEPTING_STATUSES = tuple(OPEN_STATUSES)

# Statuses a freight falls back from when a truck is released
RELEASE_REOPENS = (FreightStatus.ACCEPTED, FreightStatus.LOADING)

_status_type = Freight.__table__.c.status.type


def _status_literal(status: FreightStatus):
    return literal(status, _status_type)


async def get_freight(db: AsyncSession, freight_id: int, fresh: bool = False) -> Optional[Freight]:
    """
    Load a freight by id.

    Args:
        db: Database session
        freight_id: Freight to load
        fresh: Bypass the identity map and re-read the row

    Returns:
        Freight or None
    """
    stmt = select(Freight).where(Freight.id == freight_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def conditional_transition(
    db: AsyncSession,
    freight_id: int,
    expected_state: Union[FreightStatus, Iterable[FreightStatus]],
    new_state: FreightStatus,
    predicates: Iterable = (),
    **values,
) -> bool:
    """
    Move a freight to `new_state` only if it is still in `expected_state`.

    Args:
        db: Database session (caller commits)
        freight_id: Freight to update
        expected_state: Status (or statuses) the caller observed
        new_state: Target status
        predicates: Extra WHERE clauses on the freight row
        **values: Extra columns to set in the same write

    Returns:
        True if this call performed the transition, False if the row had
        already moved on
    """
    if isinstance(expected_state, FreightStatus):
        expected = [expected_state]
    else:
        expected = list(expected_state)

    stmt = (
        update(Freight)
        .where(Freight.id == freight_id, Freight.status.in_(expected), *predicates)
        .values(status=new_state, **values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def claim_truck_slot(
    db: AsyncSession,
    freight_id: int,
    driver_id: int,
    company_id: Optional[int] = None,
) -> bool:
    """
    Take one truck slot on a freight.

    Increments `accepted_trucks` only while a slot is free and the freight is
    still accepting. The write that fills the last slot also flips the
    status to ACCEPTED; on single-truck freights it records the driver.

    Returns:
        True if a slot was taken, False if the race was lost
    """
    fills_last_slot = Freight.accepted_trucks + 1 >= Freight.required_trucks
    single_truck = Freight.required_trucks == 1

    values = {
        "accepted_trucks": Freight.accepted_trucks + 1,
        "status": case(
            (fills_last_slot, _status_literal(FreightStatus.ACCEPTED)),
            else_=Freight.status,
        ),
        "driver_id": case((single_truck, literal(driver_id)), else_=Freight.driver_id),
    }
    if company_id is not None:
        values["company_id"] = func.coalesce(Freight.company_id, literal(company_id))

    stmt = (
        update(Freight)
        .where(
            Freight.id == freight_id,
            Freight.status.in_(ACCEPTING_STATUSES),
            Freight.accepted_trucks < Freight.required_trucks,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def release_truck_slot(
    db: AsyncSession,
    freight_id: int,
    driver_id: int,
    expected_state: FreightStatus,
) -> bool:
    """
    Give back one truck slot.

    The freight returns to OPEN when it was ACCEPTED or LOADING, and the
    driver is cleared if they were the single-truck driver.

    Returns:
        True if the slot was released, False if the freight moved on
    """
    stmt = (
        update(Freight)
        .where(
            Freight.id == freight_id,
            Freight.status == expected_state,
            Freight.accepted_trucks > 0,
        )
        .values(
            accepted_trucks=Freight.accepted_trucks - 1,
            status=case(
                (Freight.status.in_(RELEASE_REOPENS), _status_literal(FreightStatus.OPEN)),
                else_=Freight.status,
            ),
            driver_id=case((Freight.driver_id != driver_id, Freight.driver_id), else_=null()),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def undo_truck_claim(
    db: AsyncSession,
    freight_id: int,
    driver_id: int,
    previous_status: FreightStatus,
) -> bool:
    """
    Return a slot whose assignment was never recorded.

    Only applies while the freight is still accepting, or ACCEPTED if the
    claim filled the last slot. An ACCEPTED freight goes back to
    `previous_status`.

    Returns:
        True if the slot was returned, False if the freight moved on
    """
    stmt = (
        update(Freight)
        .where(
            Freight.id == freight_id,
            Freight.status.in_(ACCEPTING_STATUSES + (FreightStatus.ACCEPTED,)),
            Freight.accepted_trucks > 0,
        )
        .values(
            accepted_trucks=Freight.accepted_trucks - 1,
            status=case(
                (Freight.status == FreightStatus.ACCEPTED, _status_literal(previous_status)),
                else_=Freight.status,
            ),
            driver_id=case((Freight.driver_id != driver_id, Freight.driver_id), else_=null()),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


# Assignments

async def get_assignment(db: AsyncSession, freight_id: int, driver_id: int) -> Optional[FreightAssignment]:
    result = await db.execute(
        select(FreightAssignment).where(
            FreightAssignment.freight_id == freight_id,
            FreightAssignment.driver_id == driver_id,
        )
    )
    return result.scalar_one_or_none()


async def list_assignments(db: AsyncSession, freight_id: int) -> List[FreightAssignment]:
    result = await db.execute(
        select(FreightAssignment)
        .where(FreightAssignment.freight_id == freight_id)
        .order_by(FreightAssignment.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def count_accepted_assignments(db: AsyncSession, freight_id: int) -> int:
    result = await db.execute(
        select(func.count(FreightAssignment.id)).where(
            FreightAssignment.freight_id == freight_id,
            FreightAssignment.status == AssignmentStatus.ACCEPTED,
        )
    )
    return result.scalar()


async def cancel_assignments(
    db: AsyncSession,
    freight_id: int,
    driver_id: Optional[int] = None,
) -> int:
    """Cancel live assignments of a freight, or of one driver on it."""
    stmt = update(FreightAssignment).where(
        FreightAssignment.freight_id == freight_id,
        FreightAssignment.status.in_([AssignmentStatus.PENDING, AssignmentStatus.ACCEPTED]),
    )
    if driver_id is not None:
        stmt = stmt.where(FreightAssignment.driver_id == driver_id)
    result = await db.execute(
        stmt.values(status=AssignmentStatus.CANCELLED, cancelled_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def complete_assignments(db: AsyncSession, freight_id: int) -> int:
    result = await db.execute(
        update(FreightAssignment)
        .where(
            FreightAssignment.freight_id == freight_id,
            FreightAssignment.status == AssignmentStatus.ACCEPTED,
        )
        .values(status=AssignmentStatus.COMPLETED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def get_tracking_consent(db: AsyncSession, freight_id: int, driver_id: int) -> Optional[TrackingConsent]:
    result = await db.execute(
        select(TrackingConsent).where(
            TrackingConsent.freight_id == freight_id,
            TrackingConsent.driver_id == driver_id,
        )
    )
    return result.scalar_one_or_none()


async def has_tracking_consent(db: AsyncSession, freight_id: int, driver_id: int) -> bool:
    return await get_tracking_consent(db, freight_id, driver_id) is not None


# Proposals

async def get_proposal(db: AsyncSession, freight_id: int, driver_id: int) -> Optional[FreightProposal]:
    result = await db.execute(
        select(FreightProposal).where(
            FreightProposal.freight_id == freight_id,
            FreightProposal.driver_id == driver_id,
        )
    )
    return result.scalar_one_or_none()


async def get_proposal_by_id(db: AsyncSession, proposal_id: int) -> Optional[FreightProposal]:
    result = await db.execute(select(FreightProposal).where(FreightProposal.id == proposal_id))
    return result.scalar_one_or_none()


async def transition_proposal(
    db: AsyncSession,
    proposal_id: int,
    expected: ProposalStatus,
    new_status: ProposalStatus,
) -> bool:
    result = await db.execute(
        update(FreightProposal)
        .where(FreightProposal.id == proposal_id, FreightProposal.status == expected)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def close_pending_proposals(
    db: AsyncSession,
    freight_id: int,
    new_status: ProposalStatus,
    driver_id: Optional[int] = None,
    exclude_driver_id: Optional[int] = None,
) -> int:
    """Move PENDING proposals of a freight to REJECTED or CANCELLED."""
    stmt = update(FreightProposal).where(
        FreightProposal.freight_id == freight_id,
        FreightProposal.status == ProposalStatus.PENDING,
    )
    if driver_id is not None:
        stmt = stmt.where(FreightProposal.driver_id == driver_id)
    if exclude_driver_id is not None:
        stmt = stmt.where(FreightProposal.driver_id != exclude_driver_id)
    result = await db.execute(
        stmt.values(status=new_status).execution_options(synchronize_session=False)
    )
    return result.rowcount


# Cancellation requests

async def get_cancellation_request(db: AsyncSession, request_id: int) -> Optional[CancellationRequest]:
    result = await db.execute(select(CancellationRequest).where(CancellationRequest.id == request_id))
    return result.scalar_one_or_none()


async def get_pending_cancellation_request(
    db: AsyncSession,
    freight_id: int,
    requested_by: Optional[int] = None,
) -> Optional[CancellationRequest]:
    """Oldest PENDING request on a freight, optionally from one requester."""
    stmt = select(CancellationRequest).where(
        CancellationRequest.freight_id == freight_id,
        CancellationRequest.status == CancellationRequestStatus.PENDING,
    )
    if requested_by is not None:
        stmt = stmt.where(CancellationRequest.requested_by == requested_by)
    result = await db.execute(stmt.order_by(CancellationRequest.id).limit(1))
    return result.scalar_one_or_none()


async def decide_cancellation_requests(
    db: AsyncSession,
    freight_id: int,
    new_status: CancellationRequestStatus,
    decided_by: Optional[int],
    request_id: Optional[int] = None,
) -> int:
    """Close PENDING cancellation requests (all of a freight, or one)."""
    stmt = update(CancellationRequest).where(
        CancellationRequest.freight_id == freight_id,
        CancellationRequest.status == CancellationRequestStatus.PENDING,
    )
    if request_id is not None:
        stmt = stmt.where(CancellationRequest.id == request_id)
    result = await db.execute(
        stmt.values(status=new_status, decided_by=decided_by, decided_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


# Listings

async def list_visible_freights(
    db: AsyncSession,
    user: User,
    limit: int = 50,
    offset: int = 0,
) -> List[Freight]:
    """
    Freights a user may list.

    Producers see their own orders, carriers see the open marketplace plus
    the freights they are assigned to, admins see everything.
    """
    stmt = select(Freight)

    if user.role == UserRole.PRODUCER:
        stmt = stmt.where(Freight.producer_id == user.id)
    elif user.role != UserRole.ADMIN:
        assignment_filter = FreightAssignment.driver_id == user.id
        if user.role == UserRole.COMPANY and user.company_id is not None:
            assignment_filter = FreightAssignment.company_id == user.company_id
        assigned = select(FreightAssignment.freight_id).where(assignment_filter)
        stmt = stmt.where(or_(Freight.status.in_(ACCEPTING_STATUSES), Freight.id.in_(assigned)))

    stmt = stmt.order_by(Freight.created_at.desc(), Freight.id.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_expiry_candidates(
    db: AsyncSession,
    now: Optional[datetime] = None,
    limit: int = 200,
) -> List[Freight]:
    """
    Uncommitted freights whose category TTL has lapsed by `now`, oldest first.

    Each category is compared against its own TTL cutoff.
    """
    lapsed = or_(*(
        and_(Freight.service_category == category, Freight.created_at <= cutoff)
        for category, cutoff in expiration_policy.lapsed_cutoffs(now).items()
    ))
    result = await db.execute(
        select(Freight)
        .where(Freight.status.in_(ACCEPTING_STATUSES), Freight.accepted_trucks == 0, lapsed)
        .order_by(Freight.created_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())
