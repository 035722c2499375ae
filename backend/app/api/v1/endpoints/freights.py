"""
Freight API Endpoints.

Publishing, reading and moving freights through their lifecycle. Mutating
endpoints return the `{success, code, message, freight, details}` envelope
with the HTTP status of the typed outcome.
"""

import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.responses import outcome_response
from backend.app.core.dependencies import get_acceptance_coordinator, get_current_user, get_lifecycle_service
from backend.app.core.exceptions import FreightNotFoundError
from backend.app.core.guards import OwnershipGuard, require_role
from backend.app.db.session import get_db
from backend.app.domain.freight import expiration_policy
from backend.app.domain.freight.acceptance import AcceptanceCoordinator
from backend.app.domain.freight.classification import FreightBucket, classify
from backend.app.domain.freight.lifecycle import FreightLifecycleService
from backend.app.domain.freight.pricing_visibility import (
    BILLABLE_ASSIGNMENT_STATUSES, PricingError, PricingVisibilityEngine
)
from backend.app.domain.freight.status_registry import label_for
from backend.app.models.enums import DRIVER_ROLES, UserRole
from backend.app.models.freight import Freight
from backend.app.models.freight_assignment import FreightAssignment
from backend.app.models.freight_enums import FreightStatus
from backend.app.models.tracking_consent import TrackingConsent
from backend.app.models.user import User
from backend.app.schemas.freight import (
    AcceptManyRequest,
    AcceptRequest,
    CancelRequest,
    FreightCreate,
    FreightDetailResponse,
    FreightListResponse,
    FreightResponse,
    PriceViewResponse,
    ProposalCreate,
    ReleaseDriverRequest,
    StatusAdvanceRequest,
    StatusHistoryResponse,
    TrackingConsentResponse,
)
from backend.app.services import freight_store
from backend.app.services.status_history import HistoryNote, get_freight_history, record_status_change


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/freights", tags=["Freights"])
cancellation_router = APIRouter(prefix="/cancellation-requests", tags=["Freights - Cancellation"])
ownership_guard = OwnershipGuard()


def _viewer_assignment(user: User, assignments: List[FreightAssignment]) -> Optional[FreightAssignment]:
    for assignment in assignments:
        if assignment.status not in BILLABLE_ASSIGNMENT_STATUSES:
            continue
        if user.role in DRIVER_ROLES and assignment.driver_id == user.id:
            return assignment
        if user.role == UserRole.COMPANY and user.company_id is not None and assignment.company_id == user.company_id:
            return assignment
    return None


def build_freight_detail(
    freight: Freight,
    user: User,
    assignments: List[FreightAssignment],
) -> FreightDetailResponse:
    """Freight with the price, bucket and label the viewer is entitled to."""
    try:
        view = PricingVisibilityEngine.view_for(
            freight, user.role, assignments, _viewer_assignment(user, assignments)
        )
        price = PriceViewResponse(**asdict(view))
    except PricingError as exc:
        logger.warning("Freight price unavailable", extra={"freight_id": freight.id, "reason": exc.reason})
        price = None

    expires_at = None
    if expiration_policy.can_auto_cancel(freight.status) and freight.created_at is not None:
        expires_at = expiration_policy.expires_at(freight.service_category, freight.created_at)

    return FreightDetailResponse(
        freight=FreightResponse.model_validate(freight),
        status_label=label_for(freight.status),
        bucket=classify(freight.status, freight.pickup_date).value,
        price=price,
        expires_at=expires_at,
    )


async def _load_visible_freight(db: AsyncSession, freight_id: int, user: User):
    freight = await freight_store.get_freight(db, freight_id)
    if freight is None:
        raise FreightNotFoundError(freight_id)
    assignments = await freight_store.list_assignments(db, freight_id)
    ownership_guard.enforce(freight, assignments, user)
    return freight, assignments


@router.post("", response_model=FreightDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_freight(
    payload: FreightCreate,
    current_user: User = Depends(require_role([UserRole.PRODUCER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Publish a freight (Producer only).

    The freight starts OPEN with no trucks accepted.
    """
    freight = Freight(
        producer_id=current_user.id,
        status=FreightStatus.OPEN,
        accepted_trucks=0,
        **payload.model_dump(),
    )
    db.add(freight)
    await db.flush()

    await record_status_change(
        db, freight.id, FreightStatus.OPEN, None, current_user.id, HistoryNote.FREIGHT_CREATED
    )
    await db.commit()
    await db.refresh(freight)

    logger.info(
        "Freight created",
        extra={"freight_id": freight.id, "producer_id": current_user.id, "required_trucks": freight.required_trucks},
    )
    return build_freight_detail(freight, current_user, [])


@router.get("", response_model=FreightListResponse)
async def list_freights(
    bucket: Optional[FreightBucket] = Query(None, description="Filter by list bucket"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List freights visible to the caller, each with its role-scoped price.
    """
    freights = await freight_store.list_visible_freights(db, current_user, limit=limit, offset=offset)

    details = []
    for freight in freights:
        assignments = await freight_store.list_assignments(db, freight.id)
        if not ownership_guard.can_view(freight, assignments, current_user):
            continue
        detail = build_freight_detail(freight, current_user, assignments)
        if bucket is None or detail.bucket == bucket.value:
            details.append(detail)

    return FreightListResponse(freights=details, total=len(details))


@router.get("/{freight_id}", response_model=FreightDetailResponse)
async def get_freight(
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a freight as seen by the caller."""
    freight, assignments = await _load_visible_freight(db, freight_id, current_user)
    return build_freight_detail(freight, current_user, assignments)


@router.get("/{freight_id}/history", response_model=List[StatusHistoryResponse])
async def get_history(
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Status history of a freight, oldest first."""
    await _load_visible_freight(db, freight_id, current_user)
    return await get_freight_history(db, freight_id)


@router.post("/accept")
async def accept_freight(
    payload: AcceptRequest,
    current_user: User = Depends(get_current_user),
    coordinator: AcceptanceCoordinator = Depends(get_acceptance_coordinator),
    db: AsyncSession = Depends(get_db)
):
    """
    Accept one truck slot at the listed price.

    Returns 200 on success, 409 when another carrier won the slot (re-fetch
    and retry once), 403 when the caller is not eligible or not allowed.
    """
    outcome = await coordinator.accept(
        db, payload.freight_id, current_user, driver_id=payload.driver_id, company_id=payload.company_id
    )
    return outcome_response(outcome)


@router.post("/accept-multiple")
async def accept_freight_multiple(
    payload: AcceptManyRequest,
    current_user: User = Depends(get_current_user),
    coordinator: AcceptanceCoordinator = Depends(get_acceptance_coordinator),
    db: AsyncSession = Depends(get_db)
):
    """
    Dispatch several of the company's drivers onto one freight.

    `details.results` lists each driver's code; the run stops at the first
    driver that did not get a slot.
    """
    outcome = await coordinator.accept_many(db, payload.freight_id, current_user, payload.driver_ids)
    return outcome_response(outcome)


@router.post("/status")
async def advance_freight_status(
    payload: StatusAdvanceRequest,
    current_user: User = Depends(get_current_user),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """Advance a freight's status; validated server-side against the lifecycle."""
    location = (payload.location.lat, payload.location.lng) if payload.location else None
    outcome = await service.advance_status(
        db, payload.freight_id, current_user, payload.new_status, notes=payload.notes, location=location
    )
    return outcome_response(outcome)


@router.post("/cancel")
async def cancel_freight(
    payload: CancelRequest,
    current_user: User = Depends(get_current_user),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a freight.

    Depending on role and status this cancels directly, files a request
    for the producer's approval (202), or points the caller to support.
    """
    outcome = await service.cancel(db, payload.freight_id, current_user, reason=payload.reason)
    return outcome_response(outcome)


@router.post("/{freight_id}/reopen")
async def reopen_freight(
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(get_current_user),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """Reopen a cancelled freight for a new bidding round (Producer/Admin)."""
    outcome = await service.reopen(db, freight_id, current_user)
    return outcome_response(outcome)


@router.post("/{freight_id}/release-driver")
async def release_driver(
    payload: ReleaseDriverRequest,
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(get_current_user),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """Release a driver before loading; the truck slot reopens (Producer/Admin)."""
    outcome = await service.release_driver(
        db, freight_id, current_user, payload.driver_id, reason=payload.reason
    )
    return outcome_response(outcome)


@router.post(
    "/{freight_id}/tracking-consent",
    response_model=TrackingConsentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_tracking_consent(
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(require_role(list(DRIVER_ROLES))),
    db: AsyncSession = Depends(get_db)
):
    """Consent to location tracking for a freight (Drivers only). Idempotent."""
    freight = await freight_store.get_freight(db, freight_id)
    if freight is None:
        raise FreightNotFoundError(freight_id)

    consent = await freight_store.get_tracking_consent(db, freight_id, current_user.id)
    if consent is None:
        consent = TrackingConsent(freight_id=freight_id, driver_id=current_user.id)
        db.add(consent)
        await db.commit()
        await db.refresh(consent)
        logger.info("Tracking consent granted", extra={"freight_id": freight_id, "driver_id": current_user.id})
    return consent


@router.post("/{freight_id}/proposals")
async def submit_proposal(
    payload: ProposalCreate,
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(get_current_user),
    coordinator: AcceptanceCoordinator = Depends(get_acceptance_coordinator),
    db: AsyncSession = Depends(get_db)
):
    """Submit a counter-offer on an open freight (Drivers)."""
    outcome = await coordinator.submit_proposal(
        db, freight_id, current_user, payload.proposed_price, message=payload.message
    )
    return outcome_response(outcome)


@cancellation_router.post("/{request_id}/deny")
async def deny_cancellation_request(
    request_id: int = Path(..., description="Cancellation request ID"),
    current_user: User = Depends(get_current_user),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Deny a driver's cancellation request (Producer).

    Approving is done by cancelling the freight through `/freights/cancel`.
    """
    outcome = await service.deny_cancellation_request(db, request_id, current_user)
    return outcome_response(outcome)
