"""
Admin Freight API Endpoints.

Administrative paths around the normal lifecycle: status override,
settlement, consistency checks and the expiration sweep.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.responses import outcome_response
from backend.app.core.dependencies import get_lifecycle_service
from backend.app.core.guards import require_admin
from backend.app.db.session import get_db
from backend.app.domain.freight.lifecycle import FreightLifecycleService
from backend.app.jobs.expiration_runner import run_expiration_sweep
from backend.app.models.user import User
from backend.app.schemas.freight import AdminOverrideRequest, ConsistencyReport

router = APIRouter(prefix="/admin/freights", tags=["Admin - Freights"])


@router.post("/{freight_id}/override")
async def override_status(
    payload: AdminOverrideRequest,
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(require_admin),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Force a freight into a status, terminal statuses included.

    The status must be a known code or label; nothing is guessed here.
    """
    outcome = await service.admin_override(db, freight_id, current_user, payload.new_status, notes=payload.notes)
    return outcome_response(outcome)


@router.post("/{freight_id}/complete")
async def complete_freight(
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(require_admin),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """Close a delivered freight after settlement (DELIVERED -> COMPLETED)."""
    outcome = await service.complete_freight(db, freight_id, current_user)
    return outcome_response(outcome)


@router.get("/{freight_id}/consistency", response_model=ConsistencyReport)
async def check_consistency(
    freight_id: int = Path(..., description="Freight ID"),
    current_user: User = Depends(require_admin),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Compare a freight's counters with its assignments.

    Read-only; inconsistencies are reported to the alert sink.
    """
    return await service.check_state_consistency(db, freight_id)


@router.post("/expire")
async def trigger_expiration_sweep(
    limit: int = Query(200, ge=1, le=1000),
    current_user: User = Depends(require_admin),
    service: FreightLifecycleService = Depends(get_lifecycle_service),
    db: AsyncSession = Depends(get_db)
):
    """Run one expiration pass now instead of waiting for the scheduler."""
    return await run_expiration_sweep(db, service, limit=limit)
