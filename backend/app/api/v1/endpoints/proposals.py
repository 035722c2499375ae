"""
Freight Proposal API Endpoints.

Producers accept or reject drivers' counter-offers. Accepting a proposal
claims a truck slot at the proposed price.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.responses import outcome_response
from backend.app.core.dependencies import get_acceptance_coordinator, get_current_user
from backend.app.db.session import get_db
from backend.app.domain.freight.acceptance import AcceptanceCoordinator
from backend.app.models.user import User

router = APIRouter(prefix="/proposals", tags=["Freights - Proposals"])


@router.post("/{proposal_id}/accept")
async def accept_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: User = Depends(get_current_user),
    coordinator: AcceptanceCoordinator = Depends(get_acceptance_coordinator),
    db: AsyncSession = Depends(get_db)
):
    """
    Accept a driver's counter-offer (Producer/Admin).

    Same race semantics as a direct accept: 409 when the last slot was
    taken in the meantime.
    """
    outcome = await coordinator.accept_proposal(db, proposal_id, current_user)
    return outcome_response(outcome)


@router.post("/{proposal_id}/reject")
async def reject_proposal(
    proposal_id: int = Path(..., description="Proposal ID"),
    current_user: User = Depends(get_current_user),
    coordinator: AcceptanceCoordinator = Depends(get_acceptance_coordinator),
    db: AsyncSession = Depends(get_db)
):
    outcome = await coordinator.reject_proposal(db, proposal_id, current_user)
    return outcome_response(outcome)
