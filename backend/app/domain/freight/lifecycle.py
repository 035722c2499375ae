"""
Freight lifecycle operations.

Status advances, cancellation (direct, by approval request, or denied),
reopen, driver release, settlement closure, administrative override,
expiry and consistency checks. Each mutation is one conditional write on
the freight row followed by best-effort side writes.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.domain.freight import expiration_policy
from backend.app.domain.freight.cancellation_policy import CancellationDecision, CancellationPolicy
from backend.app.domain.freight.operations import FreightOperations
from backend.app.domain.freight.outcomes import FreightOutcome, OutcomeCode
from backend.app.domain.freight.status_registry import (
    UnknownStatusError, allowed_next, can_role_advance_to, is_final, is_valid_transition,
    normalize, ROLE_ADVANCE_TARGETS,
)
from backend.app.models.cancellation_request import CancellationRequest
from backend.app.models.enums import DRIVER_ROLES, UserRole
from backend.app.models.freight import Freight
from backend.app.models.freight_enums import (
    AssignmentStatus, CancellationRequestStatus, FreightStatus, ProposalStatus
)
from backend.app.models.user import User
from backend.app.services import freight_store
from backend.app.services.notification_dispatcher import FreightEventType
from backend.app.services.status_history import HistoryNote, record_status_change


logger = logging.getLogger(__name__)

# Statuses in which a producer may release a driver
RELEASABLE_STATUSES = (
    FreightStatus.OPEN,
    FreightStatus.IN_NEGOTIATION,
    FreightStatus.ACCEPTED,
    FreightStatus.LOADING,
)


class FreightLifecycleService(FreightOperations):

    async def _is_party(self, db: AsyncSession, freight: Freight, actor_id: int, role: UserRole, company_id) -> bool:
        """Whether the actor takes part in the freight in their role."""
        if role == UserRole.ADMIN:
            return True
        if role == UserRole.PRODUCER:
            return freight.producer_id == actor_id
        if role == UserRole.COMPANY:
            if company_id is None:
                return False
            if freight.company_id == company_id:
                return True
            assignments = await freight_store.list_assignments(db, freight.id)
            return any(
                a.company_id == company_id and a.status == AssignmentStatus.ACCEPTED for a in assignments
            )
        assignment = await freight_store.get_assignment(db, freight.id, actor_id)
        return assignment is not None and assignment.status == AssignmentStatus.ACCEPTED

    async def _recipients(self, db: AsyncSession, freight: Freight) -> list:
        assignments = await freight_store.list_assignments(db, freight.id)
        drivers = [
            a.driver_id for a in assignments
            if a.status in (AssignmentStatus.ACCEPTED, AssignmentStatus.COMPLETED)
        ]
        return [freight.producer_id, *drivers]

    async def advance_status(
        self,
        db: AsyncSession,
        freight_id: int,
        actor: User,
        new_status,
        notes: Optional[str] = None,
        location: Optional[Tuple[float, float]] = None,
    ) -> FreightOutcome:
        """
        Advance a freight along its lifecycle.

        The transition is re-validated here on a fresh read regardless of
        what the client checked, then written conditionally on the status
        that was read.

        Args:
            db: Database session
            freight_id: Freight to advance
            actor: Calling user
            new_status: Requested status (raw values are normalized)
            notes: Optional note for the history entry
            location: Optional (lat, lng) of the reporting driver

        Returns:
            FreightOutcome
        """
        actor_id, role, company_id = actor.id, UserRole(actor.role), actor.company_id
        try:
            target = normalize(new_status, strict=settings.status_normalization_strict)
        except UnknownStatusError as exc:
            return FreightOutcome.fail(OutcomeCode.INVALID_TRANSITION, str(exc))

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)

        if not await self._is_party(db, freight, actor_id, role, company_id):
            return FreightOutcome.fail(OutcomeCode.NOT_OWNER, "You are not a party to this freight")

        current = freight.status
        if current == target:
            return FreightOutcome.ok(freight, f"Freight is already {target.value}", code=OutcomeCode.ALREADY_IN_STATUS)
        if is_final(current):
            return FreightOutcome.fail(
                OutcomeCode.FINAL_STATE_LOCKED,
                f"Freight is {current.value} and can no longer change",
                freight=freight,
            )
        if not can_role_advance_to(role, target):
            return FreightOutcome.fail(
                OutcomeCode.FORBIDDEN,
                f"Role {role.value} cannot move a freight to {target.value}",
                freight=freight,
                allowed_targets=sorted(s.value for s in ROLE_ADVANCE_TARGETS[role]),
            )
        if not is_valid_transition(current, target):
            return FreightOutcome.fail(
                OutcomeCode.INVALID_TRANSITION,
                f"Cannot move freight from {current.value} to {target.value}",
                freight=freight,
                current_status=current.value,
                allowed_next=[s.value for s in allowed_next(current)],
            )

        moved = await freight_store.conditional_transition(db, freight_id, current, target)
        await db.commit()
        if not moved:
            return FreightOutcome.conflict(freight_id, freight=await freight_store.get_freight(db, freight_id, fresh=True))

        async def write_history():
            if target == FreightStatus.DELIVERED:
                await freight_store.complete_assignments(db, freight_id)
            await record_status_change(db, freight_id, target, current, actor_id, notes, location)

        await self._side_writes(db, "freight.advance_status", freight_id, write_history)

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        recipients = await self._recipients(db, freight)
        logger.info(
            "Freight status advanced",
            extra={"freight_id": freight_id, "from_status": current.value, "to_status": target.value},
        )

        self._notify(
            FreightEventType.STATUS_CHANGED, freight_id, recipients,
            actor_id=actor_id, status=target, previous_status=current.value,
        )
        if target == FreightStatus.DELIVERED_PENDING_CONFIRMATION:
            self._notify(
                FreightEventType.DELIVERY_REPORTED, freight_id, [freight.producer_id],
                actor_id=actor_id, status=target,
                confirm_within_hours=settings.delivery_confirmation_hours,
            )
        elif target == FreightStatus.DELIVERED:
            self._notify(
                FreightEventType.FREIGHT_DELIVERED, freight_id, recipients,
                actor_id=actor_id, status=target,
            )

        return FreightOutcome.ok(freight, f"Freight moved to {target.value}", previous_status=current.value)

    async def cancel(
        self,
        db: AsyncSession,
        freight_id: int,
        actor: User,
        reason: Optional[str] = None,
    ) -> FreightOutcome:
        """
        Cancel a freight as dictated by CancellationPolicy.

        Re-issuing a cancel on an already cancelled freight is a no-op
        success. A producer cancelling an in-progress freight on which a
        driver has a pending cancellation request approves that request.
        """
        actor_id, role, company_id = actor.id, UserRole(actor.role), actor.company_id

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)

        if freight.status == FreightStatus.CANCELLED:
            return FreightOutcome.ok(freight, "Freight is already cancelled", code=OutcomeCode.ALREADY_CANCELLED)
        if is_final(freight.status):
            return FreightOutcome.fail(
                OutcomeCode.FINAL_STATE_LOCKED,
                f"Freight is {freight.status.value} and can no longer be cancelled",
                freight=freight,
            )

        decision = CancellationPolicy.decide(role, freight.status)
        if decision is None:
            return FreightOutcome.fail(
                OutcomeCode.FORBIDDEN,
                f"Role {role.value} cannot cancel a freight in status {freight.status.value}",
                freight=freight,
            )
        if not await self._is_party(db, freight, actor_id, role, company_id):
            return FreightOutcome.fail(OutcomeCode.NOT_OWNER, "You are not a party to this freight")

        # A producer cancelling while a driver's request is pending approves it
        if decision == CancellationDecision.CONTACT_SUPPORT and role in (UserRole.PRODUCER, UserRole.ADMIN):
            if await freight_store.get_pending_cancellation_request(db, freight_id) is not None:
                decision = CancellationDecision.DIRECT_CANCEL

        if decision == CancellationDecision.CONTACT_SUPPORT:
            return FreightOutcome.fail(
                OutcomeCode.CONTACT_SUPPORT,
                "Freight is already under way; contact support to cancel it",
                freight=freight,
            )
        if decision == CancellationDecision.REQUEST_APPROVAL:
            return await self._request_cancellation(db, freight, actor_id, reason)

        if role in DRIVER_ROLES and freight.is_multi_truck:
            return await self._release_slot(db, freight, actor_id, actor_id, reason, HistoryNote.DRIVER_WITHDREW)
        return await self._cancel_freight(db, freight, actor_id, reason)

    async def _cancel_freight(
        self,
        db: AsyncSession,
        freight: Freight,
        actor_id: Optional[int],
        reason: Optional[str],
        note: str = HistoryNote.CANCELLED,
        predicates=(),
        event_type: FreightEventType = FreightEventType.FREIGHT_CANCELLED,
    ) -> FreightOutcome:
        freight_id = freight.id
        previous_status = freight.status
        recipients = await self._recipients(db, freight)

        moved = await freight_store.conditional_transition(
            db,
            freight_id,
            previous_status,
            FreightStatus.CANCELLED,
            predicates=predicates,
            cancellation_reason=reason[:500] if reason else None,
            cancelled_at=datetime.utcnow(),
        )
        await db.commit()
        if not moved:
            return FreightOutcome.conflict(freight_id, freight=await freight_store.get_freight(db, freight_id, fresh=True))

        async def write_cancellation():
            await freight_store.cancel_assignments(db, freight_id)
            await freight_store.close_pending_proposals(db, freight_id, ProposalStatus.CANCELLED)
            await freight_store.decide_cancellation_requests(
                db, freight_id, CancellationRequestStatus.APPROVED, actor_id
            )
            notes = f"{note}: {reason}" if reason else note
            await record_status_change(db, freight_id, FreightStatus.CANCELLED, previous_status, actor_id, notes)

        await self._side_writes(db, "freight.cancel", freight_id, write_cancellation)

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        logger.info(
            "Freight cancelled",
            extra={"freight_id": freight_id, "previous_status": previous_status.value, "actor_id": actor_id},
        )
        self._notify(
            event_type, freight_id, recipients,
            actor_id=actor_id, status=FreightStatus.CANCELLED,
            previous_status=previous_status.value, reason=reason,
        )
        return FreightOutcome.ok(freight, "Freight cancelled", previous_status=previous_status.value)

    async def _request_cancellation(
        self,
        db: AsyncSession,
        freight: Freight,
        actor_id: int,
        reason: Optional[str],
    ) -> FreightOutcome:
        """Record a driver's cancellation request; the freight is untouched."""
        request = await freight_store.get_pending_cancellation_request(db, freight.id, actor_id)
        if request is None:
            request = CancellationRequest(
                freight_id=freight.id,
                requested_by=actor_id,
                reason=reason[:500] if reason else None,
            )
            db.add(request)
            await db.commit()

        self._notify(
            FreightEventType.CANCELLATION_REQUESTED, freight.id, [freight.producer_id],
            actor_id=actor_id, status=freight.status, request_id=request.id, reason=reason,
        )
        return FreightOutcome.ok(
            freight,
            "Cancellation request sent to the producer",
            code=OutcomeCode.APPROVAL_REQUESTED,
            request_id=request.id,
        )

    async def deny_cancellation_request(self, db: AsyncSession, request_id: int, actor: User) -> FreightOutcome:
        """Producer denies a driver's pending cancellation request."""
        actor_id, role = actor.id, UserRole(actor.role)
        if role not in (UserRole.PRODUCER, UserRole.ADMIN):
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Only the producer can decide cancellation requests")

        request = await freight_store.get_cancellation_request(db, request_id)
        if request is None:
            return FreightOutcome.not_found("Cancellation request", request_id)

        freight = await freight_store.get_freight(db, request.freight_id, fresh=True)
        if role == UserRole.PRODUCER and freight.producer_id != actor_id:
            return FreightOutcome.fail(OutcomeCode.NOT_OWNER, "You do not own this freight")

        requested_by = request.requested_by
        if request.status == CancellationRequestStatus.DENIED:
            return FreightOutcome.ok(freight, "Cancellation request already denied", request_id=request_id)
        if request.status != CancellationRequestStatus.PENDING:
            return FreightOutcome.fail(
                OutcomeCode.FINAL_STATE_LOCKED,
                f"Cancellation request was already {request.status.value}",
                freight=freight,
            )

        decided = await freight_store.decide_cancellation_requests(
            db, freight.id, CancellationRequestStatus.DENIED, actor_id, request_id=request_id
        )
        await db.commit()
        if not decided:
            return FreightOutcome.conflict(freight.id, freight=freight)

        self._notify(
            FreightEventType.CANCELLATION_DENIED, freight.id, [requested_by],
            actor_id=actor_id, status=freight.status, request_id=request_id,
        )
        return FreightOutcome.ok(freight, "Cancellation request denied", request_id=request_id)

    async def reopen(self, db: AsyncSession, freight_id: int, actor: User) -> FreightOutcome:
        """
        Reopen a cancelled freight for a new bidding round.

        Clears the driver, company and truck count. Reopening a freight that
        is already OPEN is a no-op success.
        """
        actor_id, role = actor.id, UserRole(actor.role)
        if role not in (UserRole.PRODUCER, UserRole.ADMIN):
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Only the producer can reopen a freight")

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)
        if role == UserRole.PRODUCER and freight.producer_id != actor_id:
            return FreightOutcome.fail(OutcomeCode.NOT_OWNER, "You do not own this freight")

        if freight.status == FreightStatus.OPEN:
            return FreightOutcome.ok(freight, "Freight is already open", code=OutcomeCode.ALREADY_IN_STATUS)
        if freight.status != FreightStatus.CANCELLED:
            return FreightOutcome.fail(
                OutcomeCode.INVALID_TRANSITION,
                f"Only cancelled freights can be reopened (status: {freight.status.value})",
                freight=freight,
                current_status=freight.status.value,
                allowed_next=[s.value for s in allowed_next(freight.status)],
            )

        moved = await freight_store.conditional_transition(
            db,
            freight_id,
            FreightStatus.CANCELLED,
            FreightStatus.OPEN,
            driver_id=None,
            company_id=None,
            accepted_trucks=0,
            cancellation_reason=None,
            cancelled_at=None,
        )
        await db.commit()
        if not moved:
            return FreightOutcome.conflict(freight_id, freight=await freight_store.get_freight(db, freight_id, fresh=True))

        async def write_history():
            await freight_store.cancel_assignments(db, freight_id)
            await record_status_change(
                db, freight_id, FreightStatus.OPEN, FreightStatus.CANCELLED, actor_id, HistoryNote.REOPENED
            )

        await self._side_writes(db, "freight.reopen", freight_id, write_history)

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        self._notify(
            FreightEventType.FREIGHT_REOPENED, freight_id, [freight.producer_id],
            actor_id=actor_id, status=FreightStatus.OPEN,
        )
        return FreightOutcome.ok(freight, "Freight reopened")

    async def release_driver(
        self,
        db: AsyncSession,
        freight_id: int,
        actor: User,
        driver_id: int,
        reason: Optional[str] = None,
    ) -> FreightOutcome:
        """Producer removes a driver before the cargo is loaded; the slot reopens."""
        actor_id, role = actor.id, UserRole(actor.role)
        if role not in (UserRole.PRODUCER, UserRole.ADMIN):
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Only the producer can release a driver")

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)
        if role == UserRole.PRODUCER and freight.producer_id != actor_id:
            return FreightOutcome.fail(OutcomeCode.NOT_OWNER, "You do not own this freight")

        if is_final(freight.status):
            return FreightOutcome.fail(
                OutcomeCode.FINAL_STATE_LOCKED, f"Freight is {freight.status.value}", freight=freight
            )
        if freight.status not in RELEASABLE_STATUSES:
            return FreightOutcome.fail(
                OutcomeCode.INVALID_TRANSITION,
                f"Drivers can only be released before loading is finished (status: {freight.status.value})",
                freight=freight,
                current_status=freight.status.value,
            )

        return await self._release_slot(db, freight, actor_id, driver_id, reason, HistoryNote.DRIVER_RELEASED)

    async def _release_slot(
        self,
        db: AsyncSession,
        freight: Freight,
        actor_id: int,
        driver_id: int,
        reason: Optional[str],
        note: str,
    ) -> FreightOutcome:
        freight_id = freight.id
        producer_id = freight.producer_id
        previous_status = freight.status

        assignment = await freight_store.get_assignment(db, freight_id, driver_id)
        if assignment is None or assignment.status != AssignmentStatus.ACCEPTED:
            return FreightOutcome.not_eligible(
                "NOT_ASSIGNED", "Driver holds no accepted truck on this freight", freight=freight
            )

        released = await freight_store.release_truck_slot(db, freight_id, driver_id, previous_status)
        await db.commit()
        if not released:
            return FreightOutcome.conflict(freight_id, freight=await freight_store.get_freight(db, freight_id, fresh=True))

        async def write_release():
            await freight_store.cancel_assignments(db, freight_id, driver_id=driver_id)
            await freight_store.close_pending_proposals(
                db, freight_id, ProposalStatus.CANCELLED, driver_id=driver_id
            )
            current = await freight_store.get_freight(db, freight_id, fresh=True)
            notes = f"{note}: {reason}" if reason else note
            await record_status_change(db, freight_id, current.status, previous_status, actor_id, notes)

        await self._side_writes(db, "freight.release_slot", freight_id, write_release)

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        withdrew = actor_id == driver_id
        self._notify(
            FreightEventType.DRIVER_WITHDREW if withdrew else FreightEventType.DRIVER_RELEASED,
            freight_id,
            [producer_id, driver_id],
            actor_id=actor_id,
            status=freight.status,
            driver_id=driver_id,
            reason=reason,
        )
        return FreightOutcome.ok(
            freight,
            "Driver withdrew from freight" if withdrew else "Driver released",
            driver_id=driver_id,
        )

    async def complete_freight(self, db: AsyncSession, freight_id: int, actor: User) -> FreightOutcome:
        """
        Close a delivered freight after settlement.

        DELIVERED is terminal for every party; only the settlement path
        (administrators) moves it to COMPLETED.
        """
        actor_id, role = actor.id, UserRole(actor.role)
        if role != UserRole.ADMIN:
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Only administrators can close a freight")

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)
        if freight.status == FreightStatus.COMPLETED:
            return FreightOutcome.ok(freight, "Freight is already completed", code=OutcomeCode.ALREADY_IN_STATUS)
        if freight.status != FreightStatus.DELIVERED:
            return FreightOutcome.fail(
                OutcomeCode.INVALID_TRANSITION,
                f"Only delivered freights can be completed (status: {freight.status.value})",
                freight=freight,
                current_status=freight.status.value,
            )

        moved = await freight_store.conditional_transition(
            db, freight_id, FreightStatus.DELIVERED, FreightStatus.COMPLETED
        )
        await db.commit()
        if not moved:
            return FreightOutcome.conflict(freight_id, freight=await freight_store.get_freight(db, freight_id, fresh=True))

        async def write_history():
            await freight_store.complete_assignments(db, freight_id)
            await record_status_change(
                db, freight_id, FreightStatus.COMPLETED, FreightStatus.DELIVERED, actor_id, HistoryNote.SETTLED
            )

        await self._side_writes(db, "freight.complete", freight_id, write_history)

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        self._notify(
            FreightEventType.FREIGHT_COMPLETED, freight_id, await self._recipients(db, freight),
            actor_id=actor_id, status=FreightStatus.COMPLETED,
        )
        return FreightOutcome.ok(freight, "Freight completed")

    async def admin_override(
        self,
        db: AsyncSession,
        freight_id: int,
        actor: User,
        new_status,
        notes: Optional[str] = None,
    ) -> FreightOutcome:
        """
        Force a freight into any status (administrators only).

        Bypasses the transition table, terminal statuses included, but
        still writes conditionally on the status that was read.
        """
        actor_id, role = actor.id, UserRole(actor.role)
        if role != UserRole.ADMIN:
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Administrative override requires an admin")

        try:
            target = normalize(new_status, strict=True)
        except UnknownStatusError as exc:
            return FreightOutcome.fail(OutcomeCode.INVALID_TRANSITION, str(exc))

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)

        current = freight.status
        if current == target:
            return FreightOutcome.ok(freight, f"Freight is already {target.value}", code=OutcomeCode.ALREADY_IN_STATUS)

        moved = await freight_store.conditional_transition(db, freight_id, current, target)
        await db.commit()
        if not moved:
            return FreightOutcome.conflict(freight_id, freight=await freight_store.get_freight(db, freight_id, fresh=True))

        async def write_history():
            text = f"{HistoryNote.ADMIN_OVERRIDE}: {notes}" if notes else HistoryNote.ADMIN_OVERRIDE
            await record_status_change(db, freight_id, target, current, actor_id, text)

        await self._side_writes(db, "freight.admin_override", freight_id, write_history)

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        logger.warning(
            "Freight status overridden",
            extra={"freight_id": freight_id, "from_status": current.value, "to_status": target.value, "admin_id": actor_id},
        )
        self._notify(
            FreightEventType.STATUS_CHANGED, freight_id, await self._recipients(db, freight),
            actor_id=actor_id, status=target, previous_status=current.value, override=True,
        )
        return FreightOutcome.ok(freight, f"Freight overridden to {target.value}", previous_status=current.value)

    async def expire_freight(self, db: AsyncSession, freight: Freight, now: Optional[datetime] = None) -> bool:
        """
        Auto-cancel a freight whose TTL lapsed.

        The write only lands while nobody has committed a truck, so a freight
        accepted between the read and the write is left alone.

        Returns:
            True if the freight was expired
        """
        if not expiration_policy.is_expired(freight, now):
            return False

        outcome = await self._cancel_freight(
            db,
            freight,
            actor_id=None,
            reason="Expired",
            note=HistoryNote.EXPIRED,
            predicates=(Freight.accepted_trucks == 0,),
            event_type=FreightEventType.FREIGHT_EXPIRED,
        )
        return outcome.success

    async def check_state_consistency(self, db: AsyncSession, freight_id: int) -> Dict[str, Any]:
        """
        Compare a freight row with its assignments.

        Inconsistencies are reported to the alert sink; nothing is repaired.
        """
        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return {"freight_id": freight_id, "found": False, "consistent": False, "issues": ["FREIGHT_NOT_FOUND"]}

        issues = []
        accepted = await freight_store.count_accepted_assignments(db, freight_id)
        if freight.accepted_trucks > freight.required_trucks:
            issues.append("ACCEPTED_TRUCKS_EXCEED_REQUIRED")
        live_statuses = (
            FreightStatus.OPEN, FreightStatus.IN_NEGOTIATION, FreightStatus.ACCEPTED,
            FreightStatus.LOADING, FreightStatus.LOADED, FreightStatus.IN_TRANSIT,
            FreightStatus.DELIVERED_PENDING_CONFIRMATION,
        )
        if freight.status in live_statuses and accepted != freight.accepted_trucks:
            issues.append("ASSIGNMENT_COUNT_MISMATCH")
        if freight.driver_id is not None and freight.accepted_trucks == 0 and freight.status in live_statuses:
            issues.append("DRIVER_WITHOUT_ACCEPTED_TRUCK")
        if freight.status == FreightStatus.ACCEPTED and freight.accepted_trucks < freight.required_trucks:
            issues.append("ACCEPTED_BUT_NOT_FULLY_STAFFED")

        if issues:
            self.alerts.record_inconsistency("freight", issues, {"freight_id": freight_id})

        return {
            "freight_id": freight_id,
            "found": True,
            "consistent": not issues,
            "issues": issues,
            "status": freight.status.value,
            "accepted_trucks": freight.accepted_trucks,
            "required_trucks": freight.required_trucks,
            "accepted_assignments": accepted,
        }
