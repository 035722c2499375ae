"""
Acceptance Coordinator.

Moves a freight from open toward assigned with at most one winner per
truck slot, however many drivers race for it. The only concurrency
control is the conditional slot claim in `freight_store`; preconditions
are checked beforehand so that most losers are turned away without a
write, and the claim's predicate settles the rest.

Also reconciles the negotiated path: a driver's proposal accepted by the
producer goes through the same claim with the proposed price.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.freight.operations import FreightOperations
from backend.app.domain.freight.outcomes import FreightOutcome, OutcomeCode
from backend.app.domain.freight.pricing_visibility import PricingError, PricingVisibilityEngine
from backend.app.domain.freight.status_registry import OPEN_STATUSES
from backend.app.models.enums import CARRIER_ROLES, DRIVER_ROLES, UserRole
from backend.app.models.freight import Freight
from backend.app.models.freight_assignment import FreightAssignment
from backend.app.models.freight_enums import (
    AssignmentStatus, FreightStatus, ProposalStatus, ServiceCategory
)
from backend.app.models.freight_proposal import FreightProposal
from backend.app.models.user import User
from backend.app.services import freight_store
from backend.app.services.notification_dispatcher import FreightEventType
from backend.app.services.status_history import HistoryNote, record_status_change


logger = logging.getLogger(__name__)

# Minimum per-truck price for motorcycle courier freights
MOTO_MINIMUM_PRICE = Decimal("10.00")


class AcceptanceCoordinator(FreightOperations):

    async def accept(
        self,
        db: AsyncSession,
        freight_id: int,
        actor: User,
        driver_id: Optional[int] = None,
        company_id: Optional[int] = None,
    ) -> FreightOutcome:
        """
        Accept one truck slot of a freight at its listed price.

        Args:
            db: Database session
            freight_id: Freight to accept
            actor: Calling user (driver, affiliated driver or company)
            driver_id: Driver who will carry the freight, defaults to the actor
            company_id: Transport company behind the driver, if any

        Returns:
            FreightOutcome: OK / ALREADY_ACCEPTED on success; CONFLICT when
            the race was lost; NOT_ELIGIBLE, FORBIDDEN or NOT_FOUND otherwise
        """
        actor_id, actor_role, actor_company = actor.id, UserRole(actor.role), actor.company_id
        driver_id = driver_id or actor_id

        if actor_role not in CARRIER_ROLES:
            return FreightOutcome.fail(
                OutcomeCode.FORBIDDEN, "Only drivers and transport companies can accept freights"
            )

        if actor_role in DRIVER_ROLES:
            if driver_id != actor_id:
                return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Drivers can only accept freights for themselves")
            if actor_role == UserRole.AFFILIATED_DRIVER:
                company_id = company_id or actor_company
                if company_id is None or company_id != actor_company:
                    return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Driver is not affiliated with this company")
            elif company_id is not None:
                return FreightOutcome.fail(
                    OutcomeCode.FORBIDDEN, "Independent drivers cannot accept on behalf of a company"
                )
        else:
            company_id = company_id or actor_company
            if actor_company is None or company_id != actor_company:
                return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Companies can only dispatch their own drivers")

        freight = await freight_store.get_freight(db, freight_id)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)

        driver = actor if driver_id == actor_id else await freight_store.get_user(db, driver_id)
        if driver is None:
            return FreightOutcome.not_found("Driver", driver_id)
        if actor_role == UserRole.COMPANY and (
            driver.role not in DRIVER_ROLES or driver.company_id != company_id
        ):
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Driver is not affiliated with this company")

        assignment = await freight_store.get_assignment(db, freight_id, driver_id)
        if assignment is not None and assignment.status == AssignmentStatus.ACCEPTED:
            return FreightOutcome.ok(
                freight,
                "Driver has already accepted this freight",
                code=OutcomeCode.ALREADY_ACCEPTED,
                assignment_id=assignment.id,
            )

        if not actor.is_approved:
            return FreightOutcome.not_eligible("PROFILE_NOT_APPROVED", "Your profile has not been approved yet")

        rejection = await self._check_driver(db, freight, driver) or self._check_slots(freight)
        if rejection is not None:
            return rejection

        try:
            agreed_price = self._agreed_price(freight, PricingVisibilityEngine.unit_price(freight))
        except PricingError as exc:
            return FreightOutcome.not_eligible(exc.reason, str(exc), freight=freight)

        proposal = await freight_store.get_proposal(db, freight_id, driver_id)
        if proposal is not None and proposal.status != ProposalStatus.PENDING:
            proposal = None

        return await self._claim(
            db,
            freight,
            actor_id=actor_id,
            driver_id=driver_id,
            company_id=company_id,
            agreed_price=agreed_price,
            assignment=assignment,
            proposal=proposal,
            note=HistoryNote.TRUCK_ACCEPTED,
        )

    async def accept_many(
        self,
        db: AsyncSession,
        freight_id: int,
        actor: User,
        driver_ids: List[int],
    ) -> FreightOutcome:
        """
        Dispatch several of a company's drivers onto one freight.

        Each driver takes a slot through its own conditional claim. The run
        stops at the first driver that does not get one; drivers seated
        before that keep their slots.

        Returns:
            The last driver's outcome, with a per-driver `results` list
        """
        if UserRole(actor.role) != UserRole.COMPANY:
            return FreightOutcome.fail(
                OutcomeCode.FORBIDDEN, "Only transport companies can accept several trucks at once"
            )
        if not driver_ids:
            return FreightOutcome.not_eligible("NO_DRIVERS", "At least one driver is required")
        if len(set(driver_ids)) != len(driver_ids):
            return FreightOutcome.not_eligible("DUPLICATE_DRIVER", "Each driver can take only one truck")

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)
        if freight.status in OPEN_STATUSES and freight.available_slots < len(driver_ids):
            return FreightOutcome.not_eligible(
                "NOT_ENOUGH_SLOTS",
                f"Only {freight.available_slots} slot(s) available, {len(driver_ids)} requested",
                freight=freight,
            )

        results = []
        for driver_id in driver_ids:
            outcome = await self.accept(db, freight_id, actor, driver_id=driver_id)
            results.append({"driver_id": driver_id, "code": outcome.code.value})
            if not outcome.success:
                break

        outcome.details["results"] = results
        return outcome

    async def accept_proposal(self, db: AsyncSession, proposal_id: int, actor: User) -> FreightOutcome:
        """
        Accept a driver's proposal at the proposed price (producer side).

        Goes through the same slot claim as a listed-price acceptance.
        """
        actor_id, actor_role = actor.id, UserRole(actor.role)
        if actor_role not in (UserRole.PRODUCER, UserRole.ADMIN):
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Only the producer can accept proposals")

        proposal = await freight_store.get_proposal_by_id(db, proposal_id)
        if proposal is None:
            return FreightOutcome.not_found("Proposal", proposal_id)

        freight = await freight_store.get_freight(db, proposal.freight_id)
        if freight is None:
            return FreightOutcome.not_found("Freight", proposal.freight_id)
        if actor_role == UserRole.PRODUCER and freight.producer_id != actor_id:
            return FreightOutcome.fail(OutcomeCode.NOT_OWNER, "You do not own this freight")

        if proposal.status != ProposalStatus.PENDING:
            return FreightOutcome.not_eligible(
                "PROPOSAL_NOT_PENDING",
                f"Proposal is {proposal.status.value}, only PENDING proposals can be accepted",
                freight=freight,
            )

        assignment = await freight_store.get_assignment(db, freight.id, proposal.driver_id)
        if assignment is not None and assignment.status == AssignmentStatus.ACCEPTED:
            return FreightOutcome.ok(
                freight,
                "Driver has already accepted this freight",
                code=OutcomeCode.ALREADY_ACCEPTED,
                assignment_id=assignment.id,
            )

        driver = await freight_store.get_user(db, proposal.driver_id)
        if driver is None:
            return FreightOutcome.not_found("Driver", proposal.driver_id)

        rejection = await self._check_driver(db, freight, driver) or self._check_slots(freight)
        if rejection is not None:
            return rejection

        try:
            agreed_price = self._agreed_price(freight, proposal.proposed_price)
        except PricingError as exc:
            return FreightOutcome.not_eligible(exc.reason, str(exc), freight=freight)

        return await self._claim(
            db,
            freight,
            actor_id=actor_id,
            driver_id=proposal.driver_id,
            company_id=proposal.company_id,
            agreed_price=agreed_price,
            assignment=assignment,
            proposal=proposal,
            note=HistoryNote.PROPOSAL_ACCEPTED,
        )

    async def submit_proposal(
        self,
        db: AsyncSession,
        freight_id: int,
        actor: User,
        proposed_price,
        message: Optional[str] = None,
    ) -> FreightOutcome:
        """
        Submit (or resubmit) a driver's counter-offer on an open freight.

        The first proposal on an OPEN freight moves it to IN_NEGOTIATION.
        """
        actor_id, actor_role = actor.id, UserRole(actor.role)
        if actor_role not in DRIVER_ROLES:
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Only drivers can submit proposals")

        freight = await freight_store.get_freight(db, freight_id)
        if freight is None:
            return FreightOutcome.not_found("Freight", freight_id)

        if not actor.is_approved:
            return FreightOutcome.not_eligible("PROFILE_NOT_APPROVED", "Your profile has not been approved yet")

        rejection = self._check_slots(freight)
        if rejection is not None:
            return rejection

        assignment = await freight_store.get_assignment(db, freight_id, actor_id)
        if assignment is not None and assignment.status == AssignmentStatus.ACCEPTED:
            return FreightOutcome.not_eligible(
                "ALREADY_ASSIGNED", "You are already assigned to this freight", freight=freight
            )

        try:
            price = PricingVisibilityEngine.validate_agreed_price(proposed_price)
        except PricingError as exc:
            return FreightOutcome.not_eligible(exc.reason, str(exc), freight=freight)

        freight_status = freight.status
        proposal = await freight_store.get_proposal(db, freight_id, actor_id)
        if proposal is None:
            proposal = FreightProposal(freight_id=freight_id, driver_id=actor_id)
            db.add(proposal)
        proposal.company_id = actor.company_id if actor_role == UserRole.AFFILIATED_DRIVER else None
        proposal.proposed_price = price
        proposal.message = message
        proposal.status = ProposalStatus.PENDING

        moved = await freight_store.conditional_transition(
            db, freight_id, FreightStatus.OPEN, FreightStatus.IN_NEGOTIATION
        )
        if moved:
            await record_status_change(
                db, freight_id, FreightStatus.IN_NEGOTIATION, freight_status, actor_id, HistoryNote.NEGOTIATION_STARTED
            )
        await db.commit()

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        self._notify(
            FreightEventType.PROPOSAL_SUBMITTED,
            freight_id,
            [freight.producer_id],
            actor_id=actor_id,
            status=freight.status,
            proposal_id=proposal.id,
            proposed_price=str(price),
        )
        return FreightOutcome.ok(freight, "Proposal submitted", proposal_id=proposal.id)

    async def reject_proposal(self, db: AsyncSession, proposal_id: int, actor: User) -> FreightOutcome:
        """Reject a PENDING proposal (producer side). Idempotent."""
        actor_id, actor_role = actor.id, UserRole(actor.role)
        if actor_role not in (UserRole.PRODUCER, UserRole.ADMIN):
            return FreightOutcome.fail(OutcomeCode.FORBIDDEN, "Only the producer can reject proposals")

        proposal = await freight_store.get_proposal_by_id(db, proposal_id)
        if proposal is None:
            return FreightOutcome.not_found("Proposal", proposal_id)

        freight = await freight_store.get_freight(db, proposal.freight_id)
        if actor_role == UserRole.PRODUCER and freight.producer_id != actor_id:
            return FreightOutcome.fail(OutcomeCode.NOT_OWNER, "You do not own this freight")

        driver_id = proposal.driver_id
        if proposal.status == ProposalStatus.REJECTED:
            return FreightOutcome.ok(freight, "Proposal already rejected", proposal_id=proposal_id)
        if proposal.status != ProposalStatus.PENDING:
            return FreightOutcome.not_eligible(
                "PROPOSAL_NOT_PENDING",
                f"Proposal is {proposal.status.value}, only PENDING proposals can be rejected",
                freight=freight,
            )

        rejected = await freight_store.transition_proposal(
            db, proposal_id, ProposalStatus.PENDING, ProposalStatus.REJECTED
        )
        await db.commit()
        if not rejected:
            return FreightOutcome.conflict(freight.id, freight=freight)

        self._notify(
            FreightEventType.PROPOSAL_REJECTED,
            freight.id,
            [driver_id],
            actor_id=actor_id,
            status=freight.status,
            proposal_id=proposal_id,
        )
        return FreightOutcome.ok(freight, "Proposal rejected", proposal_id=proposal_id)

    async def _check_driver(self, db: AsyncSession, freight: Freight, driver: User) -> Optional[FreightOutcome]:
        if driver.role not in DRIVER_ROLES:
            return FreightOutcome.not_eligible("NOT_A_DRIVER", "Only drivers can be assigned to a freight")
        if not driver.is_approved:
            return FreightOutcome.not_eligible("PROFILE_NOT_APPROVED", "Driver profile has not been approved yet")
        if not driver.location_enabled:
            return FreightOutcome.not_eligible(
                "LOCATION_DISABLED", "Location sharing must be enabled to accept freights"
            )
        if not await freight_store.has_tracking_consent(db, freight.id, driver.id):
            return FreightOutcome.not_eligible(
                "TRACKING_CONSENT_REQUIRED", "Tracking consent is required for this freight"
            )
        return None

    @staticmethod
    def _check_slots(freight: Freight) -> Optional[FreightOutcome]:
        if freight.status not in OPEN_STATUSES:
            return FreightOutcome.not_eligible(
                "FREIGHT_NOT_OPEN",
                f"Freight is no longer available (status: {freight.status.value})",
                freight=freight,
            )
        if freight.available_slots <= 0:
            return FreightOutcome.not_eligible("FULLY_STAFFED", "All trucks for this freight are taken", freight=freight)
        return None

    @staticmethod
    def _agreed_price(freight: Freight, price) -> Decimal:
        floor = freight.minimum_price
        if freight.service_category == ServiceCategory.FRETE_MOTO:
            floor = max(Decimal(str(floor or 0)), MOTO_MINIMUM_PRICE)
        return PricingVisibilityEngine.validate_agreed_price(price, floor)

    async def _claim(
        self,
        db: AsyncSession,
        freight: Freight,
        actor_id: int,
        driver_id: int,
        company_id: Optional[int],
        agreed_price: Decimal,
        assignment: Optional[FreightAssignment],
        proposal: Optional[FreightProposal],
        note: str,
    ) -> FreightOutcome:
        freight_id = freight.id
        producer_id = freight.producer_id
        previous_status = freight.status
        proposal_id = proposal.id if proposal is not None else None

        claimed = await freight_store.claim_truck_slot(db, freight_id, driver_id, company_id)
        await db.commit()
        if not claimed:
            logger.info("Acceptance race lost", extra={"freight_id": freight_id, "driver_id": driver_id})
            current = await freight_store.get_freight(db, freight_id, fresh=True)
            return FreightOutcome.conflict(freight_id, freight=current)

        async def write_assignment():
            row = assignment or FreightAssignment(freight_id=freight_id, driver_id=driver_id)
            row.company_id = company_id
            row.status = AssignmentStatus.ACCEPTED
            row.agreed_price = agreed_price
            row.accepted_at = datetime.utcnow()
            row.cancelled_at = None
            db.add(row)

            if proposal_id is not None:
                await freight_store.transition_proposal(
                    db, proposal_id, ProposalStatus.PENDING, ProposalStatus.ACCEPTED
                )

            current = await freight_store.get_freight(db, freight_id, fresh=True)
            if current.status == FreightStatus.ACCEPTED:
                await freight_store.close_pending_proposals(
                    db, freight_id, ProposalStatus.REJECTED, exclude_driver_id=driver_id
                )
            await record_status_change(
                db,
                freight_id,
                current.status,
                previous_status,
                actor_id,
                f"{note} ({current.accepted_trucks}/{current.required_trucks})",
            )

        failure = await self._side_writes(db, "freight.accept", freight_id, write_assignment)
        if failure is not None:
            return await self._undo_claim(db, freight_id, driver_id, previous_status, failure)

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        logger.info(
            "Freight truck accepted",
            extra={
                "freight_id": freight_id,
                "driver_id": driver_id,
                "accepted_trucks": freight.accepted_trucks,
                "required_trucks": freight.required_trucks,
            },
        )

        self._notify(
            FreightEventType.FREIGHT_ACCEPTED,
            freight_id,
            [producer_id, driver_id],
            actor_id=actor_id,
            status=freight.status,
            driver_id=driver_id,
            agreed_price=str(agreed_price),
        )
        if freight.status != previous_status:
            self._notify(
                FreightEventType.STATUS_CHANGED,
                freight_id,
                [producer_id],
                actor_id=actor_id,
                status=freight.status,
                previous_status=previous_status.value,
            )

        if freight.status == FreightStatus.ACCEPTED:
            message = "Freight accepted"
        else:
            message = f"Truck {freight.accepted_trucks}/{freight.required_trucks} accepted"
        return FreightOutcome.ok(
            freight,
            message,
            driver_id=driver_id,
            agreed_price=str(agreed_price),
        )

    async def _undo_claim(
        self,
        db: AsyncSession,
        freight_id: int,
        driver_id: int,
        previous_status: FreightStatus,
        failure: SQLAlchemyError,
    ) -> FreightOutcome:
        """
        Give back a slot whose assignment could not be written.

        A unique-constraint failure means the same driver won an earlier
        claim concurrently, so the caller already holds a slot.
        """
        returned = await freight_store.undo_truck_claim(db, freight_id, driver_id, previous_status)
        await db.commit()
        if not returned:
            self.alerts.record_inconsistency(
                "freight",
                ["SLOT_NOT_RETURNED"],
                {"freight_id": freight_id, "driver_id": driver_id},
            )
        logger.warning(
            "Truck claim undone",
            extra={"freight_id": freight_id, "driver_id": driver_id, "slot_returned": returned},
        )

        freight = await freight_store.get_freight(db, freight_id, fresh=True)
        held = next(
            (
                a for a in await freight_store.list_assignments(db, freight_id)
                if a.driver_id == driver_id and a.status == AssignmentStatus.ACCEPTED
            ),
            None,
        )
        if isinstance(failure, IntegrityError) and held is not None:
            return FreightOutcome.ok(
                freight,
                "Driver has already accepted this freight",
                code=OutcomeCode.ALREADY_ACCEPTED,
                assignment_id=held.id,
            )
        return FreightOutcome.conflict(freight_id, freight=freight)
