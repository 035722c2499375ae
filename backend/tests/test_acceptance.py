"""
Acceptance coordinator tests.

Covers listed-price acceptance, multi-truck slot accounting, the
exactly-once guarantee under stale reads, company dispatch and the
negotiated (proposal) path.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from backend.app.domain.freight.acceptance import AcceptanceCoordinator
from backend.app.domain.freight.outcomes import OutcomeCode
from backend.app.models.enums import UserRole
from backend.app.models.freight import Freight
from backend.app.models.freight_enums import (
    AssignmentStatus, FreightStatus, ProposalStatus, ServiceCategory
)
from backend.app.services import freight_store
from backend.app.services.alerts import AlertSink
from backend.app.services.notification_dispatcher import FreightEventType
from backend.app.services.status_history import get_freight_history


@pytest.fixture
def coordinator(notifications):
    return AcceptanceCoordinator(notifications=notifications)


@pytest.fixture
def accept(coordinator, session_factory):
    """Run one acceptance in its own session, like one request."""
    async def _accept(freight_id, actor, **kwargs):
        async with session_factory() as session:
            return await coordinator.accept(session, freight_id, actor, **kwargs)
    return _accept


async def load_state(session_factory, freight_id):
    async with session_factory() as session:
        freight = await freight_store.get_freight(session, freight_id, fresh=True)
        assignments = await freight_store.list_assignments(session, freight_id)
    return freight, assignments


def stale_snapshot(freight):
    """What every racer read before anyone wrote."""
    return Freight(
        id=freight.id,
        producer_id=freight.producer_id,
        status=FreightStatus.OPEN,
        required_trucks=freight.required_trucks,
        accepted_trucks=0,
        pricing_type=freight.pricing_type,
        price=freight.price,
        minimum_price=freight.minimum_price,
        service_category=freight.service_category,
    )


@pytest.fixture
def stale_reads(monkeypatch):
    """Make non-fresh freight reads return a fixed snapshot."""
    real_get_freight = freight_store.get_freight

    def _install(freight):
        snapshot = stale_snapshot(freight)

        async def get_freight(db, freight_id, fresh=False):
            if fresh or freight_id != snapshot.id:
                return await real_get_freight(db, freight_id, fresh=fresh)
            return snapshot

        monkeypatch.setattr(freight_store, "get_freight", get_freight)

    return _install


@pytest.mark.asyncio
async def test_single_truck_accept(accept, make_freight, ready_driver, session_factory, notifications):
    freight = await make_freight()
    driver = await ready_driver(freight)

    outcome = await accept(freight.id, driver)

    assert outcome.success
    assert outcome.code == OutcomeCode.OK
    assert outcome.details["agreed_price"] == "1000.00"

    stored, assignments = await load_state(session_factory, freight.id)
    assert stored.status == FreightStatus.ACCEPTED
    assert stored.driver_id == driver.id
    assert stored.accepted_trucks == 1
    assert [(a.driver_id, a.status, a.agreed_price) for a in assignments] == [
        (driver.id, AssignmentStatus.ACCEPTED, Decimal("1000.00"))
    ]

    async with session_factory() as session:
        history = await get_freight_history(session, freight.id)
    assert history[-1].status == FreightStatus.ACCEPTED
    assert history[-1].previous_status == FreightStatus.OPEN

    assert FreightEventType.FREIGHT_ACCEPTED in notifications.types()
    assert FreightEventType.STATUS_CHANGED in notifications.types()


@pytest.mark.asyncio
async def test_multi_truck_partial_acceptance_stays_open(accept, make_freight, ready_driver, session_factory):
    freight = await make_freight(required_trucks=3)
    first = await ready_driver(freight)

    outcome = await accept(freight.id, first)

    assert outcome.success
    assert outcome.message == "Truck 1/3 accepted"
    stored, _ = await load_state(session_factory, freight.id)
    assert stored.status == FreightStatus.OPEN
    assert stored.accepted_trucks == 1
    assert stored.driver_id is None


@pytest.mark.asyncio
async def test_reaccept_is_idempotent(accept, make_freight, ready_driver, session_factory):
    freight = await make_freight(required_trucks=2)
    driver = await ready_driver(freight)

    await accept(freight.id, driver)
    again = await accept(freight.id, driver)

    assert again.success
    assert again.code == OutcomeCode.ALREADY_ACCEPTED
    stored, assignments = await load_state(session_factory, freight.id)
    assert stored.accepted_trucks == 1
    assert len(assignments) == 1


@pytest.mark.asyncio
async def test_stale_racers_never_overbook(accept, make_freight, ready_driver, session_factory, stale_reads):
    """Four drivers who all saw an empty two-truck freight: two win, two conflict."""
    freight = await make_freight(required_trucks=2)
    drivers = [await ready_driver(freight) for _ in range(4)]
    stale_reads(freight)

    outcomes = [await accept(freight.id, driver) for driver in drivers]

    assert [o.code for o in outcomes] == [
        OutcomeCode.OK, OutcomeCode.OK, OutcomeCode.CONFLICT, OutcomeCode.CONFLICT,
    ]
    assert all(o.retryable for o in outcomes if not o.success)
    assert outcomes[2].details["retryable"] is True

    stored, assignments = await load_state(session_factory, freight.id)
    assert stored.status == FreightStatus.ACCEPTED
    assert stored.accepted_trucks == 2
    accepted = [a for a in assignments if a.status == AssignmentStatus.ACCEPTED]
    assert sorted(a.driver_id for a in accepted) == sorted(d.id for d in drivers[:2])


@pytest.mark.asyncio
async def test_two_drivers_same_instant_one_winner(
    accept, make_freight, ready_driver, session_factory, stale_reads, monkeypatch
):
    freight = await make_freight()
    driver_a = await ready_driver(freight)
    driver_b = await ready_driver(freight)
    stale_reads(freight)

    won = await accept(freight.id, driver_a)
    lost = await accept(freight.id, driver_b)

    assert won.code == OutcomeCode.OK
    assert lost.code == OutcomeCode.CONFLICT
    assert lost.freight.status == FreightStatus.ACCEPTED

    monkeypatch.undo()
    retry = await accept(freight.id, driver_b)

    assert retry.code == OutcomeCode.NOT_ELIGIBLE
    assert retry.details["reason"] == "FREIGHT_NOT_OPEN"

    stored, _ = await load_state(session_factory, freight.id)
    assert stored.status == FreightStatus.ACCEPTED
    assert stored.driver_id == driver_a.id


@pytest.mark.asyncio
async def test_fully_staffed_freight_turns_away_without_write(accept, make_freight, ready_driver, session_factory):
    freight = await make_freight(required_trucks=1)
    await accept(freight.id, await ready_driver(freight))

    late = await accept(freight.id, await ready_driver(freight))

    assert late.code == OutcomeCode.NOT_ELIGIBLE
    stored, _ = await load_state(session_factory, freight.id)
    assert stored.accepted_trucks == 1


class TestEligibility:

    @pytest.mark.asyncio
    async def test_unapproved_driver(self, accept, make_freight, make_user, grant_consent):
        freight = await make_freight()
        driver = await make_user(approved=False)
        await grant_consent(freight, driver)

        outcome = await accept(freight.id, driver)

        assert outcome.code == OutcomeCode.NOT_ELIGIBLE
        assert outcome.details["reason"] == "PROFILE_NOT_APPROVED"

    @pytest.mark.asyncio
    async def test_location_disabled(self, accept, make_freight, make_user, grant_consent):
        freight = await make_freight()
        driver = await make_user(location_enabled=False)
        await grant_consent(freight, driver)

        outcome = await accept(freight.id, driver)

        assert outcome.details["reason"] == "LOCATION_DISABLED"

    @pytest.mark.asyncio
    async def test_tracking_consent_required(self, accept, make_freight, make_user):
        freight = await make_freight()
        driver = await make_user()

        outcome = await accept(freight.id, driver)

        assert outcome.details["reason"] == "TRACKING_CONSENT_REQUIRED"

    @pytest.mark.asyncio
    async def test_producer_cannot_accept(self, accept, make_freight, make_user):
        freight = await make_freight()
        producer = await make_user(role=UserRole.PRODUCER)

        outcome = await accept(freight.id, producer)

        assert outcome.code == OutcomeCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_missing_freight(self, accept, make_user):
        driver = await make_user()

        outcome = await accept(9999, driver)

        assert outcome.code == OutcomeCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_moto_freight_below_minimum_price(self, accept, make_freight, ready_driver):
        freight = await make_freight(service_category=ServiceCategory.FRETE_MOTO, price=Decimal("8.00"))
        driver = await ready_driver(freight)

        outcome = await accept(freight.id, driver)

        assert outcome.code == OutcomeCode.NOT_ELIGIBLE
        assert outcome.details["reason"] == "PRICE_BELOW_FLOOR"

    @pytest.mark.asyncio
    async def test_regulatory_floor(self, accept, make_freight, ready_driver):
        freight = await make_freight(price=Decimal("900.00"), minimum_price=Decimal("950.00"))
        driver = await ready_driver(freight)

        outcome = await accept(freight.id, driver)

        assert outcome.details["reason"] == "PRICE_BELOW_FLOOR"


class TestCompanyDispatch:

    @pytest.mark.asyncio
    async def test_company_dispatches_affiliated_driver(
        self, accept, make_freight, make_user, ready_driver, session_factory
    ):
        freight = await make_freight(required_trucks=2)
        company = await make_user(role=UserRole.COMPANY, company_id=7)
        driver = await ready_driver(freight, role=UserRole.AFFILIATED_DRIVER, company_id=7)

        outcome = await accept(freight.id, company, driver_id=driver.id)

        assert outcome.success
        stored, assignments = await load_state(session_factory, freight.id)
        assert stored.company_id == 7
        assert assignments[0].driver_id == driver.id
        assert assignments[0].company_id == 7

    @pytest.mark.asyncio
    async def test_company_dispatches_several_drivers_at_once(
        self, coordinator, make_freight, make_user, ready_driver, session_factory
    ):
        freight = await make_freight(required_trucks=3)
        company = await make_user(role=UserRole.COMPANY, company_id=7)
        drivers = [await ready_driver(freight, role=UserRole.AFFILIATED_DRIVER, company_id=7) for _ in range(2)]

        async with session_factory() as session:
            outcome = await coordinator.accept_many(session, freight.id, company, [d.id for d in drivers])

        assert outcome.success
        assert outcome.message == "Truck 2/3 accepted"
        assert outcome.details["results"] == [
            {"driver_id": d.id, "code": "OK"} for d in drivers
        ]
        stored, assignments = await load_state(session_factory, freight.id)
        assert stored.accepted_trucks == 2
        assert stored.status == FreightStatus.OPEN
        assert sorted(a.driver_id for a in assignments) == sorted(d.id for d in drivers)

    @pytest.mark.asyncio
    async def test_dispatch_larger_than_free_slots_writes_nothing(
        self, coordinator, make_freight, make_user, ready_driver, session_factory
    ):
        freight = await make_freight(required_trucks=2)
        company = await make_user(role=UserRole.COMPANY, company_id=7)
        drivers = [await ready_driver(freight, role=UserRole.AFFILIATED_DRIVER, company_id=7) for _ in range(3)]

        async with session_factory() as session:
            outcome = await coordinator.accept_many(session, freight.id, company, [d.id for d in drivers])

        assert outcome.code == OutcomeCode.NOT_ELIGIBLE
        assert outcome.details["reason"] == "NOT_ENOUGH_SLOTS"
        stored, assignments = await load_state(session_factory, freight.id)
        assert stored.accepted_trucks == 0
        assert assignments == []

    @pytest.mark.asyncio
    async def test_dispatch_stops_at_first_failure(
        self, coordinator, make_freight, make_user, ready_driver, session_factory
    ):
        freight = await make_freight(required_trucks=3)
        company = await make_user(role=UserRole.COMPANY, company_id=7)
        seated = await ready_driver(freight, role=UserRole.AFFILIATED_DRIVER, company_id=7)
        foreign = await ready_driver(freight, role=UserRole.AFFILIATED_DRIVER, company_id=8)
        never_tried = await ready_driver(freight, role=UserRole.AFFILIATED_DRIVER, company_id=7)

        async with session_factory() as session:
            outcome = await coordinator.accept_many(
                session, freight.id, company, [seated.id, foreign.id, never_tried.id]
            )

        assert outcome.code == OutcomeCode.FORBIDDEN
        assert [r["code"] for r in outcome.details["results"]] == ["OK", "FORBIDDEN"]
        stored, _ = await load_state(session_factory, freight.id)
        assert stored.accepted_trucks == 1

    @pytest.mark.asyncio
    async def test_only_companies_dispatch_several(self, coordinator, make_freight, ready_driver, session_factory):
        freight = await make_freight(required_trucks=2)
        driver = await ready_driver(freight)

        async with session_factory() as session:
            outcome = await coordinator.accept_many(session, freight.id, driver, [driver.id])

        assert outcome.code == OutcomeCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_company_cannot_dispatch_foreign_driver(self, accept, make_freight, make_user, ready_driver):
        freight = await make_freight()
        company = await make_user(role=UserRole.COMPANY, company_id=7)
        driver = await ready_driver(freight, role=UserRole.AFFILIATED_DRIVER, company_id=8)

        outcome = await accept(freight.id, company, driver_id=driver.id)

        assert outcome.code == OutcomeCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_independent_driver_cannot_claim_company(self, accept, make_freight, ready_driver):
        freight = await make_freight()
        driver = await ready_driver(freight)

        outcome = await accept(freight.id, driver, company_id=7)

        assert outcome.code == OutcomeCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_driver_cannot_accept_for_someone_else(self, accept, make_freight, ready_driver):
        freight = await make_freight()
        driver = await ready_driver(freight)
        other = await ready_driver(freight)

        outcome = await accept(freight.id, driver, driver_id=other.id)

        assert outcome.code == OutcomeCode.FORBIDDEN


class TestProposals:

    @pytest.mark.asyncio
    async def test_negotiated_acceptance(
        self, coordinator, make_freight, make_user, ready_driver, session_factory, notifications
    ):
        producer = await make_user(role=UserRole.PRODUCER)
        freight = await make_freight(producer=producer)
        driver = await ready_driver(freight)
        rival = await ready_driver(freight)

        async with session_factory() as session:
            submitted = await coordinator.submit_proposal(session, freight.id, driver, Decimal("900"), "Can load today")
        async with session_factory() as session:
            await coordinator.submit_proposal(session, freight.id, rival, Decimal("950"))

        assert submitted.success
        assert submitted.freight.status == FreightStatus.IN_NEGOTIATION
        assert FreightEventType.PROPOSAL_SUBMITTED in notifications.types()

        async with session_factory() as session:
            outcome = await coordinator.accept_proposal(session, submitted.details["proposal_id"], producer)

        assert outcome.success
        assert outcome.details["agreed_price"] == "900.00"

        stored, assignments = await load_state(session_factory, freight.id)
        assert stored.status == FreightStatus.ACCEPTED
        assert stored.driver_id == driver.id
        assert assignments[0].agreed_price == Decimal("900.00")

        async with session_factory() as session:
            mine = await freight_store.get_proposal(session, freight.id, driver.id)
            theirs = await freight_store.get_proposal(session, freight.id, rival.id)
        assert mine.status == ProposalStatus.ACCEPTED
        assert theirs.status == ProposalStatus.REJECTED

    @pytest.mark.asyncio
    async def test_only_owner_accepts_proposal(self, coordinator, make_freight, make_user, ready_driver, session_factory):
        freight = await make_freight()
        driver = await ready_driver(freight)
        stranger = await make_user(role=UserRole.PRODUCER)

        async with session_factory() as session:
            submitted = await coordinator.submit_proposal(session, freight.id, driver, Decimal("900"))
        async with session_factory() as session:
            outcome = await coordinator.accept_proposal(session, submitted.details["proposal_id"], stranger)

        assert outcome.code == OutcomeCode.NOT_OWNER

    @pytest.mark.asyncio
    async def test_reject_proposal_is_idempotent(
        self, coordinator, make_freight, make_user, ready_driver, session_factory
    ):
        producer = await make_user(role=UserRole.PRODUCER)
        freight = await make_freight(producer=producer)
        driver = await ready_driver(freight)

        async with session_factory() as session:
            submitted = await coordinator.submit_proposal(session, freight.id, driver, Decimal("900"))
        proposal_id = submitted.details["proposal_id"]

        async with session_factory() as session:
            first = await coordinator.reject_proposal(session, proposal_id, producer)
        async with session_factory() as session:
            second = await coordinator.reject_proposal(session, proposal_id, producer)
        async with session_factory() as session:
            accepted = await coordinator.accept_proposal(session, proposal_id, producer)

        assert first.success and second.success
        assert accepted.code == OutcomeCode.NOT_ELIGIBLE
        assert accepted.details["reason"] == "PROPOSAL_NOT_PENDING"

    @pytest.mark.asyncio
    async def test_proposal_price_must_be_positive(self, coordinator, make_freight, ready_driver, session_factory):
        freight = await make_freight()
        driver = await ready_driver(freight)

        async with session_factory() as session:
            outcome = await coordinator.submit_proposal(session, freight.id, driver, Decimal("0"))

        assert outcome.code == OutcomeCode.NOT_ELIGIBLE
        assert outcome.details["reason"] == "PRICE_NOT_POSITIVE"

    @pytest.mark.asyncio
    async def test_producer_cannot_propose(self, coordinator, make_freight, make_user, session_factory):
        freight = await make_freight()
        producer = await make_user(role=UserRole.PRODUCER)

        async with session_factory() as session:
            outcome = await coordinator.submit_proposal(session, freight.id, producer, Decimal("900"))

        assert outcome.code == OutcomeCode.FORBIDDEN


@pytest.mark.asyncio
async def test_failed_assignment_write_returns_the_slot(make_freight, ready_driver, session_factory, mocker):
    alerts = mocker.Mock(spec=AlertSink)
    coordinator = AcceptanceCoordinator(alerts=alerts)
    mocker.patch(
        "backend.app.domain.freight.acceptance.record_status_change",
        new=mocker.AsyncMock(side_effect=SQLAlchemyError("history table unavailable")),
    )
    freight = await make_freight()
    driver = await ready_driver(freight)

    async with session_factory() as session:
        outcome = await coordinator.accept(session, freight.id, driver)

    assert not outcome.success
    assert outcome.code == OutcomeCode.CONFLICT
    assert outcome.retryable
    alerts.record_failure.assert_called_once()
    assert alerts.record_failure.call_args.args[0] == "freight.accept"
    alerts.record_inconsistency.assert_not_called()

    stored, assignments = await load_state(session_factory, freight.id)
    assert stored.status == FreightStatus.OPEN
    assert stored.accepted_trucks == 0
    assert stored.driver_id is None
    assert assignments == []


@pytest.mark.asyncio
async def test_same_driver_racing_itself_holds_one_slot(accept, make_freight, ready_driver, session_factory, monkeypatch):
    """Both requests missed the other's assignment; the loser gives its slot back."""
    freight = await make_freight(required_trucks=3)
    driver = await ready_driver(freight)

    async def no_assignment_yet(db, freight_id, driver_id):
        return None

    monkeypatch.setattr(freight_store, "get_assignment", no_assignment_yet)

    outcomes = [await accept(freight.id, driver) for _ in range(2)]

    assert [o.code for o in outcomes] == [OutcomeCode.OK, OutcomeCode.ALREADY_ACCEPTED]
    assert all(o.success for o in outcomes)

    stored, assignments = await load_state(session_factory, freight.id)
    accepted = [a for a in assignments if a.status == AssignmentStatus.ACCEPTED]
    assert stored.accepted_trucks == len(accepted) == 1
    assert stored.status == FreightStatus.OPEN
    assert outcomes[1].details["assignment_id"] == accepted[0].id


@pytest.mark.asyncio
async def test_undo_returns_last_slot_to_open(make_freight, ready_driver, session_factory):
    freight = await make_freight(required_trucks=1)
    driver = await ready_driver(freight)

    async with session_factory() as session:
        assert await freight_store.claim_truck_slot(session, freight.id, driver.id)
        await session.commit()
        assert await freight_store.undo_truck_claim(session, freight.id, driver.id, FreightStatus.OPEN)
        await session.commit()

    stored, _ = await load_state(session_factory, freight.id)
    assert stored.status == FreightStatus.OPEN
    assert stored.accepted_trucks == 0
    assert stored.driver_id is None
