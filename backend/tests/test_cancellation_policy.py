"""
Cancellation policy decision table tests.
"""

import pytest

from backend.app.domain.freight.cancellation_policy import CancellationDecision, CancellationPolicy
from backend.app.models.enums import UserRole
from backend.app.models.freight_enums import FreightStatus


IN_PROGRESS = [
    FreightStatus.LOADING,
    FreightStatus.LOADED,
    FreightStatus.IN_TRANSIT,
    FreightStatus.DELIVERED_PENDING_CONFIRMATION,
]
TERMINAL = [FreightStatus.DELIVERED, FreightStatus.COMPLETED, FreightStatus.CANCELLED, FreightStatus.REJECTED]


def test_wire_values_from_the_field():
    assert CancellationPolicy.decide("MOTORISTA", "IN_TRANSIT") == CancellationDecision.REQUEST_APPROVAL
    assert CancellationPolicy.decide("PRODUTOR", "IN_TRANSIT") == CancellationDecision.CONTACT_SUPPORT


@pytest.mark.parametrize("status", list(FreightStatus))
def test_company_never_cancels(status):
    assert CancellationPolicy.decide("TRANSPORTADORA", status) is None


@pytest.mark.parametrize("role", [UserRole.PRODUCER, UserRole.ADMIN])
def test_producer_and_admin(role):
    for status in (FreightStatus.OPEN, FreightStatus.IN_NEGOTIATION, FreightStatus.ACCEPTED):
        assert CancellationPolicy.decide(role, status) == CancellationDecision.DIRECT_CANCEL
    for status in IN_PROGRESS:
        assert CancellationPolicy.decide(role, status) == CancellationDecision.CONTACT_SUPPORT
    for status in TERMINAL:
        assert CancellationPolicy.decide(role, status) is None


@pytest.mark.parametrize("role", [UserRole.DRIVER, UserRole.AFFILIATED_DRIVER])
def test_drivers(role):
    assert CancellationPolicy.decide(role, FreightStatus.ACCEPTED) == CancellationDecision.DIRECT_CANCEL
    for status in IN_PROGRESS:
        assert CancellationPolicy.decide(role, status) == CancellationDecision.REQUEST_APPROVAL
    for status in [FreightStatus.OPEN, FreightStatus.IN_NEGOTIATION, *TERMINAL]:
        assert CancellationPolicy.decide(role, status) is None


def test_legacy_status_values_are_normalized():
    assert CancellationPolicy.decide(UserRole.PRODUCER, "Aceito") == CancellationDecision.DIRECT_CANCEL
    assert CancellationPolicy.decide(UserRole.DRIVER, "ON_THE_WAY") == CancellationDecision.REQUEST_APPROVAL


def test_unknown_role_is_rejected():
    with pytest.raises(ValueError):
        CancellationPolicy.decide("VISITANTE", FreightStatus.OPEN)
