"""
Cancellation policy.

Decides, from who is asking and where the freight is in its lifecycle,
whether a cancel request executes, needs the producer's approval, must go
through support, or is not available at all.
"""

import enum
from typing import Optional, assert_never

from backend.app.domain.freight.status_registry import (
    FINAL_STATUSES, IN_PROGRESS_STATUSES, PRE_LOADING_STATUSES, normalize
)
from backend.app.models.enums import UserRole
from backend.app.models.freight_enums import FreightStatus


class CancellationDecision(str, enum.Enum):
    DIRECT_CANCEL = "DIRECT_CANCEL"
    REQUEST_APPROVAL = "REQUEST_APPROVAL"  # Producer must confirm
    CONTACT_SUPPORT = "CONTACT_SUPPORT"


class CancellationPolicy:

    @staticmethod
    def decide(role, status) -> Optional[CancellationDecision]:
        """
        Decide how a cancel request from `role` is handled in `status`.

        Args:
            role: UserRole or its wire value (e.g. "MOTORISTA")
            status: FreightStatus or a raw status value

        Returns:
            CancellationDecision, or None when the role cannot cancel
        """
        role = UserRole(role)
        status = normalize(status)

        match role:
            case UserRole.PRODUCER | UserRole.ADMIN:
                if status in FINAL_STATUSES:
                    return None
                if status in PRE_LOADING_STATUSES:
                    return CancellationDecision.DIRECT_CANCEL
                if status in IN_PROGRESS_STATUSES:
                    return CancellationDecision.CONTACT_SUPPORT
                return None
            case UserRole.DRIVER | UserRole.AFFILIATED_DRIVER:
                if status == FreightStatus.ACCEPTED:
                    return CancellationDecision.DIRECT_CANCEL
                if status in IN_PROGRESS_STATUSES:
                    return CancellationDecision.REQUEST_APPROVAL
                return None
            case UserRole.COMPANY:
                return None
            case _:
                assert_never(role)
