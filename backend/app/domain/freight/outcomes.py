"""
Typed outcomes of freight operations.

Expected business results (lost races, ineligible callers, illegal moves)
are returned as values, never raised. Only infrastructure failures
propagate as exceptions.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class OutcomeCode(str, enum.Enum):
    OK = "OK"
    ALREADY_ACCEPTED = "ALREADY_ACCEPTED"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    ALREADY_IN_STATUS = "ALREADY_IN_STATUS"
    APPROVAL_REQUESTED = "APPROVAL_REQUESTED"
    CONFLICT = "CONFLICT"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    FORBIDDEN = "FORBIDDEN"
    NOT_OWNER = "NOT_OWNER"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    FINAL_STATE_LOCKED = "FINAL_STATE_LOCKED"
    CONTACT_SUPPORT = "CONTACT_SUPPORT"
    NOT_FOUND = "NOT_FOUND"


@dataclass
class FreightOutcome:
    """Result of a mutating freight operation."""
    success: bool
    code: OutcomeCode
    message: str = ""
    freight: Any = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return self.code == OutcomeCode.CONFLICT

    @classmethod
    def ok(cls, freight, message: str = "", code: OutcomeCode = OutcomeCode.OK, **details) -> "FreightOutcome":
        return cls(success=True, code=code, message=message, freight=freight, details=details)

    @classmethod
    def fail(cls, code: OutcomeCode, message: str, freight=None, **details) -> "FreightOutcome":
        return cls(success=False, code=code, message=message, freight=freight, details=details)

    @classmethod
    def conflict(cls, freight_id: int, freight=None) -> "FreightOutcome":
        return cls.fail(
            OutcomeCode.CONFLICT,
            "Freight changed while the request was processed; re-fetch and retry once",
            freight=freight,
            freight_id=freight_id,
            retryable=True,
        )

    @classmethod
    def not_eligible(cls, reason: str, message: str, freight=None) -> "FreightOutcome":
        return cls.fail(OutcomeCode.NOT_ELIGIBLE, message, freight=freight, reason=reason)

    @classmethod
    def not_found(cls, resource: str, resource_id: Optional[int]) -> "FreightOutcome":
        return cls.fail(
            OutcomeCode.NOT_FOUND,
            f"{resource} with ID {resource_id} not found",
            resource=resource,
            id=resource_id,
        )
