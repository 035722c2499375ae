"""
Freight status registry.

Canonical statuses, the transition table, role-allowed advance targets and
the label <-> code table. Pure: no database, no I/O.
"""

import difflib
import logging
import re
import unicodedata
from typing import Dict, FrozenSet, Optional, Tuple

from backend.app.models.enums import UserRole
from backend.app.models.freight_enums import FreightStatus


logger = logging.getLogger(__name__)


class UnknownStatusError(ValueError):
    """Raised by strict normalization when input matches no known status."""

    def __init__(self, raw: object):
        self.raw = raw
        super().__init__(f"Unknown freight status: {raw!r}")


FINAL_STATUSES: FrozenSet[FreightStatus] = frozenset({
    FreightStatus.DELIVERED,
    FreightStatus.COMPLETED,
    FreightStatus.CANCELLED,
    FreightStatus.REJECTED,
})

OPEN_STATUSES: FrozenSet[FreightStatus] = frozenset({
    FreightStatus.OPEN,
    FreightStatus.IN_NEGOTIATION,
})

# Accepted but not yet on the road
PRE_LOADING_STATUSES: FrozenSet[FreightStatus] = OPEN_STATUSES | {FreightStatus.ACCEPTED}

IN_PROGRESS_STATUSES: FrozenSet[FreightStatus] = frozenset({
    FreightStatus.LOADING,
    FreightStatus.LOADED,
    FreightStatus.IN_TRANSIT,
    FreightStatus.DELIVERED_PENDING_CONFIRMATION,
})

_FORWARD_EDGES: Dict[FreightStatus, Tuple[FreightStatus, ...]] = {
    FreightStatus.OPEN: (FreightStatus.IN_NEGOTIATION, FreightStatus.ACCEPTED),
    FreightStatus.IN_NEGOTIATION: (FreightStatus.ACCEPTED,),
    FreightStatus.ACCEPTED: (FreightStatus.LOADING,),
    FreightStatus.LOADING: (FreightStatus.LOADED,),
    FreightStatus.LOADED: (FreightStatus.IN_TRANSIT,),
    FreightStatus.IN_TRANSIT: (FreightStatus.DELIVERED_PENDING_CONFIRMATION,),
    FreightStatus.DELIVERED_PENDING_CONFIRMATION: (FreightStatus.DELIVERED,),
}

_ABORT_TARGETS: Tuple[FreightStatus, ...] = (FreightStatus.CANCELLED, FreightStatus.REJECTED)


def _build_transitions() -> Dict[FreightStatus, Tuple[FreightStatus, ...]]:
    table = {}
    for status in FreightStatus:
        if status in FINAL_STATUSES:
            table[status] = ()
        else:
            table[status] = _FORWARD_EDGES.get(status, ()) + _ABORT_TARGETS
    return table


TRANSITIONS: Dict[FreightStatus, Tuple[FreightStatus, ...]] = _build_transitions()


STATUS_LABELS: Dict[FreightStatus, str] = {
    FreightStatus.OPEN: "Aberto",
    FreightStatus.IN_NEGOTIATION: "Em Negociação",
    FreightStatus.ACCEPTED: "Aceito",
    FreightStatus.LOADING: "A Caminho da Coleta",
    FreightStatus.LOADED: "Carregado",
    FreightStatus.IN_TRANSIT: "Em Trânsito",
    FreightStatus.DELIVERED_PENDING_CONFIRMATION: "Entrega Reportada",
    FreightStatus.DELIVERED: "Entregue",
    FreightStatus.COMPLETED: "Concluído",
    FreightStatus.CANCELLED: "Cancelado",
    FreightStatus.REJECTED: "Rejeitado",
}

_LABEL_LOOKUP: Dict[str, FreightStatus] = {
    label.casefold(): status for status, label in STATUS_LABELS.items()
}

# Legacy codes still found in older rows and client builds
LEGACY_ALIASES: Dict[str, FreightStatus] = {
    "NEW": FreightStatus.OPEN,
    "APPROVED": FreightStatus.OPEN,
    "PENDING": FreightStatus.OPEN,
    "AVAILABLE": FreightStatus.OPEN,
    "NEGOTIATING": FreightStatus.IN_NEGOTIATION,
    "IN_PROGRESS": FreightStatus.IN_TRANSIT,
    "ON_THE_WAY": FreightStatus.IN_TRANSIT,
    "DELIVERY_REPORTED": FreightStatus.DELIVERED_PENDING_CONFIRMATION,
    "PENDING_CONFIRMATION": FreightStatus.DELIVERED_PENDING_CONFIRMATION,
    "FINISHED": FreightStatus.COMPLETED,
    "DONE": FreightStatus.COMPLETED,
    "CANCELED": FreightStatus.CANCELLED,
}

# Statuses each role may request through the status-advance operation
ROLE_ADVANCE_TARGETS: Dict[UserRole, FrozenSet[FreightStatus]] = {
    UserRole.PRODUCER: frozenset({FreightStatus.DELIVERED}),
    UserRole.DRIVER: IN_PROGRESS_STATUSES,
    UserRole.AFFILIATED_DRIVER: IN_PROGRESS_STATUSES,
    UserRole.COMPANY: IN_PROGRESS_STATUSES,
    # Admins may also reject a freight outright (moderation)
    UserRole.ADMIN: frozenset(
        target for targets in _FORWARD_EDGES.values() for target in targets
    ) | {FreightStatus.REJECTED},
}


def is_valid_transition(from_status: FreightStatus, to_status: FreightStatus) -> bool:
    """
    Check whether moving from one status to another follows the lifecycle.

    Terminal statuses have no outgoing edges; those moves belong to the
    administrative override path.
    """
    return to_status in TRANSITIONS.get(from_status, ())


def is_final(status: FreightStatus) -> bool:
    return status in FINAL_STATUSES


def allowed_next(status: FreightStatus) -> Tuple[FreightStatus, ...]:
    return TRANSITIONS.get(status, ())


def can_role_advance_to(role: UserRole, target: FreightStatus) -> bool:
    return target in ROLE_ADVANCE_TARGETS.get(role, frozenset())


def label_for(status: FreightStatus) -> str:
    return STATUS_LABELS[status]


def status_for_label(label: str) -> Optional[FreightStatus]:
    """Exact (case-insensitive) reverse lookup of a display label."""
    if not label:
        return None
    return _LABEL_LOOKUP.get(label.strip().casefold())


def _fold_code(raw: str) -> str:
    stripped = unicodedata.normalize("NFKD", raw).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[\s\-]+", "_", stripped.strip()).upper()


def normalize(raw, strict: bool = False) -> FreightStatus:
    """
    Map a raw status value to a canonical FreightStatus.

    Resolution order: exact code, folded code, legacy alias, display label,
    closest code. In permissive mode anything still unmatched falls back to
    OPEN so the row stays visible in listings; every non-exact resolution is
    logged.

    Args:
        raw: Status as received (enum, code, legacy code or display label)
        strict: Raise instead of guessing when nothing matches

    Returns:
        Canonical FreightStatus

    Raises:
        UnknownStatusError: In strict mode, when the input is not recognized
    """
    if isinstance(raw, FreightStatus):
        return raw

    text = str(raw) if raw is not None else ""
    if text in FreightStatus.__members__:
        return FreightStatus(text)

    folded = _fold_code(text)
    if folded in FreightStatus.__members__:
        return FreightStatus(folded)

    resolved = LEGACY_ALIASES.get(folded) or status_for_label(text)
    if resolved is not None:
        logger.info("Normalized legacy status", extra={"raw_status": text, "status": resolved.value})
        return resolved

    if strict:
        raise UnknownStatusError(raw)

    candidates = list(FreightStatus.__members__) + list(LEGACY_ALIASES)
    matches = difflib.get_close_matches(folded, candidates, n=1, cutoff=0.6)
    if matches:
        match = matches[0]
        resolved = FreightStatus(match) if match in FreightStatus.__members__ else LEGACY_ALIASES[match]
    else:
        resolved = FreightStatus.OPEN

    logger.warning(
        "Unrecognized freight status normalized by best guess",
        extra={"raw_status": text, "status": resolved.value},
    )
    return resolved
