"""
Freight-related enumerations.

Status values are a compatibility contract: consumers outside the engine
match on these exact tokens.
"""

import enum


class FreightStatus(str, enum.Enum):
    """Freight status enumeration, in lifecycle order."""
    OPEN = "OPEN"
    IN_NEGOTIATION = "IN_NEGOTIATION"
    ACCEPTED = "ACCEPTED"
    LOADING = "LOADING"  # Driver heading to pickup
    LOADED = "LOADED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED_PENDING_CONFIRMATION = "DELIVERED_PENDING_CONFIRMATION"  # Driver reported delivery
    DELIVERED = "DELIVERED"  # Producer confirmed delivery
    COMPLETED = "COMPLETED"  # Settled
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


class PricingType(str, enum.Enum):
    """How the listed price of a freight is expressed."""
    FIXED = "FIXED"  # Listed price is per truck
    PER_KM = "PER_KM"
    PER_TON = "PER_TON"


class ServiceCategory(str, enum.Enum):
    """Cargo/service category, drives expiration TTL."""
    CARGA = "CARGA"
    GUINCHO = "GUINCHO"
    FRETE_MOTO = "FRETE_MOTO"
    FRETE_URBANO = "FRETE_URBANO"
    MUDANCA = "MUDANCA"
    MUDANCA_RESIDENCIAL = "MUDANCA_RESIDENCIAL"
    MUDANCA_COMERCIAL = "MUDANCA_COMERCIAL"
    SERVICE = "SERVICE"


class AssignmentStatus(str, enum.Enum):
    """Assignment status enumeration."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CANCELLED = "CANCELLED"  # Withdrawn, released or freight cancelled
    COMPLETED = "COMPLETED"


class ProposalStatus(str, enum.Enum):
    """Proposal status enumeration."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class CancellationRequestStatus(str, enum.Enum):
    """Driver cancellation request awaiting producer decision."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
