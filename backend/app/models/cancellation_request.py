"""
Cancellation request database model.

Raised when a driver asks to abandon a freight that is already loading or
in transit. The freight itself is untouched until the producer decides.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.freight_enums import CancellationRequestStatus


class CancellationRequest(Base):
    """Driver cancellation request."""
    __tablename__ = "freight_cancellation_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    freight_id = Column(Integer, ForeignKey('freights.id', ondelete='CASCADE'), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    reason = Column(String(500), nullable=True)

    status = Column(
        Enum(CancellationRequestStatus),
        default=CancellationRequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    decided_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
