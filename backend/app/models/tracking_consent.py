"""
Tracking consent database model.

A driver must consent to location tracking for a freight before accepting it.
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base


class TrackingConsent(Base):
    """Per-freight location tracking consent."""
    __tablename__ = "freight_tracking_consents"
    __table_args__ = (
        UniqueConstraint('freight_id', 'driver_id', name='uq_tracking_consent_freight_driver'),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    freight_id = Column(Integer, ForeignKey('freights.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    granted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
