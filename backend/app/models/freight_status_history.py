"""
Freight status history database model.

Append-only audit trail: one row per transition, never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.freight_enums import FreightStatus


class FreightStatusHistory(Base):
    """Status history entry."""
    __tablename__ = "freight_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    freight_id = Column(Integer, ForeignKey('freights.id', ondelete='CASCADE'), nullable=False, index=True)

    status = Column(Enum(FreightStatus), nullable=False)
    previous_status = Column(Enum(FreightStatus), nullable=True)
    changed_by = Column(Integer, ForeignKey('users.id'), nullable=True)  # NULL for system jobs
    notes = Column(String(500), nullable=True)

    # Where the driver was when reporting the change
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<FreightStatusHistory(freight_id={self.freight_id}, status='{self.status.value}')>"
