"""
Freight assignment database model.

Binds one truck/driver to one freight and carries the agreed price.
"""

from sqlalchemy import (
    Column, Integer, Numeric, DateTime, Enum, ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.freight_enums import AssignmentStatus


class FreightAssignment(Base):
    """
    Assignment model.

    `agreed_price` is what the driver is owed. It is snapshotted at
    acceptance and never recomputed from the freight listing.
    """
    __tablename__ = "freight_assignments"
    __table_args__ = (
        UniqueConstraint('freight_id', 'driver_id', name='uq_assignment_freight_driver'),
        CheckConstraint(
            "status != 'ACCEPTED' OR (agreed_price IS NOT NULL AND agreed_price > 0)",
            name="ck_assignment_agreed_price",
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    freight_id = Column(Integer, ForeignKey('freights.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    company_id = Column(Integer, nullable=True, index=True)

    status = Column(Enum(AssignmentStatus), default=AssignmentStatus.PENDING, nullable=False, index=True)
    agreed_price = Column(Numeric(12, 2), nullable=True)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<FreightAssignment(freight_id={self.freight_id}, driver_id={self.driver_id}, status='{self.status.value}')>"
