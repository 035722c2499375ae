"""
Freight proposal database model.

A driver's counter-offer on a freight, one row per driver per freight.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.freight_enums import ProposalStatus


class FreightProposal(Base):
    """Proposal model."""
    __tablename__ = "freight_proposals"
    __table_args__ = (
        UniqueConstraint('freight_id', 'driver_id', name='uq_proposal_freight_driver'),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    freight_id = Column(Integer, ForeignKey('freights.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    company_id = Column(Integer, nullable=True)

    status = Column(Enum(ProposalStatus), default=ProposalStatus.PENDING, nullable=False, index=True)
    proposed_price = Column(Numeric(12, 2), nullable=False)
    message = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<FreightProposal(freight_id={self.freight_id}, driver_id={self.driver_id}, status='{self.status.value}')>"
