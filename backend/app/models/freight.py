"""
Freight database model.

A freight is a transport (or service) order published by a producer and
fulfilled by one or more trucks.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime, Enum, ForeignKey, CheckConstraint
)
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.freight_enums import FreightStatus, PricingType, ServiceCategory


class Freight(Base):
    """
    Freight model.

    `status` and `accepted_trucks` are only ever changed through the
    conditional writes in `services/freight_store.py`.
    """
    __tablename__ = "freights"
    __table_args__ = (
        CheckConstraint("required_trucks >= 1", name="ck_freights_required_trucks"),
        CheckConstraint(
            "accepted_trucks >= 0 AND accepted_trucks <= required_trucks",
            name="ck_freights_accepted_trucks",
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    producer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Counterparty (driver_id only for single-truck freights)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    company_id = Column(Integer, nullable=True, index=True)

    status = Column(Enum(FreightStatus), default=FreightStatus.OPEN, nullable=False, index=True)

    # Truck slots
    required_trucks = Column(Integer, default=1, nullable=False)
    accepted_trucks = Column(Integer, default=0, nullable=False)

    # Pricing
    pricing_type = Column(Enum(PricingType), default=PricingType.FIXED, nullable=False)
    price = Column(Numeric(12, 2), nullable=True)
    price_per_km = Column(Numeric(12, 2), nullable=True)
    price_per_ton = Column(Numeric(12, 2), nullable=True)
    distance_km = Column(Numeric(10, 2), nullable=True)
    weight_tons = Column(Numeric(10, 2), nullable=True)
    minimum_price = Column(Numeric(12, 2), nullable=True)  # Regulatory per-truck floor

    # Cargo
    service_category = Column(Enum(ServiceCategory), default=ServiceCategory.CARGA, nullable=False)
    cargo_type = Column(String(120), nullable=True)
    origin_city = Column(String(120), nullable=True)
    destination_city = Column(String(120), nullable=True)

    # Schedule
    pickup_date = Column(Date, nullable=True)
    delivery_date = Column(Date, nullable=True)

    cancellation_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_multi_truck(self) -> bool:
        return (self.required_trucks or 1) > 1

    @property
    def available_slots(self) -> int:
        return max((self.required_trucks or 1) - (self.accepted_trucks or 0), 0)

    def __repr__(self):
        return f"<Freight(id={self.id}, status='{self.status.value}', trucks={self.accepted_trucks}/{self.required_trucks})>"
