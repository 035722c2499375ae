"""
Freight schemas.

Request and response bodies for the freight lifecycle endpoints.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.app.models.enums import UserRole
from backend.app.models.freight_enums import FreightStatus, PricingType, ServiceCategory


class Location(BaseModel):
    """Driver position reported with a status change."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class FreightCreate(BaseModel):
    """Schema for publishing a freight."""
    required_trucks: int = Field(1, ge=1, le=100)
    pricing_type: PricingType = PricingType.FIXED
    price: Optional[Decimal] = Field(None, gt=0)
    price_per_km: Optional[Decimal] = Field(None, gt=0)
    price_per_ton: Optional[Decimal] = Field(None, gt=0)
    distance_km: Optional[Decimal] = Field(None, gt=0)
    weight_tons: Optional[Decimal] = Field(None, gt=0)
    minimum_price: Optional[Decimal] = Field(None, gt=0, description="Regulatory per-truck floor")
    service_category: ServiceCategory = ServiceCategory.CARGA
    cargo_type: Optional[str] = Field(None, max_length=120)
    origin_city: Optional[str] = Field(None, max_length=120)
    destination_city: Optional[str] = Field(None, max_length=120)
    pickup_date: Optional[date] = None
    delivery_date: Optional[date] = None

    @model_validator(mode="after")
    def check_pricing_inputs(self):
        required = {
            PricingType.FIXED: ("price",),
            PricingType.PER_KM: ("price_per_km", "distance_km"),
            PricingType.PER_TON: ("price_per_ton", "weight_tons"),
        }[self.pricing_type]
        missing = [name for name in required if getattr(self, name) is None]
        if missing:
            raise ValueError(f"{self.pricing_type.value} pricing requires: {', '.join(missing)}")
        if self.pickup_date and self.delivery_date and self.delivery_date < self.pickup_date:
            raise ValueError("delivery_date cannot be before pickup_date")
        return self


class FreightResponse(BaseModel):
    """Schema for freight response."""
    id: int
    status: FreightStatus
    producer_id: int
    driver_id: Optional[int]
    company_id: Optional[int]
    required_trucks: int
    accepted_trucks: int
    pricing_type: PricingType
    service_category: ServiceCategory
    cargo_type: Optional[str]
    origin_city: Optional[str]
    destination_city: Optional[str]
    distance_km: Optional[Decimal]
    weight_tons: Optional[Decimal]
    pickup_date: Optional[date]
    delivery_date: Optional[date]
    cancellation_reason: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class PriceViewResponse(BaseModel):
    """Role-scoped price of a freight."""
    viewer_role: UserRole
    pricing_type: PricingType
    display_price: Decimal
    payment_price: Optional[Decimal]
    unit_price: Decimal
    unit_rate: Optional[Decimal]
    unit_suffix: str
    is_aggregate: bool
    required_trucks: int
    accepted_trucks: int

    model_config = ConfigDict(from_attributes=True)


class FreightDetailResponse(BaseModel):
    """Freight as seen by one viewer."""
    freight: FreightResponse
    status_label: str
    bucket: str
    price: Optional[PriceViewResponse]
    expires_at: Optional[datetime] = None


class FreightListResponse(BaseModel):
    """Schema for freight listings."""
    freights: List[FreightDetailResponse]
    total: int


class AcceptRequest(BaseModel):
    """Accept one truck slot at the listed price."""
    freight_id: int
    driver_id: Optional[int] = None
    company_id: Optional[int] = None


class AcceptManyRequest(BaseModel):
    """Company dispatch of several drivers, one truck slot each."""
    freight_id: int
    driver_ids: List[int] = Field(..., min_length=1, max_length=50)


class StatusAdvanceRequest(BaseModel):
    """Advance a freight's status."""
    freight_id: int
    new_status: str = Field(..., min_length=1, max_length=64)
    notes: Optional[str] = Field(None, max_length=500)
    location: Optional[Location] = None


class CancelRequest(BaseModel):
    """Cancel a freight (or request its cancellation)."""
    freight_id: int
    reason: Optional[str] = Field(None, max_length=500)


class ReleaseDriverRequest(BaseModel):
    """Producer releases a driver from a freight."""
    driver_id: int
    reason: Optional[str] = Field(None, max_length=500)


class ProposalCreate(BaseModel):
    """Driver counter-offer."""
    proposed_price: Decimal
    message: Optional[str] = Field(None, max_length=500)


class AdminOverrideRequest(BaseModel):
    """Force a freight into a status."""
    new_status: str = Field(..., min_length=1, max_length=64)
    notes: Optional[str] = Field(None, max_length=500)


class FreightActionResponse(BaseModel):
    """Envelope returned by every mutating freight operation."""
    success: bool
    code: str
    message: str
    freight: Optional[FreightResponse] = None
    details: Dict[str, Any] = {}


class StatusHistoryResponse(BaseModel):
    """Schema for status history entries."""
    id: int
    freight_id: int
    status: FreightStatus
    previous_status: Optional[FreightStatus]
    changed_by: Optional[int]
    notes: Optional[str]
    location_lat: Optional[float]
    location_lng: Optional[float]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConsistencyReport(BaseModel):
    """Result of a freight consistency check."""
    freight_id: int
    found: bool
    consistent: bool
    issues: List[str]
    status: Optional[str] = None
    accepted_trucks: Optional[int] = None
    required_trucks: Optional[int] = None
    accepted_assignments: Optional[int] = None


class TrackingConsentResponse(BaseModel):
    """Tracking consent confirmation."""
    freight_id: int
    driver_id: int
    granted_at: datetime

    model_config = ConfigDict(from_attributes=True)
