"""
Pydantic models for RouteStop entity.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from logistics_api.models.enums import DeliveryType, StopStatus

# Free text; the distance estimator parses it and skips what it cannot read.
PointString = Annotated[
    Optional[str],
    StringConstraints(strip_whitespace=True, max_length=64),
    AfterValidator(lambda v: v or None),
]


class DeliveryData(BaseModel):
    """What is delivered or collected at a stop."""

    type: DeliveryType = Field(default=DeliveryType.DELIVERY, description="Delivery type")
    order_numbers: list[str] = Field(default_factory=list, description="Order numbers served")
    items_count: Optional[int] = Field(None, ge=0, description="Number of items")
    weight_kg: Optional[float] = Field(None, ge=0, description="Weight in kg")
    volume_m3: Optional[float] = Field(None, ge=0, description="Volume in m³")
    requires_signature: bool = Field(default=False, description="Recipient signature required")
    requires_photo: bool = Field(default=False, description="Proof-of-delivery photo required")
    special_instructions: Optional[str] = Field(None, max_length=1000, description="Instructions for the driver")


class RouteStopCreate(BaseModel):
    """Model for a stop supplied while creating a route."""

    customer_address_id: UUID = Field(..., description="Customer address ID")
    sequence_order: int = Field(..., ge=1, description="Position of the stop on the route")
    address: str = Field(..., min_length=5, max_length=500, description="Stop address")
    coordinates: PointString = Field(None, description="Stop coordinates as POINT(lat lng)")
    planned_arrival_time: Optional[datetime] = Field(None, description="Planned arrival")
    planned_departure_time: Optional[datetime] = Field(None, description="Planned departure")
    estimated_stop_duration_minutes: int = Field(
        default=15, ge=1, le=480, description="Expected time spent at the stop"
    )
    delivery_data: Optional[DeliveryData] = Field(None, description="Delivery details")
    notes: Optional[str] = Field(None, max_length=1000, description="Notes")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Address cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_planned_window(self) -> "RouteStopCreate":
        """Departure must come after arrival when both are given."""
        if (
            self.planned_arrival_time is not None
            and self.planned_departure_time is not None
            and self.planned_departure_time <= self.planned_arrival_time
        ):
            raise PydanticCustomError(
                "invalid_time_range",
                "Planned departure must be after planned arrival",
            )
        return self


class RouteStopInDB(BaseModel):
    """Model for RouteStop as stored in database."""

    id: UUID = Field(..., description="Stop ID")
    route_id: UUID = Field(..., description="Route ID")
    customer_address_id: UUID = Field(..., description="Customer address ID")
    sequence_order: int = Field(..., description="Position of the stop on the route")
    status: StopStatus = Field(..., description="Stop status")
    address: str = Field(..., description="Stop address")
    coordinates: Optional[str] = Field(None, description="Stop coordinates")
    planned_arrival_time: Optional[datetime] = Field(None, description="Planned arrival")
    planned_departure_time: Optional[datetime] = Field(None, description="Planned departure")
    estimated_stop_duration_minutes: int = Field(..., description="Expected time at the stop")
    actual_arrival_time: Optional[datetime] = Field(None, description="Actual arrival")
    actual_departure_time: Optional[datetime] = Field(None, description="Actual departure")
    distance_from_previous_km: Optional[float] = Field(None, description="Leg distance from the previous point")
    delivery_data: Optional[DeliveryData] = Field(None, description="Delivery details")
    notes: Optional[str] = Field(None, description="Notes")
    failure_reason: Optional[str] = Field(None, description="Why the stop failed")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    class Config:
        from_attributes = True


class RouteStopResponse(RouteStopInDB):
    """Model for RouteStop API response."""
