"""
Pydantic models for the Vehicle records read by the route lifecycle.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from logistics_api.models.enums import UNAVAILABLE_VEHICLE_STATUSES, VehicleStatus


class VehicleInDB(BaseModel):
    """Vehicle as stored in database (only the columns routes depend on)."""

    id: UUID = Field(..., description="Vehicle ID")
    license_plate: str = Field(..., description="License plate")
    status: VehicleStatus = Field(..., description="Vehicle status")
    load_capacity: Optional[float] = Field(None, description="Load capacity in kg")
    cargo_volume: Optional[float] = Field(None, description="Cargo volume in m³")

    class Config:
        from_attributes = True

    def is_available(self) -> bool:
        return self.status not in UNAVAILABLE_VEHICLE_STATUSES
