"""
Pydantic models for the Driver records read by the route lifecycle.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DriverInDB(BaseModel):
    """Driver as stored in database (only the columns routes depend on)."""

    id: UUID = Field(..., description="Driver ID")
    full_name: str = Field(..., description="Driver full name")
    is_active: bool = Field(..., description="Whether the driver can be assigned")
    status: Optional[str] = Field(None, description="Operational status of the driver")

    class Config:
        from_attributes = True
