"""
Pydantic models for RouteHistory entries.

History rows are immutable: there is a create model and read models only.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from logistics_api.models.enums import HistoryEventType, RouteStatus


class ChangedField(BaseModel):
    field_name: str = Field(..., description="Name of the changed field")
    old_value: Optional[Any] = Field(None, description="Value before the change")
    new_value: Optional[Any] = Field(None, description="Value after the change")


class HistoryMetadata(BaseModel):
    request_id: Optional[str] = Field(None, description="Request that produced the entry")
    source: Optional[str] = Field(None, description="Origin of the change (api, system)")
    reason: Optional[str] = Field(None, description="Reason given for the change")


class RouteHistoryCreate(BaseModel):
    """Model for appending a history entry."""

    route_id: UUID = Field(..., description="Route ID")
    event_type: HistoryEventType = Field(..., description="Kind of event")
    description: str = Field(..., min_length=1, max_length=1000, description="What happened")
    previous_status: Optional[RouteStatus] = Field(None, description="Status before the event")
    new_status: Optional[RouteStatus] = Field(None, description="Status after the event")
    changed_fields: Optional[list[ChangedField]] = Field(None, description="Field level diff")
    user_id: Optional[str] = Field(None, description="Actor ID")
    user_name: Optional[str] = Field(None, description="Actor display name")
    user_type: Optional[str] = Field(None, description="Actor type (user, driver, system)")
    ip_address: Optional[str] = Field(None, description="Actor IP address")
    user_agent: Optional[str] = Field(None, description="Actor user agent")
    metadata: Optional[HistoryMetadata] = Field(None, description="Request metadata")


class RouteHistoryInDB(RouteHistoryCreate):
    """Model for RouteHistory as stored in database."""

    id: UUID = Field(..., description="History entry ID")
    created_at: datetime = Field(..., description="When the entry was written")

    class Config:
        from_attributes = True


class RouteHistoryResponse(RouteHistoryInDB):
    """Model for RouteHistory API response."""
