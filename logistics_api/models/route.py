"""
Pydantic models for Route entity.

``RouteInDB`` also carries the status predicates and derived metrics used by
the service (editability, progress, capacity utilization, delay).
"""

from datetime import date, datetime, time, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from logistics_api.models.enums import FINAL_STATUSES, RouteStatus, RouteType, StopStatus
from logistics_api.models.route_stop import PointString, RouteStopCreate, RouteStopResponse
from logistics_api.utils.coordinates import is_valid_route_code


def _normalize_route_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().upper()
    if not is_valid_route_code(v):
        raise PydanticCustomError(
            "invalid_route_code",
            "Route code must follow the pattern RT-YYYYMMDD-NNN",
        )
    return v


def planned_end_instant(planned_date: date, planned_end_time: Optional[time]) -> datetime:
    """Planned end as a UTC instant; end of the planned day without an end time."""
    return datetime.combine(planned_date, planned_end_time or time.max, tzinfo=timezone.utc)


def _check_unique_sequence(stops: Optional[list[RouteStopCreate]]) -> None:
    if not stops:
        return
    orders = [stop.sequence_order for stop in stops]
    if len(orders) != len(set(orders)):
        raise PydanticCustomError(
            "duplicate_sequence_order",
            "Stop sequence_order values must be unique within a route",
        )


class RouteCreate(BaseModel):
    """Model for creating a new route. Status always starts as PLANNED."""

    route_code: Optional[str] = Field(
        None, max_length=20, description="Unique route code, generated when omitted"
    )
    name: str = Field(..., min_length=3, max_length=255, description="Route name")
    description: Optional[str] = Field(None, max_length=2000, description="Route description")
    driver_id: UUID = Field(..., description="Assigned driver ID")
    vehicle_id: UUID = Field(..., description="Assigned vehicle ID")
    type: RouteType = Field(default=RouteType.URBAN, description="Route type")
    origin_address: str = Field(..., min_length=10, max_length=500, description="Origin address")
    destination_address: str = Field(..., min_length=10, max_length=500, description="Destination address")
    origin_coordinates: PointString = Field(None, description="Origin as POINT(lat lng)")
    destination_coordinates: PointString = Field(None, description="Destination as POINT(lat lng)")
    planned_date: date = Field(..., description="Planned date of the route")
    planned_start_time: Optional[time] = Field(None, description="Planned start time of day")
    planned_end_time: Optional[time] = Field(None, description="Planned end time of day")
    estimated_distance_km: Optional[float] = Field(None, ge=0, description="Overrides the computed distance")
    estimated_duration_minutes: Optional[int] = Field(None, ge=0, description="Overrides the computed duration")
    total_load_kg: Optional[float] = Field(None, ge=0, description="Total load in kg")
    total_volume_m3: Optional[float] = Field(None, ge=0, description="Total volume in m³")
    difficulty_level: int = Field(default=1, ge=1, le=5, description="Difficulty from 1 to 5")
    notes: Optional[str] = Field(None, max_length=2000, description="Notes")
    stops: list[RouteStopCreate] = Field(default_factory=list, description="Initial stops")

    @field_validator("route_code")
    @classmethod
    def validate_route_code(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_route_code(v)

    @field_validator("name", "origin_address", "destination_address")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        """Validate and normalize string fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_stops(self) -> "RouteCreate":
        _check_unique_sequence(self.stops)
        return self


class RouteUpdate(BaseModel):
    """
    Model for updating a PLANNED route.

    Status is absent: it only changes through the lifecycle
    endpoints. When ``stops`` is given it replaces the route's stops.
    """

    route_code: Optional[str] = Field(None, max_length=20, description="Route code")
    name: Optional[str] = Field(None, min_length=3, max_length=255, description="Route name")
    description: Optional[str] = Field(None, max_length=2000, description="Route description")
    driver_id: Optional[UUID] = Field(None, description="Assigned driver ID")
    vehicle_id: Optional[UUID] = Field(None, description="Assigned vehicle ID")
    type: Optional[RouteType] = Field(None, description="Route type")
    origin_address: Optional[str] = Field(None, min_length=10, max_length=500, description="Origin address")
    destination_address: Optional[str] = Field(None, min_length=10, max_length=500, description="Destination address")
    origin_coordinates: PointString = Field(None, description="Origin as POINT(lat lng)")
    destination_coordinates: PointString = Field(None, description="Destination as POINT(lat lng)")
    planned_date: Optional[date] = Field(None, description="Planned date of the route")
    planned_start_time: Optional[time] = Field(None, description="Planned start time of day")
    planned_end_time: Optional[time] = Field(None, description="Planned end time of day")
    estimated_distance_km: Optional[float] = Field(None, ge=0, description="Overrides the computed distance")
    estimated_duration_minutes: Optional[int] = Field(None, ge=0, description="Overrides the computed duration")
    total_load_kg: Optional[float] = Field(None, ge=0, description="Total load in kg")
    total_volume_m3: Optional[float] = Field(None, ge=0, description="Total volume in m³")
    difficulty_level: Optional[int] = Field(None, ge=1, le=5, description="Difficulty from 1 to 5")
    notes: Optional[str] = Field(None, max_length=2000, description="Notes")
    stops: Optional[list[RouteStopCreate]] = Field(None, description="Replacement stops")

    @field_validator("route_code")
    @classmethod
    def validate_route_code(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_route_code(v)

    @field_validator("name", "origin_address", "destination_address")
    @classmethod
    def validate_non_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip() if v else None

    @model_validator(mode="after")
    def validate_stops(self) -> "RouteUpdate":
        _check_unique_sequence(self.stops)
        return self


class RouteComplete(BaseModel):
    """Optional body for completing a route."""

    actual_distance_km: Optional[float] = Field(None, ge=0, description="Distance actually driven")
    notes: Optional[str] = Field(None, max_length=2000, description="Completion notes")


class RouteCancel(BaseModel):
    """Body for cancelling a route. Length rules are enforced by the service."""

    reason: str = Field(..., description="Why the route is cancelled")


class RouteBase(BaseModel):
    """Persisted route columns shared by the DB and response models."""

    id: UUID = Field(..., description="Route ID")
    route_code: str = Field(..., description="Route code")
    name: str = Field(..., description="Route name")
    description: Optional[str] = Field(None, description="Route description")
    driver_id: UUID = Field(..., description="Assigned driver ID")
    vehicle_id: UUID = Field(..., description="Assigned vehicle ID")
    status: RouteStatus = Field(..., description="Route status")
    type: RouteType = Field(..., description="Route type")
    origin_address: str = Field(..., description="Origin address")
    destination_address: str = Field(..., description="Destination address")
    origin_coordinates: Optional[str] = Field(None, description="Origin coordinates")
    destination_coordinates: Optional[str] = Field(None, description="Destination coordinates")
    planned_date: date = Field(..., description="Planned date")
    planned_start_time: Optional[time] = Field(None, description="Planned start time of day")
    planned_end_time: Optional[time] = Field(None, description="Planned end time of day")
    actual_start_time: Optional[datetime] = Field(None, description="When the route was started")
    actual_end_time: Optional[datetime] = Field(None, description="When the route was completed")
    estimated_distance_km: Optional[float] = Field(None, description="Estimated distance in km")
    actual_distance_km: Optional[float] = Field(None, description="Actual distance in km")
    estimated_duration_minutes: Optional[int] = Field(None, description="Estimated duration")
    actual_duration_minutes: Optional[int] = Field(None, description="Actual duration")
    total_load_kg: Optional[float] = Field(None, description="Total load in kg")
    total_volume_m3: Optional[float] = Field(None, description="Total volume in m³")
    max_vehicle_capacity_kg: Optional[float] = Field(None, description="Vehicle load capacity snapshot")
    max_vehicle_volume_m3: Optional[float] = Field(None, description="Vehicle cargo volume snapshot")
    estimated_cost: Optional[float] = Field(None, description="Distance times cost per km")
    fuel_consumption_estimate: Optional[float] = Field(None, description="Estimated fuel in liters")
    fuel_cost_estimate: Optional[float] = Field(None, description="Estimated fuel cost")
    difficulty_level: int = Field(default=1, description="Difficulty from 1 to 5")
    notes: Optional[str] = Field(None, description="Notes")
    cancellation_reason: Optional[str] = Field(None, description="Why the route was cancelled")
    cancelled_at: Optional[datetime] = Field(None, description="When the route was cancelled")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    class Config:
        from_attributes = True


class RouteInDB(RouteBase):
    """Model for Route as stored in database."""

    def is_final_status(self) -> bool:
        return self.status in FINAL_STATUSES

    def can_be_edited(self) -> bool:
        return self.status == RouteStatus.PLANNED

    def can_be_started(self) -> bool:
        return self.status == RouteStatus.PLANNED

    def can_be_paused(self) -> bool:
        return self.status == RouteStatus.IN_PROGRESS

    def can_be_resumed(self) -> bool:
        return self.status == RouteStatus.PAUSED

    def can_be_completed(self) -> bool:
        return self.status == RouteStatus.IN_PROGRESS

    def can_be_cancelled(self) -> bool:
        return not self.is_final_status()

    def get_progress_percentage(self, stop_statuses: list[StopStatus]) -> int:
        """Share of completed stops, 0 for a route without stops."""
        if not stop_statuses:
            return 0
        completed = sum(1 for s in stop_statuses if s == StopStatus.COMPLETED)
        return round(completed / len(stop_statuses) * 100)

    def get_capacity_utilization(self) -> Optional[int]:
        if not self.total_load_kg or not self.max_vehicle_capacity_kg:
            return None
        return round(self.total_load_kg / self.max_vehicle_capacity_kg * 100)

    def get_estimated_time_remaining(self, now: Optional[datetime] = None) -> Optional[int]:
        """Minutes left of the estimate for a started route, never negative."""
        if self.status not in (RouteStatus.IN_PROGRESS, RouteStatus.PAUSED):
            return None
        if self.estimated_duration_minutes is None or self.actual_start_time is None:
            return None
        now = now or datetime.now(timezone.utc)
        elapsed = int((now - self.actual_start_time).total_seconds() // 60)
        return max(0, self.estimated_duration_minutes - elapsed)

    def planned_end(self) -> datetime:
        return planned_end_instant(self.planned_date, self.planned_end_time)

    def is_delayed(self, now: Optional[datetime] = None) -> bool:
        if self.is_final_status():
            return False
        now = now or datetime.now(timezone.utc)
        return now > self.planned_end()


class RouteListItem(BaseModel):
    """Minimal model for Route in list views."""

    id: UUID = Field(..., description="Route ID")
    route_code: str = Field(..., description="Route code")
    name: str = Field(..., description="Route name")
    status: RouteStatus = Field(..., description="Route status")
    type: RouteType = Field(..., description="Route type")
    driver_id: UUID = Field(..., description="Assigned driver ID")
    vehicle_id: UUID = Field(..., description="Assigned vehicle ID")
    planned_date: date = Field(..., description="Planned date")
    planned_start_time: Optional[time] = Field(None, description="Planned start time of day")
    planned_end_time: Optional[time] = Field(None, description="Planned end time of day")
    estimated_distance_km: Optional[float] = Field(None, description="Estimated distance in km")
    estimated_duration_minutes: Optional[int] = Field(None, description="Estimated duration")
    is_delayed: bool = Field(default=False, description="Whether the route is past its planned end")

    class Config:
        from_attributes = True


class RouteResponse(RouteBase):
    """Model for Route API response with derived metrics."""

    is_delayed: bool = Field(default=False, description="Whether the route is past its planned end")
    capacity_utilization: Optional[int] = Field(None, description="Load as a percentage of vehicle capacity")
    progress_percentage: int = Field(default=0, description="Completed stops as a percentage")
    estimated_time_remaining_minutes: Optional[int] = Field(None, description="Minutes left of the estimate")
    stops: list[RouteStopResponse] = Field(default_factory=list, description="Stops in sequence order")

    @classmethod
    def from_route(
        cls,
        route: RouteInDB,
        stops: Optional[list[RouteStopResponse]] = None,
        now: Optional[datetime] = None,
    ) -> "RouteResponse":
        stops = stops or []
        return cls(
            **route.model_dump(),
            is_delayed=route.is_delayed(now),
            capacity_utilization=route.get_capacity_utilization(),
            progress_percentage=route.get_progress_percentage([s.status for s in stops]),
            estimated_time_remaining_minutes=route.get_estimated_time_remaining(now),
            stops=stops,
        )


class RouteFilters(BaseModel):
    """Filters accepted by the route listing."""

    route_code: Optional[str] = Field(None, description="Exact route code")
    status: Optional[RouteStatus] = Field(None, description="Route status")
    type: Optional[RouteType] = Field(None, description="Route type")
    driver_id: Optional[UUID] = Field(None, description="Assigned driver ID")
    vehicle_id: Optional[UUID] = Field(None, description="Assigned vehicle ID")
    planned_date_from: Optional[date] = Field(None, description="Earliest planned date")
    planned_date_to: Optional[date] = Field(None, description="Latest planned date")
    search: Optional[str] = Field(None, max_length=255, description="Case-insensitive match on name")

    @model_validator(mode="after")
    def validate_date_range(self) -> "RouteFilters":
        if (
            self.planned_date_from is not None
            and self.planned_date_to is not None
            and self.planned_date_from > self.planned_date_to
        ):
            raise PydanticCustomError(
                "invalid_date_range",
                "planned_date_from must not be after planned_date_to",
            )
        return self
