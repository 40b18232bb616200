"""
Business-rule checks run before any route mutation is persisted.

Every check accepts the caller's connection so that, inside the service's
transaction, the driver and vehicle rows stay locked between the check and
the write that depends on it.
"""

from datetime import date, datetime, time, timezone
from typing import Optional
from uuid import UUID

import asyncpg
import structlog

from logistics_api.exceptions.driver import (
    DriverAlreadyAssignedException,
    DriverInactiveException,
    DriverNotFoundException,
)
from logistics_api.exceptions.route import (
    InvalidStatusTransitionException,
    RouteAlreadyExistsException,
    RouteCapacityExceededException,
    RouteValidationException,
)
from logistics_api.exceptions.vehicle import (
    VehicleAlreadyAssignedException,
    VehicleNotFoundException,
    VehicleUnavailableException,
)
from logistics_api.models.driver import DriverInDB
from logistics_api.models.enums import (
    UNAVAILABLE_VEHICLE_STATUSES,
    RouteStatus,
    VehicleStatus,
    can_transition,
)
from logistics_api.models.route_stop import RouteStopCreate
from logistics_api.models.vehicle import VehicleInDB
from logistics_api.repository.driver import DriverRepository
from logistics_api.repository.route import RouteRepository
from logistics_api.repository.vehicle import VehicleRepository

logger = structlog.get_logger(__name__)


def _minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class RouteValidator:
    """
    Gatekeeper for route writes.

    Raises not-found exceptions for missing drivers/vehicles, conflict
    exceptions for double bookings and duplicate codes, and business-rule
    exceptions for everything else.
    """

    def __init__(
        self,
        route_repository: RouteRepository,
        driver_repository: DriverRepository,
        vehicle_repository: VehicleRepository,
        max_stops: int = 50,
    ) -> None:
        self.route_repository = route_repository
        self.driver_repository = driver_repository
        self.vehicle_repository = vehicle_repository
        self.max_stops = max_stops

    async def validate_driver_assignment(
        self,
        driver_id: UUID,
        planned_date: Optional[date] = None,
        exclude_route_id: Optional[UUID] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> None:
        """
        Reject the driver if it already holds a PLANNED, IN_PROGRESS or PAUSED route.

        The planned date is not part of the check: a driver holds
        at most one active route regardless of dates.

        Raises:
            DriverAlreadyAssignedException: If another active route uses the driver
        """
        existing = await self.route_repository.find_active_route_for_driver(
            driver_id, exclude_route_id=exclude_route_id, connection=connection
        )
        if existing is not None:
            logger.info(
                "Driver already assigned",
                driver_id=str(driver_id),
                planned_date=str(planned_date) if planned_date else None,
                conflicting_route=existing.route_code,
            )
            raise DriverAlreadyAssignedException(
                driver_id=driver_id, route_code=existing.route_code
            )

    async def validate_vehicle_assignment(
        self,
        vehicle_id: UUID,
        planned_date: Optional[date] = None,
        exclude_route_id: Optional[UUID] = None,
        connection: Optional[asyncpg.Connection] = None,
        vehicle: Optional[VehicleInDB] = None,
    ) -> VehicleInDB:
        """
        Check that the vehicle exists, is in service and is not booked elsewhere.

        Args:
            vehicle_id: Vehicle to assign
            planned_date: Planned date of the route (informational)
            exclude_route_id: Route to ignore (the one being updated)
            connection: Optional database connection
            vehicle: Already loaded vehicle, skips the lookup

        Returns:
            The vehicle

        Raises:
            VehicleNotFoundException: If the vehicle does not exist
            VehicleUnavailableException: If the vehicle is in maintenance, inactive or out of service
            VehicleAlreadyAssignedException: If another active route uses the vehicle
        """
        if vehicle is None:
            vehicle = await self.vehicle_repository.get_vehicle_by_id(
                vehicle_id, connection=connection
            )
        if vehicle is None:
            raise VehicleNotFoundException(vehicle_id=vehicle_id)

        if vehicle.status in UNAVAILABLE_VEHICLE_STATUSES:
            raise VehicleUnavailableException(
                vehicle_id=vehicle_id, vehicle_status=vehicle.status.value
            )

        existing = await self.route_repository.find_active_route_for_vehicle(
            vehicle_id, exclude_route_id=exclude_route_id, connection=connection
        )
        if existing is not None:
            logger.info(
                "Vehicle already assigned",
                vehicle_id=str(vehicle_id),
                planned_date=str(planned_date) if planned_date else None,
                conflicting_route=existing.route_code,
            )
            raise VehicleAlreadyAssignedException(
                vehicle_id=vehicle_id, route_code=existing.route_code
            )
        return vehicle

    async def validate_driver_exists(
        self, driver_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> DriverInDB:
        """
        Load the driver, locking its row when running inside a transaction.

        Raises:
            DriverNotFoundException: If the driver does not exist
            DriverInactiveException: If the driver is inactive
        """
        driver = await self.driver_repository.get_driver_by_id(
            driver_id, connection=connection, for_update=connection is not None
        )
        if driver is None:
            raise DriverNotFoundException(driver_id=driver_id)
        if not driver.is_active:
            raise DriverInactiveException(driver_id=driver_id)
        return driver

    async def validate_vehicle_exists(
        self, vehicle_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> VehicleInDB:
        """
        Load the vehicle, locking its row when running inside a transaction.

        Raises:
            VehicleNotFoundException: If the vehicle does not exist
            VehicleUnavailableException: If the vehicle is inactive
        """
        vehicle = await self.vehicle_repository.get_vehicle_by_id(
            vehicle_id, connection=connection, for_update=connection is not None
        )
        if vehicle is None:
            raise VehicleNotFoundException(vehicle_id=vehicle_id)
        if vehicle.status == VehicleStatus.INACTIVE:
            raise VehicleUnavailableException(
                vehicle_id=vehicle_id,
                vehicle_status=vehicle.status.value,
                message="Vehicle is inactive",
            )
        return vehicle

    async def validate_unique_route_code(
        self,
        route_code: str,
        exclude_route_id: Optional[UUID] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> None:
        if await self.route_repository.route_code_exists(
            route_code, exclude_route_id=exclude_route_id, connection=connection
        ):
            raise RouteAlreadyExistsException(route_code=route_code)

    def validate_route_dates(
        self,
        planned_date: date,
        planned_start_time: Optional[time] = None,
        planned_end_time: Optional[time] = None,
        today: Optional[date] = None,
    ) -> None:
        """
        Check the planned date and time window.

        The planned date may be today or later (date-only comparison, UTC).
        When both times are given the end must be strictly after the start;
        windows crossing midnight are not supported.

        Raises:
            RouteValidationException: If the date is in the past or the window is empty
        """
        today = today or utc_today()
        if planned_date < today:
            raise RouteValidationException(
                message="Planned date cannot be in the past",
                field="planned_date",
                value=planned_date.isoformat(),
            )

        if planned_start_time is not None and planned_end_time is not None:
            if _minutes_of_day(planned_end_time) <= _minutes_of_day(planned_start_time):
                raise RouteValidationException(
                    message="Planned end time must be after planned start time",
                    field="planned_end_time",
                    value=planned_end_time.isoformat(),
                )

    async def validate_route_capacity(
        self,
        vehicle_id: UUID,
        total_load_kg: Optional[float] = None,
        total_volume_m3: Optional[float] = None,
        connection: Optional[asyncpg.Connection] = None,
        vehicle: Optional[VehicleInDB] = None,
    ) -> None:
        """
        Compare the requested load and volume with the vehicle's capacity.

        A limit the vehicle does not define is not enforced.

        Raises:
            VehicleNotFoundException: If the vehicle does not exist
            RouteCapacityExceededException: If load or volume exceeds capacity
        """
        if vehicle is None:
            vehicle = await self.vehicle_repository.get_vehicle_by_id(
                vehicle_id, connection=connection
            )
        if vehicle is None:
            raise VehicleNotFoundException(vehicle_id=vehicle_id)

        if total_load_kg and vehicle.load_capacity and total_load_kg > vehicle.load_capacity:
            raise RouteCapacityExceededException(
                field="total_load_kg",
                requested=total_load_kg,
                capacity=vehicle.load_capacity,
            )

        if total_volume_m3 and vehicle.cargo_volume and total_volume_m3 > vehicle.cargo_volume:
            raise RouteCapacityExceededException(
                field="total_volume_m3",
                requested=total_volume_m3,
                capacity=vehicle.cargo_volume,
            )

    def validate_status_transition(
        self, current_status: RouteStatus, new_status: RouteStatus
    ) -> None:
        if not can_transition(RouteStatus(current_status), RouteStatus(new_status)):
            raise InvalidStatusTransitionException(
                current_status=RouteStatus(current_status).value,
                new_status=RouteStatus(new_status).value,
            )

    def validate_stops(self, stops: list[RouteStopCreate]) -> None:
        if len(stops) > self.max_stops:
            raise RouteValidationException(
                message=f"A route cannot have more than {self.max_stops} stops",
                field="stops",
                value=len(stops),
            )
        orders = [stop.sequence_order for stop in stops]
        if any(order < 1 for order in orders):
            raise RouteValidationException(
                message="Stop sequence_order must be 1 or greater",
                field="stops.sequence_order",
            )
        if len(orders) != len(set(orders)):
            raise RouteValidationException(
                message="Stop sequence_order values must be unique within a route",
                field="stops.sequence_order",
            )
