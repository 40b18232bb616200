"""
Enumerations and the route status transition table.
"""

from enum import StrEnum


class RouteStatus(StrEnum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RouteType(StrEnum):
    URBAN = "URBAN"
    INTERSTATE = "INTERSTATE"
    RURAL = "RURAL"
    EXPRESS = "EXPRESS"
    LOCAL = "LOCAL"


class StopStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class DeliveryType(StrEnum):
    DELIVERY = "DELIVERY"
    PICKUP = "PICKUP"
    BOTH = "BOTH"


class VehicleStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"
    IN_ROUTE = "in_route"


class HistoryEventType(StrEnum):
    ROUTE_CREATED = "ROUTE_CREATED"
    ROUTE_UPDATED = "ROUTE_UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    ROUTE_DELETED = "ROUTE_DELETED"


# Terminal states have no outgoing edges.
ROUTE_STATUS_TRANSITIONS: dict[RouteStatus, frozenset[RouteStatus]] = {
    RouteStatus.PLANNED: frozenset({RouteStatus.IN_PROGRESS, RouteStatus.CANCELLED}),
    RouteStatus.IN_PROGRESS: frozenset(
        {RouteStatus.PAUSED, RouteStatus.COMPLETED, RouteStatus.CANCELLED}
    ),
    RouteStatus.PAUSED: frozenset({RouteStatus.IN_PROGRESS, RouteStatus.CANCELLED}),
    RouteStatus.COMPLETED: frozenset(),
    RouteStatus.CANCELLED: frozenset(),
}

# Statuses that hold a driver and vehicle exclusively.
ASSIGNMENT_HOLDING_STATUSES: frozenset[RouteStatus] = frozenset(
    {RouteStatus.PLANNED, RouteStatus.IN_PROGRESS, RouteStatus.PAUSED}
)

FINAL_STATUSES: frozenset[RouteStatus] = frozenset(
    {RouteStatus.COMPLETED, RouteStatus.CANCELLED}
)

UNAVAILABLE_VEHICLE_STATUSES: frozenset[VehicleStatus] = frozenset(
    {
        VehicleStatus.MAINTENANCE,
        VehicleStatus.INACTIVE,
        VehicleStatus.OUT_OF_SERVICE,
    }
)


def can_transition(current: RouteStatus, new: RouteStatus) -> bool:
    return new in ROUTE_STATUS_TRANSITIONS.get(current, frozenset())
