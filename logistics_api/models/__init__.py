"""
Pydantic models for request/response validation and database rows.
"""

from logistics_api.models.base import ListResponseModel, ResponseModel
from logistics_api.models.driver import DriverInDB
from logistics_api.models.enums import (
    ASSIGNMENT_HOLDING_STATUSES,
    FINAL_STATUSES,
    ROUTE_STATUS_TRANSITIONS,
    DeliveryType,
    HistoryEventType,
    RouteStatus,
    RouteType,
    StopStatus,
    VehicleStatus,
)
from logistics_api.models.errors import HTTPDetail, HTTPException
from logistics_api.models.route import (
    RouteCancel,
    RouteComplete,
    RouteCreate,
    RouteFilters,
    RouteInDB,
    RouteListItem,
    RouteResponse,
    RouteUpdate,
)
from logistics_api.models.route_history import (
    ChangedField,
    HistoryMetadata,
    RouteHistoryCreate,
    RouteHistoryInDB,
    RouteHistoryResponse,
)
from logistics_api.models.route_stop import (
    DeliveryData,
    RouteStopCreate,
    RouteStopInDB,
    RouteStopResponse,
)
from logistics_api.models.vehicle import VehicleInDB

__all__ = [
    "ListResponseModel",
    "ResponseModel",
    "HTTPDetail",
    "HTTPException",
    "ASSIGNMENT_HOLDING_STATUSES",
    "FINAL_STATUSES",
    "ROUTE_STATUS_TRANSITIONS",
    "DeliveryType",
    "HistoryEventType",
    "RouteStatus",
    "RouteType",
    "StopStatus",
    "VehicleStatus",
    "DriverInDB",
    "VehicleInDB",
    "RouteCancel",
    "RouteComplete",
    "RouteCreate",
    "RouteFilters",
    "RouteInDB",
    "RouteListItem",
    "RouteResponse",
    "RouteUpdate",
    "ChangedField",
    "HistoryMetadata",
    "RouteHistoryCreate",
    "RouteHistoryInDB",
    "RouteHistoryResponse",
    "DeliveryData",
    "RouteStopCreate",
    "RouteStopInDB",
    "RouteStopResponse",
]
