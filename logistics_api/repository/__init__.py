"""
Repository layer: asyncpg access to routes and the records they reference.
"""

from logistics_api.repository.driver import DriverRepository
from logistics_api.repository.route import RouteRepository
from logistics_api.repository.route_history import RouteHistoryRepository
from logistics_api.repository.route_stop import RouteStopRepository
from logistics_api.repository.vehicle import VehicleRepository

__all__ = [
    "DriverRepository",
    "RouteRepository",
    "RouteHistoryRepository",
    "RouteStopRepository",
    "VehicleRepository",
]
