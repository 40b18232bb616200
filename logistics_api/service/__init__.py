"""
Service layer: route lifecycle orchestration and business-rule validation.
"""

from logistics_api.service.hooks import RouteLifecycleHooks
from logistics_api.service.route import RouteService
from logistics_api.service.route_validator import RouteValidator

__all__ = [
    "RouteLifecycleHooks",
    "RouteService",
    "RouteValidator",
]
