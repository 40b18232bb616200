"""
Dependencies module for FastAPI dependency injection.

This module contains reusable dependencies for database access,
settings, service initialization and the per-request audit context.
"""

from logistics_api.dependencies.common import DatabasePoolDep, SettingsDep
from logistics_api.dependencies.route import AuditContextDep, RouteServiceDep

__all__ = [
    "AuditContextDep",
    "DatabasePoolDep",
    "RouteServiceDep",
    "SettingsDep",
]
