from logistics_api.settings.database import DatabaseConfig
from logistics_api.settings.routing import RoutingConfig
from logistics_api.settings.sentry import SentryConfig
from logistics_api.settings.server import ServerConfig
from logistics_api.settings.settings import Settings, get_settings, reload_settings

__all__ = [
    "DatabaseConfig",
    "RoutingConfig",
    "SentryConfig",
    "ServerConfig",
    "Settings",
    "get_settings",
    "reload_settings",
]
