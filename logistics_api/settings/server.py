"""
Server configuration settings.

Host/port, worker count and CORS settings for the FastAPI application.
"""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Server configuration for the FastAPI application."""

    HOST: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )
    PORT: int = Field(
        default=8000,
        description="Server port",
    )
    WORKERS: int = Field(
        default=1,
        description="Number of worker processes",
    )
    RELOAD: bool = Field(
        default=False,
        description="Enable auto-reload on code changes",
    )
    SLOW_REQUEST_THRESHOLD_MS: float = Field(
        default=1000.0,
        description="Requests slower than this are logged as warnings",
    )
    # CORS settings
    CORS_ENABLED: bool = Field(
        default=True,
        description="Enable CORS middleware",
    )
    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(
        default=True,
        description="Allow credentials in CORS requests",
    )
    CORS_ALLOW_METHODS: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="Allowed HTTP methods for CORS",
    )
    CORS_ALLOW_HEADERS: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="Allowed headers for CORS",
    )

    model_config = SettingsConfigDict(case_sensitive=False, extra="forbid")

    @field_validator("PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("WORKERS")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Workers must be at least 1")
        return v

    @field_validator(
        "CORS_ORIGINS", "CORS_ALLOW_METHODS", "CORS_ALLOW_HEADERS", mode="before"
    )
    @classmethod
    def parse_comma_separated(cls, v):
        """Accept comma separated strings from env vars as lists."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v
