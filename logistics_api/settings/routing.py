"""
Route planning configuration.

Tunables for route codes, cancellation, stop limits, fuel pricing and
pagination used by the route service.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RoutingConfig(BaseSettings):
    """Business tunables for the route lifecycle."""

    ROUTE_CODE_PREFIX: str = Field(
        default="RT",
        description="Prefix of generated route codes (RT-YYYYMMDD-NNN)",
    )
    CANCELLATION_REASON_MIN_LENGTH: int = Field(
        default=10,
        description="Minimum length of a cancellation reason",
    )
    CANCELLATION_REASON_MAX_LENGTH: int = Field(
        default=500,
        description="Maximum length of a cancellation reason",
    )
    MAX_STOPS: int = Field(
        default=50,
        description="Maximum number of stops on a single route",
    )
    FUEL_PRICE_PER_LITER: float = Field(
        default=5.5,
        description="Fuel price used for cost estimates",
    )
    DEFAULT_PAGE_LIMIT: int = Field(
        default=20,
        description="Default page size for route listings",
    )
    MAX_PAGE_LIMIT: int = Field(
        default=100,
        description="Maximum page size for route listings",
    )

    model_config = SettingsConfigDict(case_sensitive=False, extra="forbid")

    @field_validator("ROUTE_CODE_PREFIX")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalpha():
            raise ValueError("Route code prefix must contain letters only")
        return v

    @field_validator("FUEL_PRICE_PER_LITER")
    @classmethod
    def validate_fuel_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Fuel price cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_limits(self) -> "RoutingConfig":
        """Validate that the configured bounds are coherent."""
        if self.CANCELLATION_REASON_MIN_LENGTH > self.CANCELLATION_REASON_MAX_LENGTH:
            raise ValueError(
                "Cancellation reason minimum length exceeds the maximum length"
            )
        if not 1 <= self.DEFAULT_PAGE_LIMIT <= self.MAX_PAGE_LIMIT:
            raise ValueError("Default page limit must be between 1 and the maximum")
        if self.MAX_STOPS < 1:
            raise ValueError("Max stops must be at least 1")
        return self
