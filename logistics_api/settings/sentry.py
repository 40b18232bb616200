from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SentryConfig(BaseSettings):
    DSN: Optional[str] = Field(
        default=None,
        description="Sentry DSN. Error reporting is disabled when unset",
    )
    TRACES_SAMPLE_RATE: float = Field(
        default=0.0,
        description="Fraction of transactions sent to Sentry for tracing",
    )
    SEND_DEFAULT_PII: bool = Field(
        default=False,
        description="Attach request headers and client IP to Sentry events",
    )

    model_config = SettingsConfigDict(case_sensitive=False, extra="forbid")

    @field_validator("TRACES_SAMPLE_RATE")
    @classmethod
    def validate_sample_rate(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("Traces sample rate must be between 0 and 1")
        return v
