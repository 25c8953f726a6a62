"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_name: str = Field(default="payment-gateway", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8090, description="API port")

    # Acquiring Bank Configuration
    bank_url: str = Field(
        default="http://localhost:8080/payments",
        description="Acquiring bank authorization endpoint",
    )
    bank_timeout_seconds: float = Field(
        default=10.0, gt=0, description="HTTP timeout for bank calls (seconds)"
    )

    # Circuit Breaker
    circuit_failure_rate_threshold: float = Field(
        default=0.5, description="Failure rate that opens the circuit (0.0-1.0]"
    )
    circuit_sliding_window_size: int = Field(
        default=10, gt=0, description="Number of recent calls tracked"
    )
    circuit_minimum_number_of_calls: int = Field(
        default=5, gt=0, description="Calls required before the failure rate is evaluated"
    )
    circuit_wait_duration_open_seconds: float = Field(
        default=30.0, ge=0, description="Cool-down before an open circuit admits trial calls"
    )
    circuit_permitted_calls_in_half_open: int = Field(
        default=3, gt=0, description="Trial calls admitted while half-open"
    )
    circuit_call_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Upper bound for a single gated call (seconds)"
    )

    # Idempotency
    idempotency_cache_ttl: Optional[int] = Field(
        default=None,
        gt=0,
        description="Idempotency entry TTL (seconds), unset keeps entries for process lifetime",
    )
    idempotency_cache_max_entries: Optional[int] = Field(
        default=None, gt=0, description="Maximum completed idempotency entries, unset is unbounded"
    )
    idempotency_cache_downstream_failures: bool = Field(
        default=True,
        description="Cache the Declined outcome produced when the bank cannot be reached",
    )

    # Payment Processing
    supported_currencies: str = Field(
        default="USD,GBP,EUR", description="Accepted currency codes (comma-separated)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("circuit_failure_rate_threshold")
    @classmethod
    def validate_failure_rate(cls, v: float) -> float:
        """Failure rate threshold must be a fraction in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError("Failure rate threshold must be greater than 0 and at most 1")
        return v

    def get_supported_currencies(self) -> List[str]:
        """Parse supported currencies from comma-separated string."""
        return [
            currency.strip().upper()
            for currency in self.supported_currencies.split(",")
            if currency.strip()
        ]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
