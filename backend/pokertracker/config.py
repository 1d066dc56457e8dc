"""Application configuration using Pydantic BaseSettings."""

import logging
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("pokertracker.config")

_SETTLEMENT_STRATEGIES = ("proportional", "greedy")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # MongoDB Configuration
    MONGO_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "pokertracker"

    # CORS Configuration
    # Comma-separated list of allowed origins, or "*" for all origins
    CORS_ORIGINS: str = ""

    # Ledger behaviour
    BALANCE_TOLERANCE: float = 0.01
    SETTLEMENT_STRATEGY: str = "proportional"
    MAX_WRITE_RETRIES: int = 5
    SETTLEMENT_RETRY_INTERVAL_SECONDS: int = 300
    # A GENERATING claim older than this is taken over by the next writer.
    SETTLEMENT_CLAIM_LEASE_SECONDS: int = 120

    # Deployment
    ENVIRONMENT: str = "development"

    # Application Metadata
    APP_VERSION: str = "1.0.0"

    @field_validator("SETTLEMENT_STRATEGY", mode="before")
    @classmethod
    def validate_settlement_strategy(cls, v):
        """Normalise the strategy name and reject unknown values."""
        if v is None or v == "":
            return "proportional"
        value = str(v).strip().lower()
        if value not in _SETTLEMENT_STRATEGIES:
            raise ValueError(
                f"SETTLEMENT_STRATEGY must be one of {_SETTLEMENT_STRATEGIES}, got {v!r}"
            )
        if value != "proportional":
            logger.warning(
                "Settlement strategy '%s' selected; amounts will differ from "
                "the proportional allocation used by default.",
                value,
            )
        return value

    @field_validator("MAX_WRITE_RETRIES")
    @classmethod
    def validate_max_write_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_WRITE_RETRIES must be at least 1")
        return v

    @field_validator("SETTLEMENT_CLAIM_LEASE_SECONDS")
    @classmethod
    def validate_claim_lease(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("SETTLEMENT_CLAIM_LEASE_SECONDS must be positive")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Return list of allowed CORS origins.

        If CORS_ORIGINS is empty, allows the local development origins
        but returns empty in production.
        """
        if self.CORS_ORIGINS:
            if self.CORS_ORIGINS == "*":
                return ["*"]
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

        if self.is_production:
            logger.warning(
                "CORS_ORIGINS not configured in production. "
                "Set CORS_ORIGINS environment variable."
            )
            return []

        # Development defaults
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]


# Global settings instance
settings = Settings()
