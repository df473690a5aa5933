"""
Application Configuration
Pydantic Settings for environment-based configuration
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

import json
from functools import lru_cache
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_list(value: Any) -> Any:
    """A JSON array or a comma-separated string, as a list of strings."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return decoded
    return [part.strip() for part in text.split(",") if part.strip()]


class Settings(BaseSettings):
    """
    Eligibility service settings loaded from environment variables.

    Business settings (cache TTL, response-time budget, rule engine switch)
    are kept apart from infrastructure settings so operators can tune them
    without touching connection details.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = "development"
    DEBUG: bool = Field(default=False, description="SQL echo and verbose errors")
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = Field(default="eligibility-service", description="Name stamped on audit events")
    SERVICE_VERSION: str = "1.0.0"
    API_HOST: str = "0.0.0.0"  # nosec B104
    API_PORT: int = 8090

    # ------------------------------------------------------------------
    # Coverage store (PostgreSQL)
    # ------------------------------------------------------------------
    DATABASE_URL: str | None = Field(default=None, description="Overrides the POSTGRES_* parts")
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "eligibility"
    POSTGRES_USER: str = "eligibility"
    POSTGRES_PASSWORD: str = "eligibility"
    DB_POOL_SIZE: int = Field(default=10, ge=1)
    DB_MAX_OVERFLOW: int = Field(default=5, ge=0)
    DB_POOL_TIMEOUT: int = Field(default=30, gt=0, description="Seconds to wait for a pooled connection")

    # ------------------------------------------------------------------
    # Cache (Redis)
    # ------------------------------------------------------------------
    REDIS_URL: str | None = Field(default=None, description="Overrides the REDIS_* parts")
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=0.25, gt=0, description="Seconds before a cache call counts as a miss"
    )

    # ------------------------------------------------------------------
    # Business rules
    # ------------------------------------------------------------------
    CACHE_TTL: int = Field(default=300, gt=0, description="Eligibility cache TTL in seconds")
    MAX_RESPONSE_TIME_MS: int = Field(
        default=900, gt=0, description="Response-time budget for an eligibility check (ms)"
    )
    HARD_TIMEOUT_ENABLED: bool = Field(
        default=False,
        description="Abort requests that exceed MAX_RESPONSE_TIME_MS instead of only logging",
    )
    ENABLE_RULE_ENGINE: bool = Field(
        default=True, description="Evaluate per-coverage prior authorization rules"
    )
    VERIFICATION_VALIDITY_HOURS: int = Field(
        default=24, gt=0, description="Validity window of coverage verification results"
    )
    PROVIDER_NETWORKS: Annotated[dict[str, list[str]], NoDecode] = Field(
        default_factory=dict,
        description="Network identifier -> participating provider IDs (JSON object)",
    )

    # ------------------------------------------------------------------
    # Audit trail (Kafka)
    # ------------------------------------------------------------------
    AUDIT_ENABLED: bool = True
    KAFKA_BROKERS: Annotated[list[str], NoDecode] = Field(
        default_factory=list, description="Bootstrap servers; empty means audit goes to the log"
    )
    KAFKA_AUDIT_TOPIC: str = "audit.trail.v1"
    KAFKA_SEND_RETRIES: int = Field(default=3, ge=0)

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------
    METRICS_ENABLED: bool = Field(default=True, description="Expose /metrics")
    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:3000"]
    )
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    CORS_HEADERS: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    @field_validator("CORS_ORIGINS", "CORS_METHODS", "CORS_HEADERS", "KAFKA_BROKERS", mode="before")
    @classmethod
    def parse_list_fields(cls, v: Any) -> Any:
        """Normalize list fields from env strings."""
        return _split_list(v)

    @field_validator("PROVIDER_NETWORKS", mode="before")
    @classmethod
    def parse_provider_networks(cls, v: Any) -> Any:
        """Accept the network directory as a JSON object string."""
        if isinstance(v, str):
            return json.loads(v) if v.strip() else {}
        return v

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        credentials = f"{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
        return (
            f"postgresql+asyncpg://{credentials}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}"
            f"/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        if self.REDIS_URL:
            return self.REDIS_URL
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_testing(self) -> bool:
        return self.ENVIRONMENT == "testing"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Source: https://fastapi.tiangolo.com/advanced/settings/
    """
    return Settings()
