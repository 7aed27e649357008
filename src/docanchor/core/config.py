"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Backend settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")
    db_connect_max_attempts: int = Field(default=5, ge=1, alias="DB_CONNECT_MAX_ATTEMPTS")
    db_connect_retry_delay_seconds: float = Field(
        default=3.0, ge=0, alias="DB_CONNECT_RETRY_DELAY_SECONDS"
    )

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    allowed_origins: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=5001, alias="PORT")

    # Rate limiting (per client IP, fixed window)
    rate_limit_window_seconds: int = Field(default=15 * 60, ge=1, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_max_requests: int = Field(default=100, ge=1, alias="RATE_LIMIT_MAX_REQUESTS")

    # Uploads
    max_file_size_bytes: int = Field(default=100 * MIB, ge=1, alias="MAX_FILE_SIZE_BYTES")

    # Pinata pinning service. Either a JWT or an API key pair must be configured.
    pinata_jwt: str = Field(default="", alias="PINATA_JWT")
    pinata_api_key: str = Field(default="", alias="PINATA_API_KEY")
    pinata_secret_key: str = Field(default="", alias="PINATA_SECRET_KEY")
    pinata_api_url: str = Field(default="https://api.pinata.cloud", alias="PINATA_API_URL")
    pinata_cid_version: int = Field(default=0, alias="PINATA_CID_VERSION")
    pinata_timeout_seconds: float = Field(default=30.0, gt=0, alias="PINATA_TIMEOUT_SECONDS")
    pinata_max_retries: int = Field(default=2, ge=0, alias="PINATA_MAX_RETRIES")
    pinata_retry_delay_seconds: float = Field(default=1.0, ge=0, alias="PINATA_RETRY_DELAY_SECONDS")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Reject an empty connection string; the service cannot run without a database."""
        if not v.strip():
            raise ValueError("DATABASE_URL must not be empty")
        return v.strip()

    @field_validator("pinata_cid_version")
    @classmethod
    def validate_cid_version(cls, v: int) -> int:
        if v not in (0, 1):
            raise ValueError("PINATA_CID_VERSION must be 0 or 1")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def pinata_configured(self) -> bool:
        """True when a usable set of Pinata credentials is present."""
        return bool(self.pinata_jwt) or bool(self.pinata_api_key and self.pinata_secret_key)

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability

    Request-scoped values bound with ``structlog.contextvars`` (the request id) are
    merged into every event.
    """
    setup_structlog(settings.log_level, json_output=settings.is_production)


def setup_structlog(log_level: str, json_output: bool = False) -> None:
    """Install the structlog pipeline (also used by the upload CLI, which has no Settings)."""
    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        renderer_processors = [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer_processors = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[*shared_processors, *renderer_processors],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
