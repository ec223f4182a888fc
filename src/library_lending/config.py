"""Configuration management for the library lending core.

Settings are loaded the same way everywhere in the package:
1. Defaults declared on the model
2. Environment variables prefixed with ``LIBRARY_LENDING_``
3. An optional ``.env`` file in the working directory

Lending policy values are fixed constants rather than settings; every branch
of the library applies the same loan period, loan limit and fine rate.
"""

from decimal import Decimal
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# === Lending Policy ===

MAX_ACTIVE_LOANS = 5
LOAN_PERIOD_DAYS = 14
DAILY_FINE_RATE = Decimal("1.00")


class LendingConfig(BaseSettings):
    """Runtime configuration for the lending core.

    Covers persistence, logging and observability. Values can be overridden
    per process through ``LIBRARY_LENDING_*`` environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_LENDING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Service Metadata ===

    service_name: str = Field(
        default="library-lending",
        description="Service name attached to log records and traces",
        pattern=r"^[a-z0-9-]+$",
    )

    service_version: str = Field(
        default="0.1.0",
        description="Service version reported to observability backends",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/library.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; takes precedence over database_path",
    )

    sqlite_busy_timeout: float = Field(
        default=30.0,
        description="Seconds a SQLite connection waits for a competing write lock",
        gt=0,
        le=300,
    )

    # === Logging ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Observability ===

    observability_enabled: bool = Field(
        default=True,
        description="Emit logfire spans and metrics for lending operations",
    )

    environment: str = Field(
        default="development",
        description="Deployment environment reported with traces",
    )

    logfire_token: str | None = Field(
        default=None,
        description="Logfire write token; traces stay local when unset",
        repr=False,
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("service_name")
    @classmethod
    def validate_service_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Service name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Service name must not exceed 50 characters")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug or self.log_level == "DEBUG"

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: LendingConfig | None = None


def get_config() -> LendingConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = LendingConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
