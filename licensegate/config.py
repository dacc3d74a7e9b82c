"""
Terminal configuration, read from the environment or a local .env file.

Settings are validated when this module is imported: a terminal with a weak
device-token secret or a synchronous database driver refuses to start.
"""

import sys
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - local SQLite store for a single terminal
    database_url: str = "sqlite+aiosqlite:///./licensegate.db"
    database_pool_size: int = 5
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5001
    api_title: str = "LicenseGate Terminal API"
    api_version: str = "1.0.0"
    api_description: str = "License activation and device authorization for restaurant terminals"

    # Device credentials (generate secret with: openssl rand -hex 32)
    DEVICE_JWT_SECRET: str = ""
    device_token_ttl_days: int = 30

    # PIN policy
    admin_pin_min_length: int = 6
    kitchen_pin_min_length: int = 4
    pin_max_length: int = 12

    # Lockout Guard - escalating lockout after consecutive failures
    lockout_soft_threshold: int = 3
    lockout_soft_minutes: int = 5
    lockout_hard_threshold: int = 10
    lockout_hard_minutes: int = 15

    # Revocation scope: "shared_store" wipes every install in the local store,
    # "install" only touches rows belonging to the caller's restaurant.
    revocation_scope: Literal["shared_store", "install"] = "shared_store"

    default_restaurant_name: str = "Restaurant"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "licensegate-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start with an unsigned or weakly signed device token
        scheme, or with a database driver the core was not written for.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("sqlite+aiosqlite", "postgresql+asyncpg")):
            errors.append(
                f"DATABASE_URL must use sqlite+aiosqlite or postgresql+asyncpg, "
                f"got: {self.database_url[:20]}..."
            )

        if not self.DEVICE_JWT_SECRET:
            errors.append("DEVICE_JWT_SECRET is required but empty or missing")
        elif len(self.DEVICE_JWT_SECRET) < 32:
            errors.append("DEVICE_JWT_SECRET must be at least 32 characters")

        if self.admin_pin_min_length > self.pin_max_length:
            errors.append("ADMIN_PIN_MIN_LENGTH cannot exceed PIN_MAX_LENGTH")
        if self.kitchen_pin_min_length > self.pin_max_length:
            errors.append("KITCHEN_PIN_MIN_LENGTH cannot exceed PIN_MAX_LENGTH")

        if not 0 < self.lockout_soft_threshold < self.lockout_hard_threshold:
            errors.append("Lockout thresholds must satisfy 0 < soft < hard")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def is_sqlite(self) -> bool:
        """True when the local SQLite store is in use."""
        return self.database_url.startswith("sqlite")


# Global settings instance - validates at import time
settings = Settings()
