"""
Tests for Settings validation.

The application must refuse to start without a usable signing secret or
with an unsupported database driver.
"""

import pytest

from licensegate.config import ConfigurationError, Settings

GOOD_SECRET = "s" * 32


class TestCriticalConfig:
    """FAIL FAST checks."""

    def test_valid_settings(self):
        settings = Settings(
            database_url="sqlite+aiosqlite:///./x.db", DEVICE_JWT_SECRET=GOOD_SECRET
        )

        assert settings.is_sqlite
        assert settings.revocation_scope == "shared_store"
        assert settings.lockout_soft_threshold == 3
        assert settings.lockout_hard_threshold == 10

    def test_postgres_url_accepted(self):
        settings = Settings(
            database_url="postgresql+asyncpg://u:p@db/licensegate",
            DEVICE_JWT_SECRET=GOOD_SECRET,
        )

        assert not settings.is_sqlite

    def test_short_secret_rejected(self):
        with pytest.raises(ConfigurationError, match="at least 32 characters"):
            Settings(database_url="sqlite+aiosqlite:///./x.db", DEVICE_JWT_SECRET="short")

    def test_missing_secret_rejected(self):
        with pytest.raises(ConfigurationError, match="DEVICE_JWT_SECRET is required"):
            Settings(database_url="sqlite+aiosqlite:///./x.db", DEVICE_JWT_SECRET="")

    def test_sync_driver_rejected(self):
        with pytest.raises(ConfigurationError, match="DATABASE_URL must use"):
            Settings(database_url="sqlite:///./x.db", DEVICE_JWT_SECRET=GOOD_SECRET)

    def test_inverted_lockout_thresholds_rejected(self):
        with pytest.raises(ConfigurationError, match="Lockout thresholds"):
            Settings(
                database_url="sqlite+aiosqlite:///./x.db",
                DEVICE_JWT_SECRET=GOOD_SECRET,
                lockout_soft_threshold=10,
                lockout_hard_threshold=3,
            )

    def test_pin_lengths_checked(self):
        with pytest.raises(ConfigurationError, match="ADMIN_PIN_MIN_LENGTH"):
            Settings(
                database_url="sqlite+aiosqlite:///./x.db",
                DEVICE_JWT_SECRET=GOOD_SECRET,
                admin_pin_min_length=20,
            )

    def test_unknown_revocation_scope_rejected(self):
        with pytest.raises(ValueError):
            Settings(
                database_url="sqlite+aiosqlite:///./x.db",
                DEVICE_JWT_SECRET=GOOD_SECRET,
                revocation_scope="everything",
            )
