"""
Lockout Guard.

Counts consecutive failures per identifier and enforces an escalating
lockout. State lives in process memory only: a restart clears it, and
several processes behind one store each keep their own counts.

Identifiers are namespaced by the caller:
    login:<restaurant_id>       PIN login attempts
    admin-pin:<restaurant_id>   admin PIN re-verification (verify, rotate, revoke)
"""

import math
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from structlog import get_logger

from licensegate.config import settings
from licensegate.exceptions import RateLimitedError
from licensegate.models.domain import LockoutStatus
from licensegate.observability.metrics import metrics

logger = get_logger(__name__)


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


@dataclass
class FailureRecord:
    """Mutable per-identifier failure state."""

    count: int = 0
    locked_until: datetime | None = None


class LockoutGuard:
    """
    Escalating lockout after consecutive failures.

    Usage:
        guard.check(identifier)              # raises RateLimitedError while locked
        if pin_ok:
            guard.register_success(identifier)
        else:
            status = guard.register_failure(identifier)
    """

    def __init__(
        self,
        soft_threshold: int = 3,
        soft_duration: timedelta = timedelta(minutes=5),
        hard_threshold: int = 10,
        hard_duration: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if not 0 < soft_threshold < hard_threshold:
            raise ValueError("Lockout thresholds must satisfy 0 < soft < hard")
        self.soft_threshold = soft_threshold
        self.soft_duration = soft_duration
        self.hard_threshold = hard_threshold
        self.hard_duration = hard_duration
        self._clock = clock
        self._records: dict[str, FailureRecord] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _retry_after(locked_until: datetime, now: datetime) -> int:
        return max(1, math.ceil((locked_until - now).total_seconds()))

    def check(self, identifier: str) -> None:
        """
        Raise RateLimitedError while the identifier is locked.

        An expired lock is dropped here, so the next attempt is evaluated
        normally and counting restarts from zero.
        """
        with self._lock:
            record = self._records.get(identifier)
            if record is None or record.locked_until is None:
                return

            now = self._clock()
            if record.locked_until > now:
                retry_after = self._retry_after(record.locked_until, now)
                raise RateLimitedError(identifier, retry_after)

            del self._records[identifier]

        logger.info("lockout_expired", identifier=identifier)

    def register_failure(self, identifier: str) -> LockoutStatus:
        """Count a failure and lock the identifier when a threshold is reached."""
        with self._lock:
            now = self._clock()
            record = self._records.setdefault(identifier, FailureRecord())
            record.count += 1

            tier: str | None = None
            if record.count >= self.hard_threshold:
                record.locked_until = now + self.hard_duration
                tier = "hard"
            elif record.count >= self.soft_threshold:
                record.locked_until = now + self.soft_duration
                tier = "soft"

            status = LockoutStatus(
                identifier=identifier,
                failed_attempts=record.count,
                locked_until=record.locked_until,
                retry_after_seconds=(
                    self._retry_after(record.locked_until, now) if record.locked_until else None
                ),
            )

        if tier is not None:
            metrics.record_lockout(tier)
            logger.info(
                "lockout_engaged",
                identifier=identifier,
                failed_attempts=status.failed_attempts,
                tier=tier,
                retry_after_seconds=status.retry_after_seconds,
            )
        else:
            logger.info(
                "failure_registered",
                identifier=identifier,
                failed_attempts=status.failed_attempts,
            )
        return status

    def register_success(self, identifier: str) -> None:
        """Forget all failures for the identifier."""
        with self._lock:
            removed = self._records.pop(identifier, None)
        if removed is not None:
            logger.info("lockout_cleared", identifier=identifier)

    def failed_attempts(self, identifier: str) -> int:
        """Current consecutive failure count (0 when unknown)."""
        with self._lock:
            record = self._records.get(identifier)
            return record.count if record else 0

    def reset(self) -> None:
        """Drop every record."""
        with self._lock:
            self._records.clear()


def login_identifier(restaurant_id: object) -> str:
    """Lockout key for PIN logins against a restaurant."""
    return f"login:{restaurant_id}"


def admin_pin_identifier(restaurant_id: object) -> str:
    """Lockout key for admin PIN re-verification against a restaurant."""
    return f"admin-pin:{restaurant_id}"


# Process-wide guard
lockout_guard = LockoutGuard(
    soft_threshold=settings.lockout_soft_threshold,
    soft_duration=timedelta(minutes=settings.lockout_soft_minutes),
    hard_threshold=settings.lockout_hard_threshold,
    hard_duration=timedelta(minutes=settings.lockout_hard_minutes),
)


def get_lockout_guard() -> LockoutGuard:
    """FastAPI dependency returning the process-wide guard."""
    return lockout_guard
