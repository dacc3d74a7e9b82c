"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from licensegate.models.api import DeviceRole, EligibilityReason, RestaurantStatus


@dataclass(frozen=True)
class Eligibility:
    """Result of evaluating an activation code."""

    eligible: bool
    reason: EligibilityReason

    def __post_init__(self) -> None:
        """Only VALID is eligible, and VALID is always eligible."""
        if self.eligible != (self.reason == EligibilityReason.VALID):
            raise ValueError(f"Inconsistent eligibility: {self.eligible}/{self.reason}")


@dataclass(frozen=True)
class ActivationResult:
    """Identity of the restaurant created by an activation."""

    restaurant_id: UUID
    restaurant_name: str
    activation_code_id: UUID
    activated_at: datetime


@dataclass(frozen=True)
class DeviceClaims:
    """Claims embedded in a signed device token."""

    device_id: str
    role: DeviceRole
    restaurant_id: UUID

    def __post_init__(self) -> None:
        """Validate claim fields."""
        if not self.device_id:
            raise ValueError("device_id cannot be empty")


@dataclass(frozen=True)
class DeviceContext:
    """Authenticated caller, established by the lifecycle gate."""

    device_id: str
    role: DeviceRole
    restaurant_id: UUID
    restaurant_status: RestaurantStatus


@dataclass(frozen=True)
class LockoutStatus:
    """Snapshot of a failure record after an update."""

    identifier: str
    failed_attempts: int
    locked_until: datetime | None
    retry_after_seconds: int | None

    @property
    def locked(self) -> bool:
        """True when the identifier is currently locked."""
        return self.locked_until is not None


@dataclass(frozen=True)
class IssuedSession:
    """A freshly issued device token for a restaurant."""

    token: str
    role: DeviceRole
    device_id: str
    restaurant_id: UUID


@dataclass(frozen=True)
class SystemStatus:
    """Activation and setup state of this terminal."""

    activated: bool
    setup_complete: bool
    restaurant_id: UUID | None
    status: RestaurantStatus | None

    @property
    def force_activation(self) -> bool:
        """Front-ends must return to activation when the license is not live."""
        return self.activated and self.status != RestaurantStatus.ACTIVE

    @property
    def reset_reason(self) -> str | None:
        """Human readable reason for a forced re-activation."""
        if self.force_activation and self.status is not None:
            return f"License is {self.status.value}"
        return None


@dataclass(frozen=True)
class RevocationReport:
    """Outcome of a revocation: scope and rows removed per table."""

    scope: str
    restaurants_revoked: int
    deleted: tuple[tuple[str, int], ...]

    @property
    def total_deleted(self) -> int:
        """Total dependent rows deleted."""
        return sum(count for _, count in self.deleted)
