"""
PIN Authenticator & Device Registry.

Handles first-time PIN setup, role PIN login and admin PIN re-verification.
PINs are hashed with Argon2id; plaintext is never stored or logged.

Login precedence:
    1. no restaurant                 -> NOT_ACTIVATED (400)
    2. restaurant not ACTIVE         -> 403, not counted toward lockout
    3. no admin PIN configured       -> SETUP_INCOMPLETE (400)
    4. identifier locked             -> 429
    5. PIN mismatch                  -> 401 (429 once the failure trips the lock)
"""

import secrets
import time
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.config import settings
from licensegate.db.models import Device, Restaurant, utc_now
from licensegate.exceptions import (
    InvalidPinError,
    InvalidRequestError,
    RateLimitedError,
    ResourceNotFoundError,
    SetupAlreadyCompleteError,
    SetupIncompleteError,
)
from licensegate.models.api import AuditAction, DeviceRole, RestaurantStatus
from licensegate.models.domain import DeviceClaims, IssuedSession
from licensegate.observability.metrics import metrics
from licensegate.services.audit import AuditLogger
from licensegate.services.device_tokens import DeviceTokenService
from licensegate.services.lifecycle import LifecycleService, ensure_active
from licensegate.services.lockout import LockoutGuard, admin_pin_identifier, login_identifier

logger = get_logger(__name__)


# ============================================================================
# PIN policy and hashing
# ============================================================================


def validate_pin(pin: str, role: DeviceRole) -> None:
    """
    Enforce the PIN policy for a role.

    Raises:
        InvalidRequestError: PIN is not all digits or outside the length bounds
    """
    min_length = (
        settings.admin_pin_min_length if role == DeviceRole.ADMIN else settings.kitchen_pin_min_length
    )
    label = "Admin" if role == DeviceRole.ADMIN else "Kitchen"

    if not pin.isascii() or not pin.isdigit():
        raise InvalidRequestError(f"{label} PIN must contain digits only")
    if len(pin) < min_length:
        raise InvalidRequestError(f"{label} PIN must be at least {min_length} digits")
    if len(pin) > settings.pin_max_length:
        raise InvalidRequestError(
            f"{label} PIN must be at most {settings.pin_max_length} digits"
        )


class PinHasher:
    """Argon2id hashing for PINs."""

    def __init__(self, password_hasher: PasswordHasher | None = None) -> None:
        self.password_hasher = password_hasher or PasswordHasher()

    def hash(self, pin: str) -> str:
        start = time.perf_counter()
        try:
            return self.password_hasher.hash(pin)
        finally:
            metrics.pin_hash_duration_seconds.observe(time.perf_counter() - start)

    def verify(self, pin_hash: str, pin: str) -> bool:
        """True on match. A mismatch or a malformed stored hash is simply False."""
        start = time.perf_counter()
        try:
            return self.password_hasher.verify(pin_hash, pin)
        except (VerificationError, InvalidHashError):
            return False
        finally:
            metrics.pin_hash_duration_seconds.observe(time.perf_counter() - start)


_pin_hasher: PinHasher | None = None


def get_pin_hasher() -> PinHasher:
    """Get the process-wide PIN hasher (FastAPI dependency)."""
    global _pin_hasher
    if _pin_hasher is None:
        _pin_hasher = PinHasher()
    return _pin_hasher


# ============================================================================
# Device registry
# ============================================================================


class DeviceRegistry:
    """One row per (device_id, role); refreshed on every successful login."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(
        self,
        device_id: str,
        role: DeviceRole,
        restaurant_id: UUID,
        now: datetime | None = None,
    ) -> None:
        """Create the device row, or refresh last_used if it already exists."""
        now = now or utc_now()
        dialect = self.session.get_bind().dialect.name
        insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = insert_fn(Device).values(
            device_id=device_id,
            role=role.value,
            restaurant_id=restaurant_id,
            last_used=now,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["device_id", "role"],
            set_={"last_used": now, "restaurant_id": restaurant_id},
        )
        await self.session.execute(stmt)

    async def list_for_restaurant(self, restaurant_id: UUID) -> Sequence[Device]:
        stmt = (
            select(Device)
            .where(Device.restaurant_id == restaurant_id)
            .order_by(Device.last_used.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


# ============================================================================
# Authenticator
# ============================================================================


class PinAuthService:
    """Setup, login and admin PIN re-verification."""

    def __init__(
        self,
        session: AsyncSession,
        hasher: PinHasher,
        tokens: DeviceTokenService,
        lockout: LockoutGuard,
    ) -> None:
        self.session = session
        self.hasher = hasher
        self.tokens = tokens
        self.lockout = lockout
        self.lifecycle = LifecycleService(session)
        self.devices = DeviceRegistry(session)
        self.audit = AuditLogger(session)

    def _issue(self, device_id: str, role: DeviceRole, restaurant_id: UUID) -> IssuedSession:
        token = self.tokens.issue(
            DeviceClaims(device_id=device_id, role=role, restaurant_id=restaurant_id)
        )
        return IssuedSession(
            token=token, role=role, device_id=device_id, restaurant_id=restaurant_id
        )

    async def setup(
        self,
        restaurant_id: UUID,
        admin_pin: str,
        kitchen_pin: str | None = None,
        device_id: str | None = None,
    ) -> IssuedSession:
        """
        Configure PINs for a freshly activated restaurant.

        Setup happens exactly once. The hashes are written with a conditional
        UPDATE on `admin_pin_hash IS NULL`, so of two concurrent setups only
        one can succeed.

        Returns:
            An ADMIN session for the device that performed setup
        """
        restaurant = await self.lifecycle.get_by_id(restaurant_id)
        if restaurant is None:
            raise ResourceNotFoundError("Restaurant", str(restaurant_id))
        ensure_active(restaurant)
        if restaurant.admin_pin_hash is not None:
            raise SetupAlreadyCompleteError(restaurant_id)

        validate_pin(admin_pin, DeviceRole.ADMIN)
        if kitchen_pin is not None:
            validate_pin(kitchen_pin, DeviceRole.KITCHEN)

        admin_hash = self.hasher.hash(admin_pin)
        kitchen_hash = self.hasher.hash(kitchen_pin) if kitchen_pin is not None else None

        stmt = (
            update(Restaurant)
            .where(
                Restaurant.id == restaurant_id,
                Restaurant.admin_pin_hash.is_(None),
                Restaurant.status == RestaurantStatus.ACTIVE.value,
            )
            .values(
                admin_pin_hash=admin_hash,
                kitchen_pin_hash=kitchen_hash,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            await self.session.rollback()
            logger.warning("pin_setup_lost_race", restaurant_id=str(restaurant_id))
            raise SetupAlreadyCompleteError(restaurant_id)

        device_id = device_id or f"setup-{secrets.token_hex(8)}"
        await self.devices.upsert(device_id, DeviceRole.ADMIN, restaurant_id)
        await self.audit.record(
            AuditAction.PIN_SETUP_COMPLETED,
            actor=device_id,
            target=str(restaurant_id),
            details={"kitchenPinConfigured": kitchen_pin is not None},
        )
        await self.session.commit()

        logger.info(
            "pin_setup_completed",
            restaurant_id=str(restaurant_id),
            device_id=device_id,
            kitchen_pin_configured=kitchen_pin is not None,
        )
        return self._issue(device_id, DeviceRole.ADMIN, restaurant_id)

    async def login(self, pin: str, role: DeviceRole, device_id: str) -> IssuedSession:
        """
        Exchange a role PIN for a device token.

        The failure response never reveals whether the role has a PIN at all.
        """
        restaurant = await self.lifecycle.require_current()
        ensure_active(restaurant)
        if restaurant.admin_pin_hash is None:
            raise SetupIncompleteError(restaurant.id)

        identifier = login_identifier(restaurant.id)
        self.lockout.check(identifier)

        stored_hash = (
            restaurant.admin_pin_hash if role == DeviceRole.ADMIN else restaurant.kitchen_pin_hash
        )
        if stored_hash is None or not self.hasher.verify(stored_hash, pin):
            status = self.lockout.register_failure(identifier)
            metrics.record_login(role.value, success=False)
            await self.audit.record_failure(
                AuditAction.LOGIN_FAILED,
                actor=device_id,
                target=str(restaurant.id),
                details={"role": role.value, "failedAttempts": status.failed_attempts},
            )
            logger.warning(
                "login_failed",
                restaurant_id=str(restaurant.id),
                device_id=device_id,
                role=role.value,
                failed_attempts=status.failed_attempts,
            )
            if status.locked and status.retry_after_seconds is not None:
                raise RateLimitedError(identifier, status.retry_after_seconds)
            raise InvalidPinError()

        self.lockout.register_success(identifier)
        await self.devices.upsert(device_id, role, restaurant.id)
        await self.audit.record(
            AuditAction.LOGIN_SUCCESS,
            actor=device_id,
            target=str(restaurant.id),
            details={"role": role.value},
        )
        await self.session.commit()

        metrics.record_login(role.value, success=True)
        logger.info(
            "login_succeeded",
            restaurant_id=str(restaurant.id),
            device_id=device_id,
            role=role.value,
        )
        return self._issue(device_id, role, restaurant.id)

    async def verify_admin_pin(
        self,
        restaurant_id: UUID,
        admin_pin: str,
        device_id: str,
        failure_action: AuditAction,
        operation: str,
    ) -> Restaurant:
        """
        Re-verify the admin PIN for a sensitive operation.

        Used independently by verify, rotate and revoke; a success in one
        request grants nothing to the next. Failures are audited with
        `failure_action` and committed before the error is raised.

        Returns:
            The (ACTIVE) restaurant whose admin PIN matched
        """
        restaurant = await self.lifecycle.require_active(restaurant_id)

        identifier = admin_pin_identifier(restaurant.id)
        self.lockout.check(identifier)

        if restaurant.admin_pin_hash is None or not self.hasher.verify(
            restaurant.admin_pin_hash, admin_pin
        ):
            status = self.lockout.register_failure(identifier)
            metrics.record_admin_pin_check(operation, success=False)
            await self.audit.record_failure(
                failure_action,
                actor=device_id,
                target=str(restaurant.id),
                details={"operation": operation, "failedAttempts": status.failed_attempts},
            )
            logger.warning(
                "admin_pin_verification_failed",
                restaurant_id=str(restaurant.id),
                device_id=device_id,
                operation=operation,
                failed_attempts=status.failed_attempts,
            )
            if status.locked and status.retry_after_seconds is not None:
                raise RateLimitedError(identifier, status.retry_after_seconds)
            raise InvalidPinError()

        self.lockout.register_success(identifier)
        metrics.record_admin_pin_check(operation, success=True)
        return restaurant

    async def confirm_admin_pin(
        self, restaurant_id: UUID, admin_pin: str, device_id: str
    ) -> None:
        """Standalone verification. Grants no token and stores no state."""
        await self.verify_admin_pin(
            restaurant_id,
            admin_pin,
            device_id,
            failure_action=AuditAction.ADMIN_PIN_VERIFY_FAILED,
            operation="verify",
        )
        await self.audit.record(
            AuditAction.ADMIN_PIN_VERIFIED, actor=device_id, target=str(restaurant_id)
        )
        await self.session.commit()
        logger.info(
            "admin_pin_verified", restaurant_id=str(restaurant_id), device_id=device_id
        )
