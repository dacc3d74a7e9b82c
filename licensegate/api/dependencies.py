"""
FastAPI Dependencies - Restaurant Lifecycle Gate and service wiring.

NO DICTIONARIES - All dependencies return typed objects.

Every protected endpoint passes through `get_device_context`, which
re-reads the restaurant's live status on each call. Tokens carry identity
only, so a license revoked after a token was issued takes effect at once.
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.db.session import get_db
from licensegate.exceptions import (
    AuthenticationError,
    DatabaseError,
    InsufficientRoleError,
    InvalidTokenError,
    LicenseGateError,
    RateLimitedError,
)
from licensegate.models.api import DeviceRole, RestaurantStatus
from licensegate.models.domain import DeviceContext
from licensegate.services.device_tokens import DeviceTokenService, get_token_service
from licensegate.services.lifecycle import LifecycleService, ensure_active
from licensegate.services.lockout import LockoutGuard, get_lockout_guard
from licensegate.services.pin_auth import PinAuthService, PinHasher, get_pin_hasher

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def to_http_exception(exc: LicenseGateError) -> HTTPException:
    """
    Translate a domain exception into its HTTP response.

    401 carries WWW-Authenticate, 429 carries Retry-After, and internal
    errors never expose their message.
    """
    headers: dict[str, str] | None = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    elif isinstance(exc, DatabaseError):
        logger.error("internal_error", error=str(exc))

    return HTTPException(status_code=exc.status_code, detail=exc.detail, headers=headers)


# ============================================================================
# Lifecycle Gate
# ============================================================================


async def get_device_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    tokens: DeviceTokenService = Depends(get_token_service),
) -> DeviceContext:
    """
    Authenticate the device and enforce the restaurant's live status.

    Raises:
        HTTPException(401): missing, invalid or expired token, or unknown restaurant
        HTTPException(403): restaurant status is not ACTIVE
    """
    try:
        if credentials is None or not credentials.credentials:
            logger.warning("device_auth_no_token")
            raise InvalidTokenError("Not authenticated")

        claims = tokens.verify(credentials.credentials)

        restaurant = await LifecycleService(db).get_by_id(claims.restaurant_id)
        if restaurant is None:
            logger.warning(
                "device_auth_unknown_restaurant",
                restaurant_id=str(claims.restaurant_id),
                device_id=claims.device_id,
            )
            raise InvalidTokenError()

        ensure_active(restaurant)

    except LicenseGateError as exc:
        raise to_http_exception(exc) from exc

    return DeviceContext(
        device_id=claims.device_id,
        role=claims.role,
        restaurant_id=restaurant.id,
        restaurant_status=RestaurantStatus(restaurant.status),
    )


def require_roles(*roles: DeviceRole) -> Callable[..., Awaitable[DeviceContext]]:
    """
    FastAPI dependency factory restricting an endpoint to device roles.

    Usage:
        @router.post("/security/verify-admin-pin")
        async def verify_admin_pin(
            device: DeviceContext = Depends(require_roles(DeviceRole.ADMIN)),
        ):
            pass
    """

    async def role_checker(
        device: DeviceContext = Depends(get_device_context),
    ) -> DeviceContext:
        if device.role not in roles:
            logger.warning(
                "device_role_forbidden",
                device_id=device.device_id,
                role=device.role.value,
            )
            exc = InsufficientRoleError(device.role.value, tuple(r.value for r in roles))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.detail)
        return device

    return role_checker


require_admin = require_roles(DeviceRole.ADMIN)


# ============================================================================
# Service wiring
# ============================================================================


def get_pin_auth_service(
    db: AsyncSession = Depends(get_db),
    hasher: PinHasher = Depends(get_pin_hasher),
    tokens: DeviceTokenService = Depends(get_token_service),
    lockout: LockoutGuard = Depends(get_lockout_guard),
) -> PinAuthService:
    """Build the PIN authenticator for the request's session."""
    return PinAuthService(db, hasher=hasher, tokens=tokens, lockout=lockout)
