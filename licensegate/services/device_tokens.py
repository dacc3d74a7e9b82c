"""
Device Token Service.

Signs and verifies the long-lived device credentials issued after setup and
login. Tokens carry identity only ({deviceId, role, restaurantId}); the
restaurant's status is never embedded and is always checked live.
"""

import hashlib
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from structlog import get_logger

from licensegate.config import settings
from licensegate.exceptions import InvalidTokenError
from licensegate.models.api import DeviceRole
from licensegate.models.domain import DeviceClaims

logger = get_logger(__name__)

ALGORITHM = "HS256"


def token_fingerprint(token: str) -> str:
    """Short SHA-256 prefix, safe to log."""
    return hashlib.sha256(token.encode()).hexdigest()[:16]


class DeviceTokenService:
    """Issues and verifies HS256 device tokens."""

    def __init__(self, secret: str, ttl: timedelta = timedelta(days=30)) -> None:
        self.secret = secret
        self.ttl = ttl

    def issue(self, claims: DeviceClaims, now: datetime | None = None) -> str:
        """Create a signed token for a device."""
        now = now or datetime.now(UTC)
        payload = {
            "sub": claims.device_id,
            "deviceId": claims.device_id,
            "role": claims.role.value,
            "restaurantId": str(claims.restaurant_id),
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> DeviceClaims:
        """
        Verify signature and expiry and return the embedded claims.

        Raises:
            InvalidTokenError: token is expired, tampered with or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "iat", "deviceId", "role", "restaurantId"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("device_token_expired", token_hash=token_fingerprint(token))
            raise InvalidTokenError("Token expired")
        except jwt.InvalidTokenError as e:
            logger.warning(
                "device_token_invalid", token_hash=token_fingerprint(token), error=str(e)
            )
            raise InvalidTokenError()

        try:
            return DeviceClaims(
                device_id=str(payload["deviceId"]),
                role=DeviceRole(payload["role"]),
                restaurant_id=UUID(str(payload["restaurantId"])),
            )
        except ValueError as e:
            logger.warning(
                "device_token_claims_invalid", token_hash=token_fingerprint(token), error=str(e)
            )
            raise InvalidTokenError()


_token_service: DeviceTokenService | None = None


def get_token_service() -> DeviceTokenService:
    """Get the process-wide token service (FastAPI dependency)."""
    global _token_service
    if _token_service is None:
        _token_service = DeviceTokenService(
            secret=settings.DEVICE_JWT_SECRET,
            ttl=timedelta(days=settings.device_token_ttl_days),
        )
    return _token_service
