"""
Credential Rotation Service.

Kitchen PIN rotation re-verifies the admin PIN inside the same request.
A previous successful `verify-admin-pin` call is never taken into account.
"""

from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.db.models import Restaurant, utc_now
from licensegate.exceptions import ResourceNotFoundError, RestaurantNotActiveError
from licensegate.models.api import AuditAction, DeviceRole, RestaurantStatus
from licensegate.services.audit import AuditLogger
from licensegate.services.pin_auth import PinAuthService, validate_pin

logger = get_logger(__name__)


class CredentialService:
    """Rotates role PINs behind a fresh admin PIN check."""

    def __init__(self, session: AsyncSession, pin_auth: PinAuthService) -> None:
        self.session = session
        self.pin_auth = pin_auth
        self.audit = AuditLogger(session)

    async def update_kitchen_pin(
        self,
        restaurant_id: UUID,
        admin_pin: str,
        new_kitchen_pin: str,
        device_id: str,
    ) -> None:
        """
        Replace the kitchen PIN.

        The admin PIN is checked before the new PIN, so a wrong admin PIN is
        always counted and audited. The write only lands while the restaurant
        is still ACTIVE; a revocation committed in between wins.

        Raises:
            InvalidPinError / RateLimitedError: admin PIN check failed
                (kitchen_pin_hash is left untouched)
            InvalidRequestError: new PIN violates the PIN policy
            RestaurantNotActiveError: restaurant left ACTIVE before the write
        """
        await self.pin_auth.verify_admin_pin(
            restaurant_id,
            admin_pin,
            device_id,
            failure_action=AuditAction.KITCHEN_PIN_RESET_FAILED,
            operation="update_kitchen_pin",
        )
        validate_pin(new_kitchen_pin, DeviceRole.KITCHEN)

        stmt = (
            update(Restaurant)
            .where(
                Restaurant.id == restaurant_id,
                Restaurant.status == RestaurantStatus.ACTIVE.value,
            )
            .values(
                kitchen_pin_hash=self.pin_auth.hasher.hash(new_kitchen_pin),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            await self.session.rollback()
            current = await self.pin_auth.lifecycle.get_by_id(restaurant_id)
            if current is None:
                raise ResourceNotFoundError("Restaurant", str(restaurant_id))
            logger.warning(
                "kitchen_pin_rotation_lost",
                restaurant_id=str(restaurant_id),
                status=current.status,
            )
            raise RestaurantNotActiveError(restaurant_id, current.status)

        await self.audit.record(
            AuditAction.KITCHEN_PIN_RESET,
            actor=device_id,
            target=str(restaurant_id),
        )
        await self.session.commit()

        logger.info(
            "kitchen_pin_rotated", restaurant_id=str(restaurant_id), device_id=device_id
        )
