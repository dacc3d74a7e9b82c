"""
Tests for kitchen PIN rotation.
"""

import pytest
from sqlalchemy import select, update

from licensegate.db.models import AuditLog, Restaurant
from licensegate.exceptions import (
    InvalidPinError,
    InvalidRequestError,
    RateLimitedError,
    RestaurantNotActiveError,
)
from licensegate.models.api import AuditAction, DeviceRole, RestaurantStatus
from licensegate.services.credentials import CredentialService
from licensegate.services.lockout import admin_pin_identifier

ADMIN_PIN = "123456"
KITCHEN_PIN = "4321"


@pytest.fixture
def credentials(db_session, pin_auth) -> CredentialService:
    return CredentialService(db_session, pin_auth)


async def _audit_actions(session_factory) -> list[str]:
    async with session_factory() as session:
        result = await session.execute(select(AuditLog.action).order_by(AuditLog.timestamp))
        return list(result.scalars().all())


class TestUpdateKitchenPin:
    """Rotation requires the admin PIN in the same call."""

    @pytest.mark.asyncio
    async def test_rotation(self, credentials, add_restaurant, pin_auth, session_factory):
        restaurant = await add_restaurant()

        await credentials.update_kitchen_pin(restaurant.id, ADMIN_PIN, "8642", "tablet-1")

        session = await pin_auth.login("8642", DeviceRole.KITCHEN, "kds-1")
        assert session.role == DeviceRole.KITCHEN
        with pytest.raises(InvalidPinError):
            await pin_auth.login(KITCHEN_PIN, DeviceRole.KITCHEN, "kds-1")

        assert AuditAction.KITCHEN_PIN_RESET.value in await _audit_actions(session_factory)

    @pytest.mark.asyncio
    async def test_first_kitchen_pin_can_be_set(self, credentials, add_restaurant, fetch_restaurant):
        restaurant = await add_restaurant(kitchen_pin=None)

        await credentials.update_kitchen_pin(restaurant.id, ADMIN_PIN, "8642", "tablet-1")

        assert (await fetch_restaurant(restaurant.id)).kitchen_pin_hash is not None

    @pytest.mark.asyncio
    async def test_wrong_admin_pin_leaves_hash(
        self, credentials, add_restaurant, fetch_restaurant, session_factory
    ):
        restaurant = await add_restaurant()
        before = (await fetch_restaurant(restaurant.id)).kitchen_pin_hash

        with pytest.raises(InvalidPinError):
            await credentials.update_kitchen_pin(restaurant.id, "000000", "8642", "tablet-1")

        assert (await fetch_restaurant(restaurant.id)).kitchen_pin_hash == before
        assert await _audit_actions(session_factory) == [AuditAction.KITCHEN_PIN_RESET_FAILED.value]

    @pytest.mark.asyncio
    async def test_short_new_pin(self, credentials, add_restaurant, fetch_restaurant):
        restaurant = await add_restaurant()
        before = (await fetch_restaurant(restaurant.id)).kitchen_pin_hash

        with pytest.raises(InvalidRequestError):
            await credentials.update_kitchen_pin(restaurant.id, ADMIN_PIN, "12", "tablet-1")

        assert (await fetch_restaurant(restaurant.id)).kitchen_pin_hash == before

    @pytest.mark.asyncio
    async def test_prior_verification_grants_nothing(
        self, credentials, add_restaurant, pin_auth, fetch_restaurant
    ):
        """A successful verify-admin-pin does not authorize a later rotation."""
        restaurant = await add_restaurant()
        before = (await fetch_restaurant(restaurant.id)).kitchen_pin_hash
        await pin_auth.confirm_admin_pin(restaurant.id, ADMIN_PIN, "tablet-1")

        with pytest.raises(InvalidPinError):
            await credentials.update_kitchen_pin(restaurant.id, "", "8642", "tablet-1")

        assert (await fetch_restaurant(restaurant.id)).kitchen_pin_hash == before

    @pytest.mark.asyncio
    async def test_lockout_shared_with_verification(self, credentials, add_restaurant, pin_auth):
        restaurant = await add_restaurant()

        for _ in range(2):
            with pytest.raises(InvalidPinError):
                await pin_auth.confirm_admin_pin(restaurant.id, "000000", "tablet-1")

        with pytest.raises(RateLimitedError):
            await credentials.update_kitchen_pin(restaurant.id, "000000", "8642", "tablet-1")

        with pytest.raises(RateLimitedError):
            await credentials.update_kitchen_pin(restaurant.id, ADMIN_PIN, "8642", "tablet-1")

    @pytest.mark.asyncio
    async def test_inactive_restaurant(self, credentials, add_restaurant):
        restaurant = await add_restaurant(status=RestaurantStatus.SUSPENDED)

        with pytest.raises(RestaurantNotActiveError):
            await credentials.update_kitchen_pin(restaurant.id, ADMIN_PIN, "8642", "tablet-1")

    @pytest.mark.asyncio
    async def test_wrong_admin_pin_checked_before_new_pin_policy(
        self, credentials, add_restaurant, lockout, session_factory
    ):
        """A malformed new PIN does not hide a wrong admin PIN from the lockout."""
        restaurant = await add_restaurant()

        with pytest.raises(InvalidPinError):
            await credentials.update_kitchen_pin(restaurant.id, "000000", "12", "tablet-1")

        assert lockout.failed_attempts(admin_pin_identifier(restaurant.id)) == 1
        assert await _audit_actions(session_factory) == [AuditAction.KITCHEN_PIN_RESET_FAILED.value]

    @pytest.mark.asyncio
    async def test_revocation_between_check_and_write_wins(
        self, credentials, add_restaurant, pin_auth, fetch_restaurant, session_factory, monkeypatch
    ):
        restaurant = await add_restaurant()
        before = (await fetch_restaurant(restaurant.id)).kitchen_pin_hash
        verify = pin_auth.verify_admin_pin

        async def verify_then_revoke(*args, **kwargs):
            verified = await verify(*args, **kwargs)
            async with session_factory() as other:
                await other.execute(
                    update(Restaurant)
                    .where(Restaurant.id == restaurant.id)
                    .values(status=RestaurantStatus.REVOKED.value)
                )
                await other.commit()
            return verified

        monkeypatch.setattr(pin_auth, "verify_admin_pin", verify_then_revoke)

        with pytest.raises(RestaurantNotActiveError):
            await credentials.update_kitchen_pin(restaurant.id, ADMIN_PIN, "8642", "tablet-1")

        after = await fetch_restaurant(restaurant.id)
        assert after.status == RestaurantStatus.REVOKED.value
        assert after.kitchen_pin_hash == before
        assert AuditAction.KITCHEN_PIN_RESET.value not in await _audit_actions(session_factory)
