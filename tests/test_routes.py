"""
Tests for the public API routes: activation, PIN setup, login, status and
health.
"""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient

from licensegate.models.api import CodeStatus, DeviceRole, RestaurantStatus

ADMIN_PIN = "123456"
KITCHEN_PIN = "4321"


# ============================================================================
# Activation
# ============================================================================


class TestActivateEndpoint:
    """POST /api/activate"""

    @pytest.mark.asyncio
    async def test_activate_then_reuse(self, client: AsyncClient, add_code):
        await add_code("X1-VALID", entity_name="Cafe Aurora")

        response = await client.post("/api/activate", json={"code": "X1-VALID"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["restaurantName"] == "Cafe Aurora"
        assert body["isRegistered"] is False
        assert body["restaurantId"]

        response = await client.post("/api/activate", json={"code": "X1-VALID"})

        assert response.status_code == 400
        assert response.json()["detail"] == "USED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields,reason",
        [
            ({"status": CodeStatus.INVALIDATED.value}, "REVOKED"),
            ({"expires_at": datetime(2020, 1, 1, tzinfo=UTC)}, "EXPIRED"),
            ({"is_used": True}, "USED"),
        ],
    )
    async def test_ineligible_codes(self, client: AsyncClient, add_code, fields, reason):
        await add_code("X1-VALID", **fields)

        response = await client.post("/api/activate", json={"code": "X1-VALID"})

        assert response.status_code == 400
        assert response.json()["detail"] == reason

    @pytest.mark.asyncio
    async def test_unknown_code(self, client: AsyncClient):
        response = await client.post("/api/activate", json={"code": "NOPE"})

        assert response.status_code == 400
        assert response.json()["detail"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client: AsyncClient):
        response = await client.post("/api/activate", json={"code": 42})

        assert response.status_code == 422


# ============================================================================
# PIN setup
# ============================================================================


class TestSetupPinEndpoint:
    """POST /api/setup-pin"""

    @pytest.mark.asyncio
    async def test_setup_returns_admin_token(self, client: AsyncClient, add_restaurant, token_service):
        restaurant = await add_restaurant(admin_pin=None, kitchen_pin=None)

        response = await client.post(
            "/api/setup-pin",
            json={"restaurantId": str(restaurant.id), "adminPin": "246810", "kitchenPin": "1357"},
        )

        assert response.status_code == 200
        claims = token_service.verify(response.json()["token"])
        assert claims.role == DeviceRole.ADMIN
        assert claims.restaurant_id == restaurant.id

    @pytest.mark.asyncio
    async def test_setup_twice(self, client: AsyncClient, add_restaurant):
        restaurant = await add_restaurant()

        response = await client.post(
            "/api/setup-pin", json={"restaurantId": str(restaurant.id), "adminPin": "246810"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "SETUP_ALREADY_COMPLETE"

    @pytest.mark.asyncio
    async def test_short_pin(self, client: AsyncClient, add_restaurant):
        restaurant = await add_restaurant(admin_pin=None, kitchen_pin=None)

        response = await client.post(
            "/api/setup-pin", json={"restaurantId": str(restaurant.id), "adminPin": "12"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, client: AsyncClient):
        response = await client.post(
            "/api/setup-pin",
            json={"restaurantId": "00000000-0000-0000-0000-000000000000", "adminPin": "246810"},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_revoked_restaurant(self, client: AsyncClient, add_restaurant):
        restaurant = await add_restaurant(
            admin_pin=None, kitchen_pin=None, status=RestaurantStatus.REVOKED
        )

        response = await client.post(
            "/api/setup-pin", json={"restaurantId": str(restaurant.id), "adminPin": "246810"}
        )

        assert response.status_code == 403


# ============================================================================
# Login
# ============================================================================


class TestLoginEndpoint:
    """POST /api/auth/login"""

    @pytest.mark.asyncio
    async def test_login(self, client: AsyncClient, add_restaurant):
        await add_restaurant()

        response = await client.post(
            "/api/auth/login", json={"pin": KITCHEN_PIN, "role": "KITCHEN", "deviceId": "kds-1"}
        )

        assert response.status_code == 200
        assert response.json()["role"] == "KITCHEN"
        assert response.json()["token"]

    @pytest.mark.asyncio
    async def test_wrong_pin_then_lockout(self, client: AsyncClient, add_restaurant, clock):
        await add_restaurant()
        body = {"pin": "000000", "role": "ADMIN", "deviceId": "tablet-1"}

        first = await client.post("/api/auth/login", json=body)
        second = await client.post("/api/auth/login", json=body)
        third = await client.post("/api/auth/login", json=body)

        assert first.status_code == 401
        assert first.json()["detail"] == "Invalid PIN"
        assert first.headers["WWW-Authenticate"] == "Bearer"
        assert second.status_code == 401
        assert third.status_code == 429
        assert third.headers["Retry-After"] == "300"

        clock.advance(minutes=6)
        response = await client.post(
            "/api/auth/login", json={"pin": ADMIN_PIN, "role": "ADMIN", "deviceId": "tablet-1"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_not_activated(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/login", json={"pin": ADMIN_PIN, "role": "ADMIN", "deviceId": "tablet-1"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "NOT_ACTIVATED"

    @pytest.mark.asyncio
    async def test_setup_incomplete(self, client: AsyncClient, add_restaurant):
        await add_restaurant(admin_pin=None, kitchen_pin=None)

        response = await client.post(
            "/api/auth/login", json={"pin": ADMIN_PIN, "role": "ADMIN", "deviceId": "tablet-1"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "SETUP_INCOMPLETE"

    @pytest.mark.asyncio
    async def test_validation_error_does_not_echo_pin(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/login", json={"pin": "987654", "role": "OWNER", "deviceId": "tablet-1"}
        )

        assert response.status_code == 422
        assert "987654" not in response.text


# ============================================================================
# Status and health
# ============================================================================


class TestSystemStatusEndpoint:
    """GET /api/system/status"""

    @pytest.mark.asyncio
    async def test_not_activated(self, client: AsyncClient):
        response = await client.get("/api/system/status")

        assert response.status_code == 200
        body = response.json()
        assert body["activated"] is False
        assert body["setupComplete"] is False
        assert body["forceActivation"] is False
        assert body["message"] == "System not activated"

    @pytest.mark.asyncio
    async def test_setup_required(self, client: AsyncClient, add_restaurant):
        restaurant = await add_restaurant(admin_pin=None, kitchen_pin=None)

        body = (await client.get("/api/system/status")).json()

        assert body["activated"] is True
        assert body["setupComplete"] is False
        assert body["restaurantId"] == str(restaurant.id)
        assert body["message"] == "PIN setup required"

    @pytest.mark.asyncio
    async def test_ready(self, client: AsyncClient, add_restaurant):
        await add_restaurant()

        body = (await client.get("/api/system/status")).json()

        assert body["setupComplete"] is True
        assert body["status"] == "ACTIVE"
        assert body["message"] == "System ready"

    @pytest.mark.asyncio
    async def test_spare_activation_keeps_configured_install(
        self, client: AsyncClient, add_code, add_restaurant
    ):
        configured = await add_restaurant(created_at=datetime(2025, 1, 1, tzinfo=UTC))
        await add_code("SPARE-1")
        assert (await client.post("/api/activate", json={"code": "SPARE-1"})).status_code == 200

        body = (await client.get("/api/system/status")).json()
        login = await client.post(
            "/api/auth/login",
            json={"pin": ADMIN_PIN, "role": DeviceRole.ADMIN.value, "deviceId": "tablet-1"},
        )

        assert body["restaurantId"] == str(configured.id)
        assert body["setupComplete"] is True
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_revoked_forces_activation(self, client: AsyncClient, add_restaurant):
        await add_restaurant(admin_pin=None, kitchen_pin=None, status=RestaurantStatus.REVOKED)

        body = (await client.get("/api/system/status")).json()

        assert body["activated"] is True
        assert body["forceActivation"] is True
        assert body["resetReason"] == "License is REVOKED"
        assert body["message"] == "License is REVOKED"


class TestHealthEndpoint:
    """GET /health"""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert datetime.fromisoformat(body["timestamp"]) > datetime.now(UTC) - timedelta(minutes=1)
