"""
API Routes - Activation, PIN setup, login and terminal status.

NO DICTIONARIES - All requests/responses use Pydantic models.

These endpoints run before a device holds a token, so none of them is
behind the Lifecycle Gate.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.api.dependencies import get_pin_auth_service, to_http_exception
from licensegate.db.session import get_db
from licensegate.exceptions import LicenseGateError
from licensegate.models.api import (
    ActivateRequest,
    ActivateResponse,
    HealthResponse,
    LoginRequest,
    LoginResponse,
    SetupPinRequest,
    SystemStatusResponse,
    TokenResponse,
)
from licensegate.services.activation import ActivationService
from licensegate.services.lifecycle import LifecycleService
from licensegate.services.pin_auth import PinAuthService

logger = get_logger(__name__)

router = APIRouter()


@router.post("/api/activate", response_model=ActivateResponse, tags=["activation"])
async def activate(
    request: ActivateRequest,
    db: AsyncSession = Depends(get_db),
) -> ActivateResponse:
    """
    Redeem an activation code and create the restaurant.

    Returns 400 with the rejection reason (NOT_FOUND, USED, REVOKED, EXPIRED)
    when the code may not be used.
    """
    service = ActivationService(db)

    try:
        result = await service.activate(request.code)
    except LicenseGateError as exc:
        raise to_http_exception(exc) from exc

    return ActivateResponse(
        restaurant_id=result.restaurant_id,
        restaurant_name=result.restaurant_name,
        is_registered=False,
    )


@router.post("/api/setup-pin", response_model=TokenResponse, tags=["auth"])
async def setup_pin(
    request: SetupPinRequest,
    pin_auth: PinAuthService = Depends(get_pin_auth_service),
) -> TokenResponse:
    """
    Configure the admin (and optionally kitchen) PIN of a new restaurant.

    Only possible once; returns an ADMIN device token.
    """
    try:
        session = await pin_auth.setup(
            restaurant_id=request.restaurant_id,
            admin_pin=request.admin_pin,
            kitchen_pin=request.kitchen_pin,
            device_id=request.device_id,
        )
    except LicenseGateError as exc:
        raise to_http_exception(exc) from exc

    return TokenResponse(token=session.token)


@router.post("/api/auth/login", response_model=LoginResponse, tags=["auth"])
async def login(
    request: LoginRequest,
    pin_auth: PinAuthService = Depends(get_pin_auth_service),
) -> LoginResponse:
    """
    Exchange a role PIN for a 30-day device token.

    Repeated failures lock the restaurant's login for a while (429).
    """
    try:
        session = await pin_auth.login(
            pin=request.pin, role=request.role, device_id=request.device_id
        )
    except LicenseGateError as exc:
        raise to_http_exception(exc) from exc

    return LoginResponse(token=session.token, role=session.role)


@router.get("/api/system/status", response_model=SystemStatusResponse, tags=["status"])
async def system_status(db: AsyncSession = Depends(get_db)) -> SystemStatusResponse:
    """
    Activation and setup state of this terminal.

    Front-ends poll this; `forceActivation` tells them to return to the
    activation screen because the license is no longer live.
    """
    report = await LifecycleService(db).system_status()

    if not report.activated:
        message = "System not activated"
    elif report.force_activation:
        message = report.reset_reason or "License is not active"
    elif not report.setup_complete:
        message = "PIN setup required"
    else:
        message = "System ready"

    return SystemStatusResponse(
        activated=report.activated,
        setup_complete=report.setup_complete,
        status=report.status,
        restaurant_id=report.restaurant_id,
        force_activation=report.force_activation,
        reset_reason=report.reset_reason,
        message=message,
    )


@router.get("/health", response_model=HealthResponse, tags=["status"])
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))

        return HealthResponse(
            status="healthy",
            database="connected",
            timestamp=datetime.now(UTC).isoformat(),
        )

    except Exception as exc:
        logger.error("health_check_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc
