"""
Security API routes - admin PIN re-verification, kitchen PIN rotation and
license revocation.

All endpoints require an ADMIN device behind the Lifecycle Gate, and each
one checks the admin PIN again in the same request.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.api.dependencies import get_pin_auth_service, require_admin, to_http_exception
from licensegate.db.session import get_db
from licensegate.exceptions import LicenseGateError
from licensegate.models.api import (
    AdminPinRequest,
    SuccessResponse,
    UpdateKitchenPinRequest,
    VerifyAdminPinResponse,
)
from licensegate.models.domain import DeviceContext
from licensegate.services.credentials import CredentialService
from licensegate.services.pin_auth import PinAuthService
from licensegate.services.revocation import RevocationService

logger = get_logger(__name__)
router = APIRouter(prefix="/api/security", tags=["security"])


@router.post("/verify-admin-pin", response_model=VerifyAdminPinResponse)
async def verify_admin_pin(
    request: AdminPinRequest,
    device: DeviceContext = Depends(require_admin),
    pin_auth: PinAuthService = Depends(get_pin_auth_service),
) -> VerifyAdminPinResponse:
    """
    Check the admin PIN.

    Grants no token and stores no state; the PIN itself remains the only
    capability for the follow-up operation.
    """
    try:
        await pin_auth.confirm_admin_pin(
            device.restaurant_id, request.admin_pin, device.device_id
        )
    except LicenseGateError as exc:
        raise to_http_exception(exc) from exc

    return VerifyAdminPinResponse(verified=True)


@router.post("/update-kitchen-pin", response_model=SuccessResponse)
async def update_kitchen_pin(
    request: UpdateKitchenPinRequest,
    device: DeviceContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    pin_auth: PinAuthService = Depends(get_pin_auth_service),
) -> SuccessResponse:
    """Rotate the kitchen PIN after re-verifying the admin PIN."""
    service = CredentialService(db, pin_auth)

    try:
        await service.update_kitchen_pin(
            restaurant_id=device.restaurant_id,
            admin_pin=request.admin_pin,
            new_kitchen_pin=request.new_kitchen_pin,
            device_id=device.device_id,
        )
    except LicenseGateError as exc:
        raise to_http_exception(exc) from exc

    return SuccessResponse()


@router.post("/revoke-activation", response_model=SuccessResponse)
async def revoke_activation(
    request: AdminPinRequest,
    device: DeviceContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    pin_auth: PinAuthService = Depends(get_pin_auth_service),
) -> SuccessResponse:
    """
    Revoke the license and wipe operational data.

    Irreversible. Runs as one transaction; on failure nothing changes.
    """
    service = RevocationService(db, pin_auth)

    try:
        await service.revoke_activation(
            restaurant_id=device.restaurant_id,
            admin_pin=request.admin_pin,
            device_id=device.device_id,
        )
    except LicenseGateError as exc:
        raise to_http_exception(exc) from exc

    return SuccessResponse()
