"""
Admin API routes - read-only views of the code ledger, device registry and
audit trail.

Protected by an ADMIN device token behind the Lifecycle Gate. Issuing and
resetting codes is done with scripts/manage_codes.py, not over HTTP.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.api.dependencies import require_admin
from licensegate.db.session import get_db
from licensegate.models.api import (
    ActivationCodeItem,
    ActivationCodeListResponse,
    AuditLogItem,
    AuditLogListResponse,
    CodeStatus,
    DeviceItem,
    DeviceListResponse,
    DeviceRole,
)
from licensegate.models.domain import DeviceContext
from licensegate.services.activation import ActivationService
from licensegate.services.audit import AuditLogger
from licensegate.services.pin_auth import DeviceRegistry

logger = get_logger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@router.get("/activation-codes", response_model=ActivationCodeListResponse)
async def list_activation_codes(
    device: DeviceContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ActivationCodeListResponse:
    """Every activation code with its eligibility, newest first."""
    rows = await ActivationService(db).list_codes()

    codes = [
        ActivationCodeItem(
            id=code.id,
            code=code.code,
            status=CodeStatus(code.status),
            entity_name=code.entity_name,
            plan=code.plan,
            expires_at=_iso(code.expires_at),
            used_at=_iso(code.used_at),
            restaurant_id=code.restaurant.id if code.restaurant else None,
            eligible=eligibility.eligible,
            reason=eligibility.reason,
        )
        for code, eligibility in rows
    ]

    logger.info("activation_codes_listed", device_id=device.device_id, count=len(codes))
    return ActivationCodeListResponse(codes=codes, total=len(codes))


@router.get("/devices", response_model=DeviceListResponse)
async def list_devices(
    device: DeviceContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> DeviceListResponse:
    """Devices registered to the caller's restaurant, most recently used first."""
    devices = await DeviceRegistry(db).list_for_restaurant(device.restaurant_id)

    return DeviceListResponse(
        devices=[
            DeviceItem(
                device_id=d.device_id,
                role=DeviceRole(d.role),
                last_used=d.last_used.isoformat(),
                created_at=d.created_at.isoformat(),
            )
            for d in devices
        ]
    )


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    limit: int = Query(50, ge=1, le=500, description="Maximum entries to return"),
    device: DeviceContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    """Most recent audit entries first."""
    entries = await AuditLogger(db).list_recent(limit)

    return AuditLogListResponse(
        entries=[
            AuditLogItem(
                id=e.id,
                action=e.action,
                actor=e.actor,
                target=e.target,
                details=e.details,
                timestamp=e.timestamp.isoformat(),
            )
            for e in entries
        ]
    )
