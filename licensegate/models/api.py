"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.

Request bodies use strict types: a PIN sent as a number or a flag sent as
the string "false" is rejected rather than coerced.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class CodeStatus(str, Enum):
    """Activation code status enumeration."""

    ACTIVE = "ACTIVE"
    USED = "USED"
    INVALIDATED = "INVALIDATED"
    EXPIRED = "EXPIRED"


class RestaurantStatus(str, Enum):
    """Restaurant (installation) status enumeration."""

    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    REVOKED = "REVOKED"
    INACTIVE = "INACTIVE"


class DeviceRole(str, Enum):
    """Role a device is authorized for."""

    ADMIN = "ADMIN"
    KITCHEN = "KITCHEN"


class EligibilityReason(str, Enum):
    """Outcome reason of the activation code eligibility engine."""

    VALID = "VALID"
    USED = "USED"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"
    NOT_FOUND = "NOT_FOUND"


class AuditAction(str, Enum):
    """Security-sensitive actions recorded in the audit log."""

    RESTAURANT_ACTIVATED = "RESTAURANT_ACTIVATED"
    ACTIVATION_REJECTED = "ACTIVATION_REJECTED"
    PIN_SETUP_COMPLETED = "PIN_SETUP_COMPLETED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    ADMIN_PIN_VERIFIED = "ADMIN_PIN_VERIFIED"
    ADMIN_PIN_VERIFY_FAILED = "ADMIN_PIN_VERIFY_FAILED"
    KITCHEN_PIN_RESET = "KITCHEN_PIN_RESET"
    KITCHEN_PIN_RESET_FAILED = "KITCHEN_PIN_RESET_FAILED"
    ACTIVATION_REVOKED = "ACTIVATION_REVOKED"
    ACTIVATION_REVOKE_FAILED = "ACTIVATION_REVOKE_FAILED"
    ACTIVATION_CODES_ISSUED = "ACTIVATION_CODES_ISSUED"
    ACTIVATION_CODE_RESET = "ACTIVATION_CODE_RESET"


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases on the wire."""

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Activation Models
# ============================================================================


class ActivateRequest(CamelModel):
    """POST /api/activate request body."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    code: StrictStr = Field(..., min_length=1, max_length=64)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        """Codes are issued upper-case; tolerate stray whitespace and case."""
        normalized = v.strip().upper()
        if not normalized:
            raise ValueError("code cannot be blank")
        return normalized


class ActivateResponse(CamelModel):
    """POST /api/activate response."""

    success: bool = True
    restaurant_id: UUID = Field(..., alias="restaurantId")
    restaurant_name: str = Field(..., alias="restaurantName")
    is_registered: bool = Field(False, alias="isRegistered")


# ============================================================================
# PIN Setup / Login Models
# ============================================================================


class SetupPinRequest(CamelModel):
    """POST /api/setup-pin request body."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    restaurant_id: UUID = Field(..., alias="restaurantId")
    admin_pin: StrictStr = Field(..., alias="adminPin", min_length=1)
    kitchen_pin: StrictStr | None = Field(None, alias="kitchenPin", min_length=1)
    device_id: StrictStr | None = Field(None, alias="deviceId", min_length=1, max_length=255)


class TokenResponse(CamelModel):
    """Response carrying a freshly issued device token."""

    success: bool = True
    token: str


class LoginRequest(CamelModel):
    """POST /api/auth/login request body."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    pin: StrictStr = Field(..., min_length=1)
    role: DeviceRole
    device_id: StrictStr = Field(..., alias="deviceId", min_length=1, max_length=255)


class LoginResponse(CamelModel):
    """POST /api/auth/login response."""

    success: bool = True
    token: str
    role: DeviceRole


# ============================================================================
# Security Models
# ============================================================================


class AdminPinRequest(CamelModel):
    """Body for operations that re-verify the admin PIN."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    admin_pin: StrictStr = Field(..., alias="adminPin", min_length=1)


class UpdateKitchenPinRequest(AdminPinRequest):
    """POST /api/security/update-kitchen-pin request body."""

    new_kitchen_pin: StrictStr = Field(..., alias="newKitchenPin", min_length=1)


class VerifyAdminPinResponse(CamelModel):
    """POST /api/security/verify-admin-pin response."""

    success: bool = True
    verified: bool = True


class SuccessResponse(CamelModel):
    """Generic success acknowledgement."""

    success: bool = True


# ============================================================================
# System Status Models
# ============================================================================


class SystemStatusResponse(CamelModel):
    """GET /api/system/status response."""

    activated: bool
    setup_complete: bool = Field(..., alias="setupComplete")
    status: RestaurantStatus | None = None
    restaurant_id: UUID | None = Field(None, alias="restaurantId")
    force_activation: bool = Field(..., alias="forceActivation")
    reset_reason: str | None = Field(None, alias="resetReason")
    message: str


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    timestamp: str


# ============================================================================
# Admin Views
# ============================================================================


class ActivationCodeItem(CamelModel):
    """One row of the activation code ledger with computed eligibility."""

    id: UUID
    code: str
    status: CodeStatus
    entity_name: str | None = Field(None, alias="entityName")
    plan: str | None = None
    expires_at: str | None = Field(None, alias="expiresAt")
    used_at: str | None = Field(None, alias="usedAt")
    restaurant_id: UUID | None = Field(None, alias="restaurantId")
    eligible: bool
    reason: EligibilityReason


class ActivationCodeListResponse(CamelModel):
    """GET /api/admin/activation-codes response."""

    codes: list[ActivationCodeItem]
    total: int


class DeviceItem(CamelModel):
    """A registered device."""

    device_id: str = Field(..., alias="deviceId")
    role: DeviceRole
    last_used: str = Field(..., alias="lastUsed")
    created_at: str = Field(..., alias="createdAt")


class DeviceListResponse(CamelModel):
    """GET /api/admin/devices response."""

    devices: list[DeviceItem]


class AuditLogItem(CamelModel):
    """An audit log entry."""

    id: UUID
    action: str
    actor: str
    target: str | None = None
    details: str | None = None
    timestamp: str


class AuditLogListResponse(CamelModel):
    """GET /api/admin/audit-logs response."""

    entries: list[AuditLogItem]
