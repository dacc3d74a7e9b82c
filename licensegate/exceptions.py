"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.

Every exception carries the HTTP status it maps to and a public detail
string that is safe to return to the caller.
"""

from uuid import UUID

from licensegate.models.api import EligibilityReason


class LicenseGateError(Exception):
    """Base exception for all license and device authorization errors."""

    status_code: int = 500
    detail: str = "Internal Server Error"


# ============================================================================
# Validation (400)
# ============================================================================


class InvalidRequestError(LicenseGateError):
    """Raised when input is malformed in a way the schema cannot express."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        self.detail = message
        super().__init__(f"Invalid request: {message}")


class ActivationCodeIneligibleError(LicenseGateError):
    """Raised when an activation code may not activate an installation."""

    status_code = 400

    def __init__(self, code: str, reason: EligibilityReason) -> None:
        self.code = code
        self.reason = reason
        self.detail = reason.value
        super().__init__(f"Activation code {code} is not eligible: {reason.value}")


class SetupAlreadyCompleteError(LicenseGateError):
    """Raised when PIN setup is attempted on a configured restaurant."""

    status_code = 400
    detail = "SETUP_ALREADY_COMPLETE"

    def __init__(self, restaurant_id: UUID) -> None:
        self.restaurant_id = restaurant_id
        super().__init__(f"Restaurant {restaurant_id} already has PINs configured")


class NotActivatedError(LicenseGateError):
    """Raised when no restaurant has been activated on this terminal."""

    status_code = 400
    detail = "NOT_ACTIVATED"

    def __init__(self) -> None:
        super().__init__("System not activated")


class SetupIncompleteError(LicenseGateError):
    """Raised when login is attempted before PIN setup."""

    status_code = 400
    detail = "SETUP_INCOMPLETE"

    def __init__(self, restaurant_id: UUID) -> None:
        self.restaurant_id = restaurant_id
        super().__init__(f"Restaurant {restaurant_id} has not completed PIN setup")


# ============================================================================
# Authentication (401)
# ============================================================================


class AuthenticationError(LicenseGateError):
    """Raised when authentication fails (invalid token, invalid credentials)."""

    status_code = 401

    def __init__(self, message: str) -> None:
        self.message = message
        self.detail = message
        super().__init__(f"Authentication failed: {message}")


class InvalidPinError(AuthenticationError):
    """Raised when a PIN does not match. Never reveals which role was tried."""

    def __init__(self) -> None:
        super().__init__("Invalid PIN")


class InvalidTokenError(AuthenticationError):
    """Raised when a device token is missing, malformed or expired."""

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


# ============================================================================
# Authorization (403)
# ============================================================================


class AuthorizationError(LicenseGateError):
    """Raised when the caller is authenticated but may not act."""

    status_code = 403

    def __init__(self, message: str) -> None:
        self.message = message
        self.detail = message
        super().__init__(f"Authorization failed: {message}")


class RestaurantNotActiveError(AuthorizationError):
    """Raised when the restaurant's live status is not ACTIVE."""

    def __init__(self, restaurant_id: UUID, status: str) -> None:
        self.restaurant_id = restaurant_id
        self.status = status
        super().__init__("Access Denied: Restaurant is not active")


class InsufficientRoleError(AuthorizationError):
    """Raised when the device role is not permitted for an endpoint."""

    def __init__(self, role: str, allowed: tuple[str, ...]) -> None:
        self.role = role
        self.allowed = allowed
        super().__init__("Forbidden: Insufficient permissions")


# ============================================================================
# Not found (404) / Rate limited (429) / Internal (500)
# ============================================================================


class ResourceNotFoundError(LicenseGateError):
    """Raised when a referenced entity does not exist."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.detail = f"{resource_type} not found"
        super().__init__(f"{resource_type} not found: {resource_id}")


class RateLimitedError(LicenseGateError):
    """Raised when an identifier is locked out after repeated failures."""

    status_code = 429

    def __init__(self, identifier: str, retry_after_seconds: int) -> None:
        self.identifier = identifier
        self.retry_after_seconds = retry_after_seconds
        self.detail = f"Too many failed attempts. Try again in {retry_after_seconds} seconds"
        super().__init__(f"Identifier {identifier} locked for {retry_after_seconds}s")


class DatabaseError(LicenseGateError):
    """Raised when a storage operation or transaction fails unexpectedly."""

    status_code = 500
    detail = "Internal Server Error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Database error: {message}")
