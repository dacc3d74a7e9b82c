"""
Tests for the exception hierarchy and its HTTP mapping.
"""

from uuid import uuid4

import pytest

from licensegate.api.dependencies import to_http_exception
from licensegate.exceptions import (
    ActivationCodeIneligibleError,
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    InsufficientRoleError,
    InvalidPinError,
    InvalidRequestError,
    InvalidTokenError,
    LicenseGateError,
    NotActivatedError,
    RateLimitedError,
    ResourceNotFoundError,
    RestaurantNotActiveError,
    SetupAlreadyCompleteError,
    SetupIncompleteError,
)
from licensegate.models.api import EligibilityReason


class TestStatusCodes:
    """Each exception carries the status it maps to."""

    @pytest.mark.parametrize(
        "exc,status_code,detail",
        [
            (InvalidRequestError("bad"), 400, "bad"),
            (ActivationCodeIneligibleError("X", EligibilityReason.EXPIRED), 400, "EXPIRED"),
            (SetupAlreadyCompleteError(uuid4()), 400, "SETUP_ALREADY_COMPLETE"),
            (NotActivatedError(), 400, "NOT_ACTIVATED"),
            (SetupIncompleteError(uuid4()), 400, "SETUP_INCOMPLETE"),
            (InvalidPinError(), 401, "Invalid PIN"),
            (InvalidTokenError(), 401, "Invalid or expired token"),
            (RestaurantNotActiveError(uuid4(), "REVOKED"), 403, "Access Denied: Restaurant is not active"),
            (InsufficientRoleError("KITCHEN", ("ADMIN",)), 403, "Forbidden: Insufficient permissions"),
            (ResourceNotFoundError("Restaurant", "x"), 404, "Restaurant not found"),
            (RateLimitedError("login:x", 120), 429, "Too many failed attempts. Try again in 120 seconds"),
            (DatabaseError("disk full"), 500, "Internal Server Error"),
        ],
    )
    def test_mapping(self, exc: LicenseGateError, status_code: int, detail: str):
        assert exc.status_code == status_code
        assert exc.detail == detail

    def test_hierarchy(self):
        assert issubclass(InvalidPinError, AuthenticationError)
        assert issubclass(InvalidTokenError, AuthenticationError)
        assert issubclass(RestaurantNotActiveError, AuthorizationError)
        assert issubclass(InsufficientRoleError, AuthorizationError)
        assert all(
            issubclass(cls, LicenseGateError)
            for cls in (AuthenticationError, AuthorizationError, DatabaseError, RateLimitedError)
        )


class TestToHttpException:
    """Domain errors become HTTP responses with the right headers."""

    def test_authentication_sets_www_authenticate(self):
        http_exc = to_http_exception(InvalidPinError())

        assert http_exc.status_code == 401
        assert http_exc.headers == {"WWW-Authenticate": "Bearer"}

    def test_rate_limit_sets_retry_after(self):
        http_exc = to_http_exception(RateLimitedError("admin-pin:x", 42))

        assert http_exc.status_code == 429
        assert http_exc.headers == {"Retry-After": "42"}

    def test_internal_error_hides_message(self):
        http_exc = to_http_exception(DatabaseError("connection to 10.0.0.5 refused"))

        assert http_exc.status_code == 500
        assert "10.0.0.5" not in str(http_exc.detail)

    def test_other_errors_have_no_headers(self):
        http_exc = to_http_exception(NotActivatedError())

        assert http_exc.status_code == 400
        assert http_exc.headers is None
