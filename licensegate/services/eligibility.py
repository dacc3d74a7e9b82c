"""
Activation Code Eligibility Engine.

Single source of truth for whether a code may activate an installation.
Both the activation transaction and the admin code listing call
`evaluate_eligibility`; nothing else re-derives eligibility.

Precedence (first match wins):
    1. INVALIDATED                       -> REVOKED
    2. expires_at in the past            -> EXPIRED
    3. any "used" signal is present      -> USED
    4. otherwise                         -> VALID
"""

from datetime import UTC, datetime

from licensegate.models.api import CodeStatus, EligibilityReason
from licensegate.models.domain import Eligibility


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def evaluate_eligibility(
    status: str,
    is_used: bool,
    expires_at: datetime | None,
    used_at: datetime | None,
    has_restaurant: bool,
    now: datetime | None = None,
) -> Eligibility:
    """
    Evaluate an activation code.

    The "used" signals are deliberately redundant: legacy rows may carry
    is_used=True with status=ACTIVE, or a used_at with no restaurant. Any one
    of them is enough to refuse the code.

    Args:
        status: Stored code status
        is_used: Legacy used flag
        expires_at: Expiry timestamp, None for codes that never expire
        used_at: Redemption timestamp
        has_restaurant: Whether a restaurant row is bound to the code
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        Eligibility with the reason for the decision
    """
    now = _as_utc(now) if now is not None else datetime.now(UTC)

    if status == CodeStatus.INVALIDATED:
        return Eligibility(eligible=False, reason=EligibilityReason.REVOKED)

    if expires_at is not None and _as_utc(expires_at) < now:
        return Eligibility(eligible=False, reason=EligibilityReason.EXPIRED)

    if status == CodeStatus.USED or is_used or used_at is not None or has_restaurant:
        return Eligibility(eligible=False, reason=EligibilityReason.USED)

    return Eligibility(eligible=True, reason=EligibilityReason.VALID)
