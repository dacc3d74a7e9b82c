"""
Activation Service - Activation Code Ledger.

Redeems a license code exactly once to create a Restaurant, and provides
the administrative ledger operations (issue, list, force-reset).

Activation is race-safe without application locks:
1. The code is claimed with a conditional UPDATE that only matches the row
   exactly as it was read and judged eligible. Zero affected rows means
   another caller changed it first.
2. `restaurants.activation_code_id` is UNIQUE, so a second restaurant can
   never be bound to the same code even if (1) were bypassed.
"""

import secrets
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.config import settings
from licensegate.db.models import ActivationCode, Restaurant, utc_now
from licensegate.exceptions import (
    ActivationCodeIneligibleError,
    DatabaseError,
    InvalidRequestError,
    ResourceNotFoundError,
)
from licensegate.models.api import AuditAction, CodeStatus, EligibilityReason, RestaurantStatus
from licensegate.models.domain import ActivationResult, Eligibility
from licensegate.observability.metrics import metrics
from licensegate.observability.tracing import trace_operation
from licensegate.services.audit import AuditLogger
from licensegate.services.eligibility import evaluate_eligibility

logger = get_logger(__name__)

# Unambiguous upper-case alphabet for generated codes (no 0/O, 1/I)
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

ACTIVATION_ACTOR = "activation"


def normalize_code(raw_code: str) -> str:
    """Codes are issued upper-case; tolerate surrounding whitespace and case."""
    return raw_code.strip().upper()


def generate_code(groups: int = 3, group_length: int = 4) -> str:
    """Generate a random code such as `K7QD-M2XP-9HTR`."""
    return "-".join(
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(group_length))
        for _ in range(groups)
    )


def code_eligibility(code: ActivationCode, now: datetime | None = None) -> Eligibility:
    """Evaluate a ledger row (with its bound restaurant loaded)."""
    return evaluate_eligibility(
        status=code.status,
        is_used=code.is_used,
        expires_at=code.expires_at,
        used_at=code.used_at,
        has_restaurant=code.restaurant is not None,
        now=now,
    )


class ActivationService:
    """Activation transaction and activation code ledger operations."""

    def __init__(self, session: AsyncSession, default_name: str | None = None) -> None:
        self.session = session
        self.default_name = default_name or settings.default_restaurant_name
        self.audit = AuditLogger(session)

    async def get_code(self, code: str) -> ActivationCode | None:
        """Load a ledger row by its (normalized) code."""
        stmt = (
            select(ActivationCode)
            .where(ActivationCode.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _mark_expired(self, code: ActivationCode) -> None:
        """
        Persist EXPIRED for a code found past its expiry.

        Best effort: the rejection is returned whether or not this write lands.
        """
        try:
            stmt = (
                update(ActivationCode)
                .where(
                    ActivationCode.id == code.id,
                    ActivationCode.status == CodeStatus.ACTIVE.value,
                )
                .values(status=CodeStatus.EXPIRED.value)
                .execution_options(synchronize_session=False)
            )
            await self.session.execute(stmt)
            await self.session.commit()
            logger.info("activation_code_marked_expired", code_id=str(code.id))
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(
                "activation_code_expiry_write_failed", code_id=str(code.id), error=str(e)
            )

    async def _rejection(
        self, code: str, reason: EligibilityReason
    ) -> ActivationCodeIneligibleError:
        """Audit an ineligible-code rejection and return the error to raise."""
        metrics.record_activation(reason.value)
        await self.audit.record_failure(
            AuditAction.ACTIVATION_REJECTED,
            actor=ACTIVATION_ACTOR,
            target=code,
            details={"reason": reason.value},
        )
        logger.warning("activation_rejected", code=code, reason=reason.value)
        return ActivationCodeIneligibleError(code, reason)

    async def activate(self, raw_code: str) -> ActivationResult:
        """
        Redeem a code and create the restaurant bound to it.

        Does not configure PINs; that is the separate setup step.

        Raises:
            ActivationCodeIneligibleError: NOT_FOUND, USED, REVOKED or EXPIRED
            DatabaseError: unexpected storage failure (rolled back)
        """
        code = normalize_code(raw_code)
        if not code:
            raise InvalidRequestError("Activation code is required")

        with trace_operation("activation") as span:
            row = await self.get_code(code)
            if row is None:
                raise await self._rejection(code, EligibilityReason.NOT_FOUND)

            span.set_attribute("code_id", str(row.id))
            now = utc_now()
            eligibility = code_eligibility(row, now=now)
            if not eligibility.eligible:
                if (
                    eligibility.reason == EligibilityReason.EXPIRED
                    and row.status != CodeStatus.EXPIRED
                ):
                    await self._mark_expired(row)
                raise await self._rejection(code, eligibility.reason)

            code_id = row.id
            read_status = row.status
            restaurant_name = row.entity_name or self.default_name

            try:
                claim = (
                    update(ActivationCode)
                    .where(
                        ActivationCode.id == code_id,
                        ActivationCode.status == read_status,
                        ActivationCode.is_used.is_(False),
                        ActivationCode.used_at.is_(None),
                    )
                    .values(status=CodeStatus.USED.value, is_used=True, used_at=now)
                    .execution_options(synchronize_session=False)
                )
                result = await self.session.execute(claim)
                if result.rowcount != 1:
                    await self.session.rollback()
                    logger.warning("activation_claim_lost", code_id=str(code_id))
                    raise await self._rejection(code, EligibilityReason.USED)

                restaurant = Restaurant(
                    name=restaurant_name,
                    status=RestaurantStatus.ACTIVE.value,
                    activation_code_id=code_id,
                    created_at=now,
                    updated_at=now,
                )
                self.session.add(restaurant)
                await self.session.flush()

                await self.audit.record(
                    AuditAction.RESTAURANT_ACTIVATED,
                    actor=ACTIVATION_ACTOR,
                    target=str(restaurant.id),
                    details={"codeId": str(code_id), "plan": row.plan},
                )
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                logger.warning("activation_duplicate_binding", code_id=str(code_id))
                raise await self._rejection(code, EligibilityReason.USED)
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error("activation_failed", code_id=str(code_id), error=str(e))
                metrics.record_error("DatabaseError", "activation")
                raise DatabaseError(f"Activation failed: {e}") from e

            span.set_attribute("restaurant_id", str(restaurant.id))

        metrics.record_activation(EligibilityReason.VALID.value)
        logger.info(
            "restaurant_activated",
            restaurant_id=str(restaurant.id),
            code_id=str(code_id),
        )
        return ActivationResult(
            restaurant_id=restaurant.id,
            restaurant_name=restaurant.name,
            activation_code_id=code_id,
            activated_at=now,
        )

    async def list_codes(
        self, now: datetime | None = None
    ) -> list[tuple[ActivationCode, Eligibility]]:
        """Every ledger row with its computed eligibility."""
        stmt = select(ActivationCode).order_by(ActivationCode.created_at.desc())
        result = await self.session.execute(stmt)
        now = now or utc_now()
        return [(code, code_eligibility(code, now=now)) for code in result.scalars().all()]

    async def issue_codes(
        self,
        codes: Sequence[str],
        entity_name: str | None = None,
        plan: str | None = None,
        expires_at: datetime | None = None,
        actor: str = "cli",
    ) -> list[str]:
        """
        Add ACTIVE codes to the ledger.

        Codes already present are left untouched, so re-running an issuance
        is harmless.

        Returns:
            The codes that were newly created
        """
        normalized = list(dict.fromkeys(normalize_code(c) for c in codes if c.strip()))
        if not normalized:
            return []

        stmt = select(ActivationCode.code).where(ActivationCode.code.in_(normalized))
        result = await self.session.execute(stmt)
        existing = set(result.scalars().all())

        created = [c for c in normalized if c not in existing]
        for code in created:
            self.session.add(
                ActivationCode(
                    code=code,
                    status=CodeStatus.ACTIVE.value,
                    is_used=False,
                    entity_name=entity_name,
                    plan=plan,
                    expires_at=expires_at,
                )
            )

        if created:
            await self.audit.record(
                AuditAction.ACTIVATION_CODES_ISSUED,
                actor=actor,
                details={"count": len(created), "plan": plan, "entity": entity_name},
            )
            await self.session.commit()

        metrics.codes_issued_total.inc(len(created))
        logger.info(
            "activation_codes_issued",
            created=len(created),
            skipped=len(normalized) - len(created),
        )
        return created

    async def force_reset_code(self, code: str, actor: str = "cli") -> ActivationCode:
        """
        Return a code to ACTIVE and clear its used markers.

        Refused while a restaurant is bound to the code; the ledger must keep
        the record of what was redeemed.
        """
        row = await self.get_code(code)
        if row is None:
            raise ResourceNotFoundError("ActivationCode", normalize_code(code))
        if row.restaurant is not None:
            raise InvalidRequestError("Activation code is bound to a restaurant")

        previous_status = row.status
        row.status = CodeStatus.ACTIVE.value
        row.is_used = False
        row.used_at = None

        await self.audit.record(
            AuditAction.ACTIVATION_CODE_RESET,
            actor=actor,
            target=row.code,
            details={"previousStatus": previous_status},
        )
        await self.session.commit()

        logger.info(
            "activation_code_reset", code_id=str(row.id), previous_status=previous_status
        )
        return row
