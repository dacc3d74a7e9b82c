"""
Revocation Service - Cascading Reset.

Wipes operational data and invalidates the installation in ONE transaction.
Either every step lands or none does; there is no partially revoked state.

Order (children before parents):
    order_items -> orders -> menu_items -> categories
    -> customer_sessions -> tables -> devices
then every targeted restaurant gets status=REVOKED with both PIN hashes
cleared. Bound activation codes are left as they are.
"""

from typing import Literal
from uuid import UUID

from sqlalchemy import Delete, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.config import settings
from licensegate.db.models import (
    Base,
    Category,
    CustomerSession,
    Device,
    DiningTable,
    MenuItem,
    Order,
    OrderItem,
    Restaurant,
    utc_now,
)
from licensegate.exceptions import DatabaseError
from licensegate.models.api import AuditAction, RestaurantStatus
from licensegate.models.domain import RevocationReport
from licensegate.observability.metrics import metrics
from licensegate.observability.tracing import trace_operation
from licensegate.services.audit import AuditLogger
from licensegate.services.pin_auth import PinAuthService

logger = get_logger(__name__)

RevocationScope = Literal["shared_store", "install"]

DELETION_ORDER: tuple[type[Base], ...] = (
    OrderItem,
    Order,
    MenuItem,
    Category,
    CustomerSession,
    DiningTable,
    Device,
)


class RevocationService:
    """Admin-confirmed, irreversible reset of the installation."""

    def __init__(
        self,
        session: AsyncSession,
        pin_auth: PinAuthService,
        scope: RevocationScope | None = None,
    ) -> None:
        self.session = session
        self.pin_auth = pin_auth
        self.scope: RevocationScope = scope or settings.revocation_scope
        self.audit = AuditLogger(session)

    def _delete_statement(self, model: type[Base], restaurant_id: UUID) -> Delete:
        stmt = delete(model)
        if self.scope == "shared_store":
            return stmt
        if model is OrderItem:
            owned_orders = select(Order.id).where(Order.restaurant_id == restaurant_id)
            return stmt.where(OrderItem.order_id.in_(owned_orders))
        return stmt.where(model.restaurant_id == restaurant_id)  # type: ignore[attr-defined]

    async def _delete(self, model: type[Base], restaurant_id: UUID) -> int:
        """Delete one table's rows within scope; returns the row count."""
        stmt = self._delete_statement(model, restaurant_id).execution_options(
            synchronize_session=False
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def _revoke_restaurants(self, restaurant_id: UUID) -> int:
        stmt = update(Restaurant).values(
            status=RestaurantStatus.REVOKED.value,
            admin_pin_hash=None,
            kitchen_pin_hash=None,
            updated_at=utc_now(),
        )
        if self.scope == "install":
            stmt = stmt.where(Restaurant.id == restaurant_id)
        result = await self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount

    async def execute(self, restaurant_id: UUID, device_id: str) -> RevocationReport:
        """
        Run the wipe for an already verified caller.

        Raises:
            DatabaseError: any failure; the transaction is rolled back and no
                audit entry is written
        """
        with trace_operation("revocation", scope=self.scope, restaurant_id=restaurant_id):
            try:
                deleted: list[tuple[str, int]] = []
                for model in DELETION_ORDER:
                    count = await self._delete(model, restaurant_id)
                    deleted.append((model.__tablename__, count))

                revoked = await self._revoke_restaurants(restaurant_id)

                report = RevocationReport(
                    scope=self.scope,
                    restaurants_revoked=revoked,
                    deleted=tuple(deleted),
                )
                await self.audit.record(
                    AuditAction.ACTIVATION_REVOKED,
                    actor=device_id,
                    target=str(restaurant_id),
                    details={
                        "scope": self.scope,
                        "restaurantsRevoked": revoked,
                        **{f"deleted.{table}": count for table, count in deleted},
                    },
                )
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                metrics.record_revocation(self.scope, success=False)
                metrics.record_error(type(e).__name__, "revocation")
                logger.error(
                    "revocation_failed",
                    restaurant_id=str(restaurant_id),
                    scope=self.scope,
                    error=str(e),
                )
                raise DatabaseError(f"Revocation failed: {e}") from e

        metrics.record_revocation(self.scope, success=True, deleted=report.deleted)
        logger.warning(
            "activation_revoked",
            restaurant_id=str(restaurant_id),
            device_id=device_id,
            scope=self.scope,
            restaurants_revoked=report.restaurants_revoked,
            rows_deleted=report.total_deleted,
        )
        return report

    async def revoke_activation(
        self, restaurant_id: UUID, admin_pin: str, device_id: str
    ) -> RevocationReport:
        """Re-verify the admin PIN, then revoke."""
        await self.pin_auth.verify_admin_pin(
            restaurant_id,
            admin_pin,
            device_id,
            failure_action=AuditAction.ACTIVATION_REVOKE_FAILED,
            operation="revoke_activation",
        )
        return await self.execute(restaurant_id, device_id)
