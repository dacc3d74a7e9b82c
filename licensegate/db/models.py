"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.

Column types are portable between the local SQLite store and PostgreSQL.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from licensegate.models.api import CodeStatus, RestaurantStatus


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware UTC datetime, also on backends that store naive values."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: object) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: object) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class ActivationCode(Base):
    """
    ORM model for activation_codes table.

    The license ledger. Rows are never deleted; status only moves through
    the activation transaction, lazy expiry and administrative reset.
    """

    __tablename__ = "activation_codes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CodeStatus.ACTIVE.value
    )
    # Legacy flag kept alongside status; historical writes may disagree with it
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # License metadata
    entity_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plan: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    restaurant: Mapped["Restaurant | None"] = relationship(
        "Restaurant", back_populates="activation_code", uselist=False, lazy="selectin"
    )

    __table_args__ = (Index("idx_activation_codes_status", "status"),)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<ActivationCode(id={self.id}, code={self.code}, status={self.status})>"


class Restaurant(Base):
    """
    ORM model for restaurants table.

    One provisioned installation. `status` is authoritative; `is_active` is
    derived from it and never stored.
    """

    __tablename__ = "restaurants"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RestaurantStatus.ACTIVE.value
    )

    # Argon2 hashes; NULL means "not configured"
    admin_pin_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    kitchen_pin_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    activation_code_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("activation_codes.id"), nullable=True, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    activation_code: Mapped[ActivationCode | None] = relationship(
        ActivationCode, back_populates="restaurant"
    )

    __table_args__ = (
        Index("idx_restaurants_status", "status"),
        Index("idx_restaurants_created_at", "created_at"),
    )

    @hybrid_property
    def is_active(self) -> bool:
        """Pure projection of status."""
        return self.status == RestaurantStatus.ACTIVE.value

    @is_active.inplace.expression
    @classmethod
    def _is_active_expression(cls):  # type: ignore[no-untyped-def]
        return cls.status == RestaurantStatus.ACTIVE.value

    @property
    def setup_complete(self) -> bool:
        """Setup is complete exactly when an admin PIN is configured."""
        return self.admin_pin_hash is not None

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Restaurant(id={self.id}, name={self.name}, status={self.status})>"


class Device(Base):
    """
    ORM model for devices table.

    One row per physical device and role pairing, refreshed on each login.
    """

    __tablename__ = "devices"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    restaurant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("restaurants.id"), nullable=False, index=True
    )
    last_used: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (UniqueConstraint("device_id", "role", name="uq_device_role"),)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Device(device_id={self.device_id}, role={self.role})>"


class AuditLog(Base):
    """
    ORM model for audit_logs table.

    Immutable audit trail of security-sensitive actions.
    """

    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    target: Mapped[str | None] = mapped_column(String(255), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<AuditLog(id={self.id}, action={self.action}, actor={self.actor})>"


# ============================================================================
# Dependent rows owned by the menu/table/order collaborators. Only the
# columns revocation needs to reason about are modelled here.
# ============================================================================


class DiningTable(Base):
    """ORM model for tables table."""

    __tablename__ = "tables"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("restaurants.id"), nullable=False, index=True
    )
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class Category(Base):
    """ORM model for categories table."""

    __tablename__ = "categories"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("restaurants.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class MenuItem(Base):
    """ORM model for menu_items table."""

    __tablename__ = "menu_items"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("restaurants.id"), nullable=False, index=True
    )
    category_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("categories.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class CustomerSession(Base):
    """ORM model for customer_sessions table (QR ordering sessions)."""

    __tablename__ = "customer_sessions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("restaurants.id"), nullable=False, index=True
    )
    table_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tables.id"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class Order(Base):
    """ORM model for orders table."""

    __tablename__ = "orders"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("restaurants.id"), nullable=False, index=True
    )
    table_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tables.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="RECEIVED")
    total_amount: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class OrderItem(Base):
    """ORM model for order_items table."""

    __tablename__ = "order_items"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    order_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False, index=True
    )
    menu_item_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("menu_items.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
