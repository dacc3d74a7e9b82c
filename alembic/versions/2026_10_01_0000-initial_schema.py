"""Initial schema: license ledger, restaurants, devices, audit trail.

Revision ID: 2026_10_01_0000
Revises:
Create Date: 2026-10-01

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_01_0000"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create initial database schema."""

    # ========================================================================
    # License ledger
    # ========================================================================
    op.create_table(
        "activation_codes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entity_name", sa.String(255), nullable=True),
        sa.Column("plan", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_activation_codes_status", "activation_codes", ["status"])

    # ========================================================================
    # Installations
    # ========================================================================
    op.create_table(
        "restaurants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("admin_pin_hash", sa.String(255), nullable=True),
        sa.Column("kitchen_pin_hash", sa.String(255), nullable=True),
        sa.Column(
            "activation_code_id",
            sa.Uuid(),
            sa.ForeignKey("activation_codes.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_restaurants_status", "restaurants", ["status"])
    op.create_index("idx_restaurants_created_at", "restaurants", ["created_at"])

    op.create_table(
        "devices",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column(
            "restaurant_id", sa.Uuid(), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("last_used", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("device_id", "role", name="uq_device_role"),
    )
    op.create_index("ix_devices_restaurant_id", "devices", ["restaurant_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("actor", sa.String(255), nullable=False),
        sa.Column("target", sa.String(255), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_audit_logs_action", "audit_logs", ["action"])
    op.create_index("idx_audit_logs_timestamp", "audit_logs", ["timestamp"])

    # ========================================================================
    # Operational data removed on revocation
    # ========================================================================
    op.create_table(
        "tables",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.Uuid(), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("label", sa.String(100), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tables_restaurant_id", "tables", ["restaurant_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.Uuid(), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_categories_restaurant_id", "categories", ["restaurant_id"])

    op.create_table(
        "menu_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.Uuid(), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("category_id", sa.Uuid(), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_menu_items_restaurant_id", "menu_items", ["restaurant_id"])
    op.create_index("ix_menu_items_category_id", "menu_items", ["category_id"])

    op.create_table(
        "customer_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.Uuid(), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("table_id", sa.Uuid(), sa.ForeignKey("tables.id"), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_customer_sessions_restaurant_id", "customer_sessions", ["restaurant_id"]
    )
    op.create_index("ix_customer_sessions_table_id", "customer_sessions", ["table_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "restaurant_id", sa.Uuid(), sa.ForeignKey("restaurants.id"), nullable=False
        ),
        sa.Column("table_id", sa.Uuid(), sa.ForeignKey("tables.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="RECEIVED"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_restaurant_id", "orders", ["restaurant_id"])
    op.create_index("ix_orders_table_id", "orders", ["table_id"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_id", sa.Uuid(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("menu_item_id", sa.Uuid(), sa.ForeignKey("menu_items.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_index("ix_order_items_menu_item_id", "order_items", ["menu_item_id"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("customer_sessions")
    op.drop_table("menu_items")
    op.drop_table("categories")
    op.drop_table("tables")
    op.drop_table("audit_logs")
    op.drop_table("devices")
    op.drop_table("restaurants")
    op.drop_table("activation_codes")
