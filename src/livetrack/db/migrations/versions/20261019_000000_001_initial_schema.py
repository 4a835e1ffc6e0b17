"""Initial schema.

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

Creates all tables for livetrack:
- users, customers, sessions (owned upstream, read here)
- deliveries (current delivery state)
- tracking_events (append-only ledger)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Apply migration: initial schema."""
    delivery_status = postgresql.ENUM(
        "pending",
        "preparing",
        "out_for_delivery",
        "in_transit",
        "delivered",
        "cancelled",
        name="delivery_status",
        create_type=False,
    )
    delivery_status.create(op.get_bind(), checkfirst=True)

    user_role = postgresql.ENUM("admin", "delivery", name="user_role", create_type=False)
    user_role.create(op.get_bind(), checkfirst=True)

    # =========================================================================
    # Accounts
    # =========================================================================
    op.create_table(
        "users",
        _uuid_pk("user_id"),
        _timestamp("created_at"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("user_id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
    )

    op.create_table(
        "customers",
        _uuid_pk("customer_id"),
        _timestamp("created_at"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("customer_id", name=op.f("pk_customers")),
    )

    op.create_table(
        "sessions",
        _uuid_pk("session_id"),
        _timestamp("created_at"),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("expires_at"),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.user_id"],
            name=op.f("fk_sessions_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customers.customer_id"],
            name=op.f("fk_sessions_customer_id_customers"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("session_id", name=op.f("pk_sessions")),
        sa.UniqueConstraint("token_hash", name=op.f("uq_sessions_token_hash")),
    )
    op.create_index(op.f("ix_sessions_user_id"), "sessions", ["user_id"], unique=False)
    op.create_index(op.f("ix_sessions_customer_id"), "sessions", ["customer_id"], unique=False)
    op.create_index(op.f("ix_sessions_expires_at"), "sessions", ["expires_at"], unique=False)

    # =========================================================================
    # Deliveries
    # =========================================================================
    op.create_table(
        "deliveries",
        _uuid_pk("delivery_id"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("order_ref", sa.String(100), nullable=False),
        sa.Column("status", delivery_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("courier_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_delivery_time", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customers.customer_id"],
            name=op.f("fk_deliveries_customer_id_customers"),
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["courier_id"],
            ["users.user_id"],
            name=op.f("fk_deliveries_courier_id_users"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("delivery_id", name=op.f("pk_deliveries")),
        sa.UniqueConstraint("order_ref", name=op.f("uq_deliveries_order_ref")),
    )
    op.create_index(
        op.f("ix_deliveries_customer_id"), "deliveries", ["customer_id"], unique=False
    )
    op.create_index(op.f("ix_deliveries_courier_id"), "deliveries", ["courier_id"], unique=False)
    op.create_index(op.f("ix_deliveries_status"), "deliveries", ["status"], unique=False)

    # =========================================================================
    # Tracking ledger
    # =========================================================================
    op.create_table(
        "tracking_events",
        _uuid_pk("event_id"),
        sa.Column("delivery_id", postgresql.UUID(as_uuid=True), nullable=False),
        _timestamp("event_time"),
        sa.Column("seq_no", sa.BigInteger(), sa.Identity(always=True), nullable=False),
        sa.Column("status", delivery_status, nullable=False),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["delivery_id"],
            ["deliveries.delivery_id"],
            name=op.f("fk_tracking_events_delivery_id_deliveries"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("event_id", name=op.f("pk_tracking_events")),
        sa.UniqueConstraint("seq_no", name=op.f("uq_tracking_events_seq_no")),
    )
    op.create_index(
        op.f("ix_tracking_events_delivery_time"),
        "tracking_events",
        ["delivery_id", "event_time"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration: initial schema."""
    op.drop_table("tracking_events")
    op.drop_table("deliveries")
    op.drop_table("sessions")
    op.drop_table("customers")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS user_role")
    op.execute("DROP TYPE IF EXISTS delivery_status")
