"""Initial schema: riders, orders, order status events and offers.

Revision ID: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUSES = (
    "AWAITING_ASSIGNMENT",
    "AWAITING_PICKUP",
    "IN_TRANSIT",
    "DELIVERED",
    "CANCELLED",
)


def upgrade() -> None:
    # ── riders ────────────────────────────────────────────────────────
    op.create_table(
        "riders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column(
            "availability",
            sa.Enum("ONLINE", "OFFLINE", name="rideravailability"),
            default="OFFLINE",
            nullable=False,
        ),
        sa.Column("active_order_id", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_riders_availability", "riders", ["availability"])
    op.create_index("idx_riders_active_order", "riders", ["active_order_id"])

    # ── orders ────────────────────────────────────────────────────────
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("restaurant_name", sa.String(200), nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("customer_name", sa.String(120), nullable=False),
        sa.Column("delivery_address", sa.String(255), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*ORDER_STATUSES, name="orderstatus"),
            default="AWAITING_ASSIGNMENT",
            nullable=False,
        ),
        sa.Column(
            "rider_id", sa.Integer, sa.ForeignKey("riders.id"), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_orders_status", "orders", ["status"])
    op.create_index("idx_orders_rider", "orders", ["rider_id"])

    # ── order_status_events ───────────────────────────────────────────
    op.create_table(
        "order_status_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "order_id", sa.Integer, sa.ForeignKey("orders.id"), nullable=False
        ),
        sa.Column(
            "status",
            postgresql.ENUM(
                *ORDER_STATUSES, name="orderstatus", create_type=False
            ),
            nullable=False,
        ),
        sa.Column("actor", sa.String(64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_order_events_order", "order_status_events", ["order_id"])

    # ── offers ────────────────────────────────────────────────────────
    op.create_table(
        "offers",
        sa.Column(
            "order_id",
            sa.Integer,
            sa.ForeignKey("orders.id"),
            primary_key=True,
        ),
        sa.Column("candidate_rider_ids", sa.JSON, nullable=False),
        sa.Column("offered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_offers_expires", "offers", ["expires_at"])


def downgrade() -> None:
    op.drop_table("offers")
    op.drop_table("order_status_events")
    op.drop_table("orders")
    op.drop_table("riders")
    op.execute("DROP TYPE IF EXISTS orderstatus")
    op.execute("DROP TYPE IF EXISTS rideravailability")
