"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Campaigns table (lottery and timed_promotion share it, discriminated by kind)
    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=False, index=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        # lottery
        sa.Column("win_probability", sa.Float(), nullable=True),
        sa.Column("reward_kind", sa.String(32), nullable=True),
        sa.Column("reward_value", sa.Integer(), nullable=True),
        sa.Column("reward_description", sa.String(500), nullable=True),
        sa.Column("validity_days", sa.Integer(), nullable=True),
        # timed promotion
        sa.Column("recurrence", sa.String(32), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("days_of_week", sa.JSON(), nullable=True),
        sa.Column("start_time", sa.String(5), nullable=True),
        sa.Column("end_time", sa.String(5), nullable=True),
        sa.Column("discount_type", sa.String(32), nullable=True),
        sa.Column("discount_value", sa.Integer(), nullable=True),
        sa.Column("target_categories", sa.JSON(), nullable=True),
        sa.Column("banner_text", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_campaigns_restaurant_active", "campaigns", ["restaurant_id", "is_active"])
    op.create_index("ix_campaigns_restaurant_created", "campaigns", ["restaurant_id", "created_at"])

    # Coupons table - campaign_id and order_id are weak references (no FK)
    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False, index=True),
        sa.Column("code", sa.String(32), nullable=False, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("discount_type", sa.String(32), nullable=False),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column("discount_description", sa.String(500), nullable=False, server_default=""),
        sa.Column("device_id", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index(
        "ix_coupons_restaurant_device_created", "coupons", ["restaurant_id", "device_id", "created_at"]
    )
    op.create_index("ix_coupons_restaurant_code", "coupons", ["restaurant_id", "code"])
    op.create_index("ix_coupons_status_valid_until", "coupons", ["status", "valid_until"])

    # Orders table
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=False),
        sa.Column("table_id", sa.String(64), nullable=False),
        sa.Column("table_label", sa.String(50), nullable=False),
        sa.Column("customer_session_id", sa.String(128), nullable=True, index=True),
        sa.Column("customer_note", sa.String(500), nullable=True),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("subtotal", sa.Integer(), nullable=False),
        sa.Column(
            "coupon_id",
            sa.Integer(),
            sa.ForeignKey("coupons.id", ondelete="RESTRICT"),
            nullable=True,
            unique=True,
        ),
        sa.Column("discount_amount", sa.Integer(), nullable=True),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(24), nullable=False, server_default="pending_validation"),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ready_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("served_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_orders_restaurant_created", "orders", ["restaurant_id", "created_at"])
    op.create_index("ix_orders_restaurant_table", "orders", ["restaurant_id", "table_id"])

    # Menu catalog (read-only for the engine)
    op.create_table(
        "menu_products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("restaurant_id", sa.String(64), nullable=False, index=True),
        sa.Column("category_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_products_restaurant_category", "menu_products", ["restaurant_id", "category_id"])


def downgrade() -> None:
    op.drop_table("menu_products")
    op.drop_table("orders")
    op.drop_table("coupons")
    op.drop_table("campaigns")
