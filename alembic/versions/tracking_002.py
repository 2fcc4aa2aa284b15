"""Tracking tables: click_tracking, conversions, audit_logs

Revision ID: tracking_002
Revises: catalog_refs_001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "tracking_002"
down_revision = "catalog_refs_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "click_tracking",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("refer_slug_id", sa.Integer, sa.ForeignKey("refer_slugs.id"), nullable=False),
        sa.Column("product_offer_id", sa.Integer, sa.ForeignKey("product_offers.id"), nullable=False),
        sa.Column("ip_hash", sa.String(64), nullable=False),
        sa.Column("user_agent", sa.String(500), nullable=False, server_default=""),
        sa.Column("referer", sa.String(500), nullable=False, server_default=""),
        sa.Column("country", sa.String(8), nullable=False, server_default=""),
        sa.Column("utm_source", sa.String(255), nullable=True),
        sa.Column("utm_medium", sa.String(255), nullable=True),
        sa.Column("utm_campaign", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_click_tracking_slug_created", "click_tracking", ["refer_slug_id", "created_at"])
    op.create_index("ix_click_tracking_offer_created", "click_tracking", ["product_offer_id", "created_at"])

    op.create_table(
        "conversions",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("click_id", sa.BigInteger, sa.ForeignKey("click_tracking.id"), nullable=True),
        sa.Column("product_offer_id", sa.Integer, sa.ForeignKey("product_offers.id"), nullable=False),
        sa.Column("vendor_name", sa.String(100), nullable=False),
        sa.Column("order_id", sa.String(255), nullable=False),
        sa.Column("commission_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("raw_payload", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("vendor_name", "order_id", name="uq_conversions_vendor_order"),
    )
    op.create_index("ix_conversions_offer_status", "conversions", ["product_offer_id", "status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("details", postgresql.JSONB, nullable=True),
        sa.Column("ip_hash", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("conversions")
    op.drop_table("click_tracking")
