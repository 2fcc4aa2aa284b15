"""Catalog tables referenced by tracking: product_offers, refer_slugs

Revision ID: catalog_refs_001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "catalog_refs_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "product_offers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer, nullable=False, index=True),
        sa.Column("vendor_name", sa.String(100), nullable=False),
        sa.Column("vendor_product_id", sa.String(255), nullable=True),
        sa.Column("price_cents", sa.Integer, nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("affiliate_url", sa.Text, nullable=False),
        sa.Column("is_available", sa.Boolean, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_product_offers_vendor_sku", "product_offers", ["vendor_name", "vendor_product_id"])

    op.create_table(
        "refer_slugs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("public_slug", sa.String(50), nullable=False),
        sa.Column("product_offer_id", sa.Integer, sa.ForeignKey("product_offers.id"), nullable=False),
        sa.Column("campaign_tag", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_refer_slugs_public_slug", "refer_slugs", ["public_slug"])
    op.create_index(
        "uq_refer_slugs_active_public_slug",
        "refer_slugs",
        ["public_slug"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )


def downgrade() -> None:
    op.drop_table("refer_slugs")
    op.drop_table("product_offers")
