"""
Database models: the "truth layer."

Design principles:
  - product_offers / refer_slugs belong to the catalog; tracking only reads
    them (refer_slugs is also edited through the operator API)
  - click_tracking and audit_logs are append-only (no updates/deletes)
  - conversions has exactly one row per (vendor_name, order_id); postbacks
    upsert into it
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, relationship

# BIGSERIAL on Postgres, INTEGER PRIMARY KEY (rowid alias) on SQLite
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Largest values the INTEGER and BIGINT columns accept
INT4_MAX = 2**31 - 1
INT8_MAX = 2**63 - 1


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Catalog tables (read-only to tracking)
# ---------------------------------------------------------------------------

class ProductOffer(Base):
    __tablename__ = "product_offers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, nullable=False, index=True)
    vendor_name = Column(String(100), nullable=False)
    vendor_product_id = Column(String(255), nullable=True)   # vendor SKU, used to attribute orphan postbacks
    price_cents = Column(Integer, nullable=True)
    currency = Column(String(3), default="NPR")
    affiliate_url = Column(Text, nullable=False)
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    refer_slugs = relationship("ReferralSlug", back_populates="offer")

    __table_args__ = (
        Index("ix_product_offers_vendor_sku", "vendor_name", "vendor_product_id"),
    )


class ReferralSlug(Base):
    __tablename__ = "refer_slugs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    public_slug = Column(String(50), nullable=False)
    product_offer_id = Column(Integer, ForeignKey("product_offers.id"), nullable=False)
    campaign_tag = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    offer = relationship("ProductOffer", back_populates="refer_slugs")

    __table_args__ = (
        # Unique among active rows only; deactivated slugs keep their history
        Index(
            "uq_refer_slugs_active_public_slug",
            "public_slug",
            unique=True,
            postgresql_where=is_active.is_(True),
            sqlite_where=is_active.is_(True),
        ),
        Index("ix_refer_slugs_public_slug", "public_slug"),
    )


# ---------------------------------------------------------------------------
# Tracking tables
# ---------------------------------------------------------------------------

class ClickEvent(Base):
    """
    One row per redirect. Written by a detached task after the 302 is sent.
    The id is the tracking id handed to vendors (subid1).
    """
    __tablename__ = "click_tracking"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    refer_slug_id = Column(Integer, ForeignKey("refer_slugs.id"), nullable=False)
    product_offer_id = Column(Integer, ForeignKey("product_offers.id"), nullable=False)

    ip_hash = Column(String(64), nullable=False)             # sha256 hex, raw IP never stored
    user_agent = Column(String(500), nullable=False, default="")
    referer = Column(String(500), nullable=False, default="")
    country = Column(String(8), nullable=False, default="")

    utm_source = Column(String(255), nullable=True)
    utm_medium = Column(String(255), nullable=True)
    utm_campaign = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_click_tracking_slug_created", "refer_slug_id", "created_at"),
        Index("ix_click_tracking_offer_created", "product_offer_id", "created_at"),
    )


class Conversion(Base):
    """Vendor-reported sale, reconciled to a click when possible."""
    __tablename__ = "conversions"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    click_id = Column(BigInteger, ForeignKey("click_tracking.id"), nullable=True)   # NULL = unattributed
    product_offer_id = Column(Integer, ForeignKey("product_offers.id"), nullable=False)
    vendor_name = Column(String(100), nullable=False)
    order_id = Column(String(255), nullable=False)
    commission_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    status = Column(String(50), nullable=False)
    raw_payload = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("vendor_name", "order_id", name="uq_conversions_vendor_order"),
        Index("ix_conversions_offer_status", "product_offer_id", "status"),
    )


class AuditLog(Base):
    """Generic append-only sink for front-end interaction events."""
    __tablename__ = "audit_logs"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    action = Column(String(100), nullable=False, index=True)   # event_page_view, event_cta_click, ...
    target_type = Column(String(50), nullable=True)
    target_id = Column(String(100), nullable=True)
    details = Column(JSONType, nullable=True)
    ip_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_audit_logs_target", "target_type", "target_id"),
    )
