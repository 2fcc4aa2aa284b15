"""
Conversion reconciliation: attribute a postback to its click and upsert.

Idempotency comes from the storage layer: one atomic
INSERT ... ON CONFLICT (vendor_name, order_id) DO UPDATE. Replays of the same
order converge on the latest status; concurrent postbacks serialize on the
unique constraint and the last commit wins. There is no read-then-write.
"""

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import OfferUnresolved
from app.core.postback_adapters import ConversionPayload
from app.models.tables import INT4_MAX, INT8_MAX, ClickEvent, Conversion, ProductOffer

import structlog

logger = structlog.get_logger()

# Columns a later postback may overwrite. currency travels with the amount;
# click_id, product_offer_id and created_at stay as first recorded.
UPDATABLE_COLUMNS = ("status", "commission_cents", "currency", "raw_payload")


async def find_click(db: AsyncSession, click_ref: str | None) -> ClickEvent | None:
    if not click_ref:
        return None
    try:
        click_pk = int(click_ref)
    except ValueError:
        return None
    if not 0 < click_pk <= INT8_MAX:
        return None
    return await db.get(ClickEvent, click_pk)


async def derive_offer_id(db: AsyncSession, conversion: ConversionPayload) -> int | None:
    """Offer for an unattributed conversion: explicit id, else vendor SKU."""
    if conversion.offer_id is not None:
        if not 0 < conversion.offer_id <= INT4_MAX:
            return None
        found = await db.execute(
            select(ProductOffer.id).where(ProductOffer.id == conversion.offer_id)
        )
        return found.scalar_one_or_none()

    if conversion.vendor_product_id:
        found = await db.execute(
            select(ProductOffer.id)
            .where(
                func.lower(ProductOffer.vendor_name) == conversion.vendor_name.lower(),
                ProductOffer.vendor_product_id == conversion.vendor_product_id,
            )
            .order_by(ProductOffer.id)
            .limit(1)
        )
        return found.scalar_one_or_none()

    return None


async def attribute(db: AsyncSession, conversion: ConversionPayload) -> tuple[int | None, int]:
    """Returns (click_id, offer_id). Raises OfferUnresolved if no offer."""
    click = await find_click(db, conversion.click_ref)
    if click is not None:
        return click.id, click.product_offer_id

    logger.warning("postback_attribution_miss",
                   vendor=conversion.vendor_name,
                   order_id=conversion.order_id,
                   click_ref=conversion.click_ref)

    offer_id = await derive_offer_id(db, conversion)
    if offer_id is None:
        logger.warning("postback_offer_unresolved",
                       vendor=conversion.vendor_name,
                       order_id=conversion.order_id,
                       offer_id=conversion.offer_id,
                       vendor_product_id=conversion.vendor_product_id)
        raise OfferUnresolved()
    return None, offer_id


def _insert_for(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"No atomic upsert available for dialect {dialect!r}")


async def upsert_conversion(
    db: AsyncSession,
    conversion: ConversionPayload,
    *,
    click_id: int | None,
    offer_id: int,
    raw_payload: dict,
):
    """Insert-or-update keyed by (vendor_name, order_id). Caller commits."""
    insert = _insert_for(db)
    stmt = insert(Conversion).values(
        click_id=click_id,
        product_offer_id=offer_id,
        vendor_name=conversion.vendor_name,
        order_id=conversion.order_id,
        commission_cents=conversion.commission_cents,
        currency=conversion.currency,
        status=conversion.status,
        raw_payload=raw_payload,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Conversion.vendor_name, Conversion.order_id],
        set_={
            **{col: stmt.excluded[col] for col in UPDATABLE_COLUMNS},
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
