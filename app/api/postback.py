"""
Postback receiver: conversions reported by affiliate networks.

POST /postback/{vendor}?secret=...

Security:
  - Per-vendor shared secret (query ?secret= or X-Postback-Secret header)
  - Checked before the body is parsed; mismatches are logged and get 401

Delivery is at-least-once. The conversion upsert is keyed by
(vendor_name, order_id), so replays update the existing row instead of
adding a second one. Once the upsert commits we always answer 200, even when
the click couldn't be found, or the network would keep retrying. Storage
failures answer 500 so the network retries.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import AppContext, get_context
from app.core.conversions import attribute, upsert_conversion
from app.core.errors import PayloadError, StorageFailure
from app.core.postback_adapters import parse_postback
from app.middleware.auth import verify_postback_secret
from app.models.database import get_db

import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["postback"])


@router.post("/postback/{vendor}")
async def receive_postback(
    vendor: str,
    request: Request,
    ctx: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    settings = ctx.settings
    verify_postback_secret(settings, vendor, request)

    # --- Parse ---
    try:
        payload = await request.json()
    except ValueError:
        raise PayloadError("Invalid JSON body")

    conversion = parse_postback(vendor, payload, settings.default_currency)
    logger.info("postback_received",
                vendor=conversion.vendor_name,
                order_id=conversion.order_id,
                status=conversion.status,
                click_ref=conversion.click_ref)

    # --- Attribute + upsert ---
    try:
        click_id, offer_id = await attribute(db, conversion)
        await upsert_conversion(
            db,
            conversion,
            click_id=click_id,
            offer_id=offer_id,
            raw_payload=payload,
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("postback_storage_failed",
                         vendor=conversion.vendor_name,
                         order_id=conversion.order_id)
        raise StorageFailure("Failed to record conversion")

    logger.info("conversion_upserted",
                vendor=conversion.vendor_name,
                order_id=conversion.order_id,
                click_id=click_id,
                offer_id=offer_id,
                attributed=click_id is not None,
                status=conversion.status,
                commission_cents=conversion.commission_cents)

    return {"status": "success"}
