"""
Attribution analytics: operator read-only figures over clicks and conversions.
"""

import datetime

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound
from app.middleware.auth import require_admin
from app.models.database import get_db
from app.models.tables import INT4_MAX, ClickEvent, Conversion, ProductOffer

router = APIRouter(
    prefix="/admin/analytics",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


def _cutoff(days: int) -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=days)


async def _summary(db: AsyncSession, days: int, offer_id: int | None = None) -> dict:
    cutoff = _cutoff(days)

    click_filter = [ClickEvent.created_at >= cutoff]
    conv_filter = [Conversion.updated_at >= cutoff]
    if offer_id is not None:
        click_filter.append(ClickEvent.product_offer_id == offer_id)
        conv_filter.append(Conversion.product_offer_id == offer_id)

    clicks = (await db.execute(
        select(
            func.count(ClickEvent.id).label("total_clicks"),
            func.count(func.distinct(ClickEvent.ip_hash)).label("unique_visitors"),
        ).where(*click_filter)
    )).one()

    by_status = (await db.execute(
        select(
            Conversion.status,
            func.count(Conversion.id),
            func.coalesce(func.sum(Conversion.commission_cents), 0),
        )
        .where(*conv_filter)
        .group_by(Conversion.status)
    )).all()

    conversions = {status: count for status, count, _ in by_status}
    approved_cents = sum(cents for status, _, cents in by_status if status == "approved")

    return {
        "period_days": days,
        "total_clicks": clicks.total_clicks,
        "unique_visitors": clicks.unique_visitors,
        "conversions": conversions,
        "total_conversions": sum(conversions.values()),
        "approved_commission_cents": int(approved_cents),
    }


@router.get("/overview")
async def analytics_overview(
    db: AsyncSession = Depends(get_db),
    days: int = Query(30, ge=1, le=365),
):
    """Clicks, unique visitors, conversions by status, approved commission."""
    return await _summary(db, days)


@router.get("/offers/{offer_id}")
async def offer_analytics(
    offer_id: int = Path(gt=0, le=INT4_MAX),
    db: AsyncSession = Depends(get_db),
    days: int = Query(30, ge=1, le=365),
):
    offer = await db.get(ProductOffer, offer_id)
    if offer is None:
        raise NotFound("Product offer not found")
    summary = await _summary(db, days, offer_id=offer_id)
    return {"offer_id": offer_id, "vendor_name": offer.vendor_name, **summary}
