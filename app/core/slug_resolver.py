"""
Slug resolution: public referral slug -> affiliate destination.

Only active slugs resolve. An inactive slug and an unknown slug raise the same
SlugNotFound so the public response never reveals that a disabled link
exists; the difference only shows up in our logs.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import SlugNotFound
from app.models.tables import ProductOffer, ReferralSlug

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class ResolvedSlug:
    slug_id: int
    offer_id: int
    affiliate_url: str


async def resolve_slug(db: AsyncSession, slug: str) -> ResolvedSlug:
    if not slug:
        raise SlugNotFound()

    stmt = (
        select(ReferralSlug.id, ProductOffer.id, ProductOffer.affiliate_url)
        .join(ProductOffer, ReferralSlug.product_offer_id == ProductOffer.id)
        .where(
            ReferralSlug.public_slug == slug,
            ReferralSlug.is_active.is_(True),
        )
        .limit(1)
    )
    row = (await db.execute(stmt)).first()

    if row is None or not row[2]:
        exists = (await db.execute(
            select(ReferralSlug.id).where(ReferralSlug.public_slug == slug).limit(1)
        )).first()
        if exists:
            logger.info("refer_slug_inactive", slug=slug)
        else:
            logger.info("refer_slug_not_found", slug=slug)
        raise SlugNotFound()

    slug_id, offer_id, affiliate_url = row
    return ResolvedSlug(slug_id=slug_id, offer_id=offer_id, affiliate_url=affiliate_url)
