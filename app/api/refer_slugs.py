"""
Referral slug management API: operators create and retire /refer/ links.

Security:
  - Requires the operator API key (X-API-Key)

Slugs are never hard-deleted: DELETE deactivates, so click_tracking rows keep
pointing at a real slug. Uniqueness of active slugs is enforced by a partial
unique index; a collision surfaces as IntegrityError -> 409.
"""

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import AppContext, get_context
from app.core.errors import Conflict, InvalidRequest, NotFound
from app.middleware.auth import require_admin
from app.models.database import get_db
from app.models.tables import INT4_MAX, ProductOffer, ReferralSlug

import structlog

logger = structlog.get_logger()
router = APIRouter(
    prefix="/admin/refer-slugs",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)

SLUG_PATTERN = r"^[a-zA-Z0-9_-]+$"


class CreateReferSlugRequest(BaseModel):
    public_slug: str = Field(min_length=3, max_length=50, pattern=SLUG_PATTERN)
    product_offer_id: int = Field(gt=0, le=INT4_MAX)
    campaign_tag: str | None = Field(default=None, max_length=100)
    is_active: bool = True


class UpdateReferSlugRequest(BaseModel):
    public_slug: str | None = Field(default=None, min_length=3, max_length=50, pattern=SLUG_PATTERN)
    product_offer_id: int | None = Field(default=None, gt=0, le=INT4_MAX)
    campaign_tag: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None


class ReferSlugResponse(BaseModel):
    id: int
    public_slug: str
    refer_url: str
    product_offer_id: int
    vendor_name: str | None
    campaign_tag: str | None
    is_active: bool


def _to_response(ctx: AppContext, slug: ReferralSlug, vendor_name: str | None) -> ReferSlugResponse:
    return ReferSlugResponse(
        id=slug.id,
        public_slug=slug.public_slug,
        refer_url=f"{ctx.settings.base_url}/refer/{slug.public_slug}",
        product_offer_id=slug.product_offer_id,
        vendor_name=vendor_name,
        campaign_tag=slug.campaign_tag,
        is_active=slug.is_active,
    )


async def _require_offer(db: AsyncSession, offer_id: int) -> ProductOffer:
    offer = await db.get(ProductOffer, offer_id)
    if offer is None:
        raise InvalidRequest(f"Product offer ID {offer_id} not found.")
    return offer


async def _get_slug(db: AsyncSession, slug_id: int) -> ReferralSlug:
    slug = await db.get(ReferralSlug, slug_id)
    if slug is None:
        raise NotFound("Refer slug not found")
    return slug


@router.get("", response_model=list[ReferSlugResponse])
async def list_refer_slugs(
    ctx: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    """Latest 50 slugs, newest first."""
    stmt = (
        select(ReferralSlug, ProductOffer.vendor_name)
        .join(ProductOffer, ReferralSlug.product_offer_id == ProductOffer.id)
        .order_by(ReferralSlug.created_at.desc(), ReferralSlug.id.desc())
        .limit(50)
    )
    result = await db.execute(stmt)
    return [_to_response(ctx, slug, vendor_name) for slug, vendor_name in result.all()]


@router.post("", response_model=ReferSlugResponse, status_code=201)
async def create_refer_slug(
    req: CreateReferSlugRequest,
    ctx: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    offer = await _require_offer(db, req.product_offer_id)

    slug = ReferralSlug(
        public_slug=req.public_slug,
        product_offer_id=req.product_offer_id,
        campaign_tag=req.campaign_tag,
        is_active=req.is_active,
    )
    db.add(slug)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Public slug already exists")
    await db.refresh(slug)

    logger.info("refer_slug_created", slug_id=slug.id, public_slug=slug.public_slug,
                offer_id=slug.product_offer_id)
    return _to_response(ctx, slug, offer.vendor_name)


@router.put("/{slug_id}", response_model=ReferSlugResponse)
async def update_refer_slug(
    req: UpdateReferSlugRequest,
    slug_id: int = Path(gt=0, le=INT4_MAX),
    ctx: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    changes = req.model_dump(exclude_unset=True)
    if not changes:
        raise InvalidRequest("No fields provided for update")

    for field in ("public_slug", "product_offer_id", "is_active"):
        if field in changes and changes[field] is None:
            raise InvalidRequest(f"{field} cannot be null")

    slug = await _get_slug(db, slug_id)
    if "product_offer_id" in changes:
        await _require_offer(db, changes["product_offer_id"])

    for field, value in changes.items():
        setattr(slug, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Public slug already exists")
    await db.refresh(slug)

    offer = await db.get(ProductOffer, slug.product_offer_id)
    logger.info("refer_slug_updated", slug_id=slug.id, fields=sorted(changes))
    return _to_response(ctx, slug, offer.vendor_name if offer else None)


@router.delete("/{slug_id}")
async def deactivate_refer_slug(
    slug_id: int = Path(gt=0, le=INT4_MAX),
    db: AsyncSession = Depends(get_db),
):
    slug = await _get_slug(db, slug_id)
    slug.is_active = False
    await db.commit()
    logger.info("refer_slug_deactivated", slug_id=slug_id, public_slug=slug.public_slug)
    return {"status": "inactive", "id": slug_id}
