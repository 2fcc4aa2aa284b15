"""
Referral redirect: /refer/{slug}

Flow:
  1. Resolve the active slug -> affiliate URL (404 text if unknown/inactive,
     never a fallback redirect)
  2. Capture request context (IP, UA, referer, country, UTM)
  3. Spawn the click write as a detached task, NOT awaited
  4. 302 to the affiliate URL (temporary: destinations change)

Redirect latency is bounded by step 1. A slow or failing click write can
neither delay nor break the redirect.
"""

import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.click_logger import ClickContext, record_click
from app.core.context import AppContext, get_context
from app.core.errors import SlugNotFound
from app.core.slug_resolver import resolve_slug
from app.models.database import get_db

import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["redirect"])


@router.get("/refer/{slug}")
async def refer_redirect(
    request: Request,
    slug: str,
    ctx: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    started = time.monotonic()

    # --- 1. Resolve ---
    try:
        resolved = await resolve_slug(db, slug)
    except SlugNotFound as exc:
        return PlainTextResponse(exc.message, status_code=404)
    except SQLAlchemyError:
        logger.exception("refer_resolve_failed", slug=slug)
        return PlainTextResponse("An error occurred.", status_code=500)

    # --- 2 + 3. Log the click in the background ---
    click_ctx = ClickContext.from_request(request)
    settings = ctx.settings
    ctx.tasks.spawn(
        record_click(
            ctx.db.session_maker,
            resolved.slug_id,
            resolved.offer_id,
            click_ctx,
            salt=settings.ip_hash_salt,
            max_length=settings.max_header_length,
        ),
        name=f"click:{resolved.slug_id}",
    )

    logger.info("refer_redirect",
                slug=slug,
                slug_id=resolved.slug_id,
                offer_id=resolved.offer_id,
                elapsed_ms=int((time.monotonic() - started) * 1000))

    # --- 4. Redirect ---
    return RedirectResponse(url=resolved.affiliate_url, status_code=302)
