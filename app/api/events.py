"""
Event batch ingestion: front-end interaction telemetry.

POST /events with a JSON array of events (page_view, cta_click, ...).
Each event becomes one audit_logs row; the whole batch is written in one
transaction. Best-effort analytics: if the write fails the batch is lost
and the caller gets a 500.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.click_logger import client_ip, hash_ip
from app.core.context import AppContext, get_context
from app.core.errors import StorageFailure
from app.models.database import get_db
from app.models.tables import AuditLog

import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["events"])


# --- Request schema ---

class TrackedEvent(BaseModel):
    type: Literal["page_view", "refer_hit", "cta_click", "coupon_apply", "pwa_install"]
    url: str | None = Field(default=None, max_length=2000)
    product_id: int | None = None
    refer_slug_id: int | None = None
    coupon_id: int | None = None


def event_target(event: TrackedEvent) -> tuple[str | None, str | None]:
    """(target_type, target_id) from the first non-zero id field."""
    if event.product_id:
        return "product", str(event.product_id)
    if event.refer_slug_id:
        return "refer_slug", str(event.refer_slug_id)
    if event.coupon_id:
        return "coupon", str(event.coupon_id)
    return None, None


# --- Endpoint ---

@router.post("/events", status_code=202)
async def track_events(
    request: Request,
    events: Annotated[list[TrackedEvent], Body(min_length=1, max_length=100)],
    ctx: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    ip_hash = hash_ip(client_ip(request), ctx.settings.ip_hash_salt)

    rows = []
    for event in events:
        target_type, target_id = event_target(event)
        rows.append(AuditLog(
            action=f"event_{event.type}",
            target_type=target_type,
            target_id=target_id,
            details=event.model_dump(exclude_none=True),
            ip_hash=ip_hash,
        ))

    try:
        db.add_all(rows)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("events_batch_failed", count=len(rows))
        raise StorageFailure("Logging failed")

    logger.info("events_batch", count=len(rows), types=sorted({e.type for e in events}))
    return {
        "status": "success",
        "logged": len(rows),
        "message": f"{len(rows)} events logged.",
    }
