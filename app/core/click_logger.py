"""
Click logging: one ClickEvent per redirect.

The request context is captured synchronously while the request is still
alive (`ClickContext.from_request`); the write itself runs later in a
detached task with its own session. A failed write is logged and the click
is lost. It is never retried.

Privacy:
  - Raw IP is never stored, only sha256(salt + ip)
  - User-agent / referer are truncated (default 500 chars)
"""

import hashlib
from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.tables import ClickEvent

import structlog

logger = structlog.get_logger()

PRIVATE_PREFIXES = (
    "10.", "172.16.", "172.17.", "172.18.", "172.19.",
    "172.20.", "172.21.", "172.22.", "172.23.", "172.24.",
    "172.25.", "172.26.", "172.27.", "172.28.", "172.29.",
    "172.30.", "172.31.", "192.168.", "127.", "::1",
)


def client_ip(request: Request) -> str:
    """Real client IP: CF-Connecting-IP, then x-forwarded-for, then the socket."""
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First public IP in the chain is the client
        ips = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
        for ip in ips:
            if not ip.startswith(PRIVATE_PREFIXES):
                return ip
        if ips:
            return ips[0]
    return request.client.host if request.client else "unknown"


def hash_ip(ip: str, salt: str = "") -> str:
    """One-way SHA-256 hex digest (64 chars)."""
    return hashlib.sha256(f"{salt}{ip}".encode()).hexdigest()


def truncate(value: str | None, limit: int) -> str:
    return (value or "")[:limit]


@dataclass(frozen=True)
class ClickContext:
    ip: str
    user_agent: str
    referer: str
    country: str
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> "ClickContext":
        params = request.query_params
        return cls(
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
            referer=request.headers.get("referer", ""),
            country=request.headers.get("cf-ipcountry", ""),
            utm_source=params.get("utm_source") or None,
            utm_medium=params.get("utm_medium") or None,
            utm_campaign=params.get("utm_campaign") or None,
        )


def build_click_event(
    slug_id: int,
    offer_id: int,
    context: ClickContext,
    *,
    salt: str = "",
    max_length: int = 500,
) -> ClickEvent:
    return ClickEvent(
        refer_slug_id=slug_id,
        product_offer_id=offer_id,
        ip_hash=hash_ip(context.ip or "unknown", salt),
        user_agent=truncate(context.user_agent, max_length),
        referer=truncate(context.referer, max_length),
        country=truncate(context.country, 8),
        utm_source=context.utm_source[:255] if context.utm_source else None,
        utm_medium=context.utm_medium[:255] if context.utm_medium else None,
        utm_campaign=context.utm_campaign[:255] if context.utm_campaign else None,
    )


async def record_click(
    session_maker: async_sessionmaker[AsyncSession],
    slug_id: int,
    offer_id: int,
    context: ClickContext,
    *,
    salt: str = "",
    max_length: int = 500,
) -> int | None:
    """Insert one ClickEvent. Returns its id, or None if the write failed."""
    event = build_click_event(slug_id, offer_id, context, salt=salt, max_length=max_length)
    try:
        async with session_maker() as session:
            session.add(event)
            await session.commit()
    except Exception:
        logger.exception("click_log_failed", slug_id=slug_id, offer_id=offer_id)
        return None

    logger.info("click_logged",
                click_id=event.id,
                slug_id=slug_id,
                offer_id=offer_id,
                country=event.country or None,
                utm_source=event.utm_source)
    return event.id
