"""
Authentication for non-public endpoints.

Two credentials, neither session-based:
  - Operator key (X-API-Key header): guards /admin/*. Compared as SHA-256
    digests in constant time; the configured key is never echoed back.
  - Postback secret: one shared secret per vendor, sent by the affiliate
    network as ?secret= or X-Postback-Secret. A mismatch is logged as a
    possible attack and rejected with 401 before the body is read.
"""

import hashlib
import hmac

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader

from app.config import Settings
from app.core.click_logger import client_ip, hash_ip
from app.core.context import AppContext, get_context
from app.core.errors import Unauthorized

import structlog

logger = structlog.get_logger()

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _hash_key(raw_key: str) -> str:
    """SHA-256 hash of a raw key."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def _keys_match(provided: str | None, expected: str | None) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(_hash_key(provided), _hash_key(expected))


# ─── Operator API ──────────────────────────────────────────────────

async def require_admin(
    api_key: str | None = Security(api_key_header),
    ctx: AppContext = Depends(get_context),
) -> None:
    """Require the operator API key."""
    if not api_key:
        raise Unauthorized("Missing API key. Include X-API-Key header.")
    if not _keys_match(api_key, ctx.settings.admin_api_key):
        raise Unauthorized("Invalid API key.")


# ─── Postbacks ─────────────────────────────────────────────────────

def verify_postback_secret(settings: Settings, vendor: str, request: Request):
    """Raise Unauthorized unless the request carries the vendor's secret."""
    provided = request.query_params.get("secret") or request.headers.get("x-postback-secret")
    expected = settings.postback_secret_for(vendor)
    if _keys_match(provided, expected):
        return

    logger.warning(
        "postback_unauthorized",
        vendor=vendor,
        secret_present=bool(provided),
        vendor_configured=bool(expected),
        ip_hash=hash_ip(client_ip(request), settings.ip_hash_salt),
    )
    raise Unauthorized()
