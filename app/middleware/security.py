"""
Response hardening for every route.

Tracking endpoints (/refer/, /postback/, /events, /admin/) are never cached
by browsers or CDNs: a cached 302 would skip the click write and pin an old
affiliate URL. Redirects also carry no referrer to the vendor.
"""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

NO_STORE_PREFIXES = ("/refer/", "/postback/", "/events", "/admin/")

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}

BASE_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

STRIPPED_HEADERS = ("server", "x-powered-by")


def referrer_policy(path: str) -> str:
    if path.startswith("/refer/"):
        return "no-referrer"
    return "strict-origin-when-cross-origin"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        path = request.url.path

        for name in STRIPPED_HEADERS:
            if name in response.headers:
                del response.headers[name]

        if path.startswith(NO_STORE_PREFIXES):
            response.headers.update(NO_STORE_HEADERS)

        response.headers.update(BASE_HEADERS)
        response.headers["Referrer-Policy"] = referrer_policy(path)
        response.headers.setdefault("Content-Security-Policy", "frame-ancestors 'none'")
        return response
