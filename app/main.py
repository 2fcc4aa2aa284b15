"""
BuyerNepal referral tracking: slug redirects, click attribution, postbacks.
Main application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.analytics import router as analytics_router
from app.api.events import router as events_router
from app.api.postback import router as postback_router
from app.api.redirect import router as redirect_router
from app.api.refer_slugs import router as refer_slugs_router
from app.config import Settings, get_settings
from app.core.context import AppContext
from app.core.errors import TrackingError
from app.middleware.security import SecurityHeadersMiddleware

import structlog

VERSION = "0.1.0"

logger = structlog.get_logger()


def configure_logging(debug: bool):
    processors = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    structlog.configure(processors=processors)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ctx: AppContext = app.state.ctx
    logger.info("referrals_starting", base_url=ctx.settings.base_url)
    yield
    # Let in-flight click writes finish before the pool goes away
    await ctx.tasks.drain(timeout=ctx.settings.detached_drain_timeout_seconds)
    await ctx.db.dispose()
    logger.info("referrals_shutting_down")


async def tracking_error_handler(request: Request, exc: TrackingError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "message": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "message": "Validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.debug)

    app = FastAPI(
        title=settings.app_name,
        description="Referral redirects and affiliate click-to-conversion attribution.",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.ctx = AppContext.from_settings(settings)

    app.add_exception_handler(TrackingError, tracking_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Security headers on every response
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins,
        allow_credentials=not settings.debug,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["X-API-Key", "Content-Type"],
    )

    # --- Routes ---
    app.include_router(redirect_router)
    app.include_router(postback_router)
    app.include_router(events_router)
    app.include_router(refer_slugs_router)
    app.include_router(analytics_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "referrals", "version": VERSION}

    return app


app = create_app()
