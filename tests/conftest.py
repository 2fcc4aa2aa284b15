"""Pytest configuration."""

import asyncio
import os

# Ensure test environment
os.environ.setdefault("BN_DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("BN_DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config import Settings
from app.main import create_app
from app.models.tables import Base, ProductOffer, ReferralSlug

DARAZ_SECRET = "daraz-test-secret"
GENERIC_SECRET = "impact-test-secret"
ADMIN_KEY = "admin-test-key"

AFFILIATE_URL = "https://vendor.example/p/42?ref=x"
SKU_AFFILIATE_URL = "https://vendor.example/p/43?ref=y"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'referrals.db'}",
        debug=True,
        postback_secrets={"daraz": DARAZ_SECRET, "impact": GENERIC_SECRET},
        admin_api_key=ADMIN_KEY,
        detached_drain_timeout_seconds=5.0,
    )


@pytest.fixture
def run_db(settings):
    """Run `fn(session)` against the test database and return its result."""
    def _run(fn):
        async def _go():
            engine = create_async_engine(settings.database_url, poolclass=NullPool)
            try:
                maker = async_sessionmaker(engine, expire_on_commit=False)
                async with maker() as session:
                    return await fn(session)
            finally:
                await engine.dispose()
        return asyncio.run(_go())
    return _run


@pytest.fixture
def fetch_all(run_db):
    """All rows of a model, ordered by id."""
    def _fetch(model):
        async def _q(session):
            result = await session.execute(select(model).order_by(model.id))
            return result.scalars().all()
        return run_db(_q)
    return _fetch


@pytest.fixture
def seeded(settings, run_db):
    """
    Offer 42 (Daraz) with active slug "abc123", a deactivated slug "old-link",
    and offer 43 (Daraz, SKU-43) with no slug.
    """
    async def _create():
        engine = create_async_engine(settings.database_url, poolclass=NullPool)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(_create())

    async def _seed(session):
        session.add_all([
            ProductOffer(id=42, product_id=7, vendor_name="Daraz", vendor_product_id="SKU-42",
                         price_cents=1299900, currency="NPR", affiliate_url=AFFILIATE_URL),
            ProductOffer(id=43, product_id=8, vendor_name="Daraz", vendor_product_id="SKU-43",
                         price_cents=499900, currency="NPR", affiliate_url=SKU_AFFILIATE_URL),
        ])
        await session.flush()
        session.add_all([
            ReferralSlug(id=1, public_slug="abc123", product_offer_id=42, campaign_tag="launch"),
            ReferralSlug(id=2, public_slug="old-link", product_offer_id=42, is_active=False),
        ])
        await session.commit()

    run_db(_seed)
    return {"offer_id": 42, "slug_id": 1, "inactive_slug_id": 2, "sku_offer_id": 43}


@pytest.fixture
def app(settings, seeded):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Context manager keeps one event loop alive so detached tasks can run
    with TestClient(app) as c:
        yield c


@pytest.fixture
def drain(client, app):
    """Wait for detached click writes spawned by earlier requests."""
    def _drain(timeout: float = 5.0):
        client.portal.call(app.state.ctx.tasks.drain, timeout)
    return _drain
