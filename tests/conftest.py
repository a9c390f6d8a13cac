# -*- coding: utf-8 -*-
"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for the Guincho Fácil test suite. Every test gets its own
on-disk SQLite database so concurrent sessions behave like separate clients.
"""

import os
import tempfile
import uuid
from datetime import datetime

# Set test environment before guincho.core.config is imported
os.environ["ADMIN_PASSWORD"] = "test-admin-secret"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="guincho-logs-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(os.environ["LOG_DIR"], "unused.db")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guincho.core.database import build_engine, get_db, init_models
from guincho.models.provider import Provider
from guincho.models.provider_customization import ProviderCustomization
from guincho.models.provider_subscription import ProviderSubscription


def generate_unique_id(prefix: str = "") -> str:
    """Generate a unique ID for test fixtures"""
    return f"{prefix}{uuid.uuid4()}"


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    """Test database engine - one SQLite file per test"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'guincho-test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    """A session for arranging and asserting state"""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """HTTP client bound to the app with the test database"""
    from guincho.server import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# =============================================================================
# MODEL FIXTURES
# =============================================================================

@pytest.fixture
def make_provider(db):
    """Factory for providers, optionally with a subscription row and branding"""

    async def _make(
            name: str = "Guincho do João",
            whatsapp: str = "(11) 98765-4321",
            slug: str = None,
            subscription: dict = None,
            customization: dict = None,
            **fields,
    ) -> Provider:
        provider = Provider(
            id=generate_unique_id(),
            name=name,
            whatsapp=whatsapp,
            slug=slug,
            latitude=fields.pop("latitude", -23.5505),
            longitude=fields.pop("longitude", -46.6333),
            has_patins=fields.pop("has_patins", False),
            service_types=fields.pop("service_types", ["guincho_completo"]),
            base_price=fields.pop("base_price", 50),
            price_per_km=fields.pop("price_per_km", 5),
            patins_extra_price=fields.pop("patins_extra_price", 30),
            created_at=datetime.utcnow(),
            **fields,
        )
        db.add(provider)
        if subscription is not None:
            values = {
                "trial_ativo": False,
                "trial_corridas_restantes": 0,
                "adesao_paga": False,
                "corridas_usadas": 0,
                "limite_corridas": 0,
                "mensalidade_atual": 0,
            }
            values.update(subscription)
            db.add(ProviderSubscription(id=generate_unique_id(), provider_id=provider.id, **values))
        if customization is not None:
            db.add(ProviderCustomization(id=generate_unique_id(), provider_id=provider.id, **customization))
        await db.commit()
        return provider

    return _make


@pytest.fixture
def fetch_subscription(session_factory):
    """Read a provider's row through a fresh session"""

    async def _fetch(provider_id: str):
        from guincho.services.subscription_service import get_subscription_row

        async with session_factory() as session:
            return await get_subscription_row(session, provider_id)

    return _fetch
