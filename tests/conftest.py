import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from masqani.core.get_db import Base
from masqani.core.redis_idempotency import LocalIdempotency
from masqani.models import models  # noqa: F401
from masqani.models.enums import UnitType, UserRole
from masqani.repos.account_repo import AccountRepo
from masqani.repos.listing_repo import ListingRepo
from masqani.schemas.schema import ProfileSaveSchema
from masqani.services.activation_service import ActivationService
from masqani.services.transaction_engine import TransactionEngine
from masqani.services.unlock_service import UnlockService

from fakes import PHOTO_URLS, ScriptedGateway


@pytest.fixture
async def sql_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return async_sessionmaker(bind=sql_engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def tx_engine(gateway):
    return TransactionEngine(gateway, LocalIdempotency("test-tx"), timeout=1.0)


@pytest.fixture
def unlocks(tx_engine, session_factory):
    return UnlockService(tx_engine, session_factory)


@pytest.fixture
def activations(tx_engine, session_factory):
    return ActivationService(tx_engine, session_factory)


@pytest.fixture
def make_profile(session_factory):
    async def _make(user_id, role=UserRole.TENANT, **fields):
        async with session_factory() as session:
            return await AccountRepo(session).save_profile(
                ProfileSaveSchema(id=user_id, role=role, **fields)
            )

    return _make


@pytest.fixture
def make_listing(session_factory):
    async def _make(**overrides):
        data = {
            "landlord_id": "landlord-1",
            "title": "Baraka Apartments",
            "unit_type": UnitType.BEDSITTER,
            "price": 6500,
            "deposit": 6500,
            "location_name": "Kimana",
            "photos": list(PHOTO_URLS),
            "landlord_name": "Mama Wanjiru",
            "landlord_phone": "0712000111",
        }
        data.update(overrides)
        async with session_factory() as session:
            repo = ListingRepo(session)
            listing_id = await repo.create_listing(data)
            return await repo.get_listing(listing_id)

    return _make
