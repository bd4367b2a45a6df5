"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from namaste_sync.repositories.local_store import LocalFallbackStore
from namaste_sync.repositories.remote_store import RemoteMappingStore
from namaste_sync.repositories.store import StoreMode
from namaste_sync.schemas.audit import ActorContext
from namaste_sync.schemas.terminology import Category, MappingRecord
from namaste_sync.services.gateway import HybridPersistenceGateway
from namaste_sync.services.terminology_service import TerminologyService

PROBE_TIMEOUT = 0.05

VALID_HEADER = (
    "namaste_code,namaste_term,category,chapter_name,"
    "icd11_tm2_code,icd11_tm2_description,icd11_biomedicine_code,confidence_score"
)


class UnreachableRemote:
    """Remote store whose probe never answers within the timeout."""

    mode = StoreMode.REMOTE

    def __init__(self, delay: float = 5.0) -> None:
        self.delay = delay
        self.pings = 0

    async def ping(self) -> None:
        self.pings += 1
        await asyncio.sleep(self.delay)


class BrokenRemote:
    """Remote store whose driver fails immediately."""

    mode = StoreMode.REMOTE

    def __init__(self) -> None:
        self.pings = 0

    async def ping(self) -> None:
        self.pings += 1
        raise ConnectionRefusedError("connection refused")


def make_record(code: str, **overrides) -> MappingRecord:
    values = {
        "code": code,
        "term": f"Term {code}",
        "category": Category.AYURVEDA,
        "group": "General Disorders",
        "tm2_code": f"TM-{code}",
        "tm2_description": f"Description {code}",
        "biomedicine_code": f"BIO-{code}",
        "confidence": 0.9,
    }
    values.update(overrides)
    return MappingRecord(**values)


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def local_store(store_dir: Path) -> LocalFallbackStore:
    return LocalFallbackStore(store_dir)


@pytest.fixture
def actor() -> ActorContext:
    return ActorContext(
        actor_id="demo-user-123",
        actor_name="Dr. Priya Sharma",
        ip_address="127.0.0.1",
        user_agent="pytest",
    )


@pytest_asyncio.fixture
async def gateway(local_store: LocalFallbackStore) -> HybridPersistenceGateway:
    """LOCAL-mode gateway seeded with the built-in sample corpus."""
    gw = HybridPersistenceGateway(UnreachableRemote(), local_store, probe_timeout=PROBE_TIMEOUT)
    await gw.initialize()
    return gw


@pytest_asyncio.fixture
async def service(gateway: HybridPersistenceGateway) -> TerminologyService:
    return TerminologyService(gateway)


@pytest_asyncio.fixture
async def sqlite_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def remote_store(sqlite_engine) -> RemoteMappingStore:
    store = RemoteMappingStore(sqlite_engine)
    await store.create_schema()
    return store
