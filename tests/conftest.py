"""Shared test fixtures."""

import json
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.database import create_engine, create_session_factory  # noqa: E402
from sleep.adapters.fixture import FixtureSampleSource  # noqa: E402
from sleep.domain.models import SleepCategory, SleepSample, StoredSleepEntry  # noqa: E402
from sleep.domain.orm import Base  # noqa: E402
from sleep.repository import SleepCacheRepository  # noqa: E402
from sleep.store import SleepStore  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
NOW = datetime(2024, 3, 20, 12, 0, tzinfo=UTC)
CACHE_LENGTH = timedelta(hours=24)


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES_DIR / name).read_text())


def make_sample(
    start: datetime,
    minutes: int = 480,
    value: int = SleepCategory.IN_BED,
    uuid: UUID | None = None,
    **metadata,
) -> SleepSample:
    return SleepSample(
        uuid=uuid or uuid4(),
        start_date=start,
        end_date=start + timedelta(minutes=minutes),
        value=int(value),
        metadata=metadata,
    )


def make_entry(
    start: datetime,
    minutes: int = 480,
    value: int = SleepCategory.IN_BED,
    id: UUID | None = None,
    sync_identifier: str | None = None,
    sync_version: int = 1,
) -> StoredSleepEntry:
    return StoredSleepEntry(
        id=id or uuid4(),
        sync_identifier=sync_identifier,
        sync_version=sync_version,
        start_date=start,
        end_date=start + timedelta(minutes=minutes),
        value=int(value),
    )


@pytest.fixture
def source_response():
    return load_fixture("sleep_analysis_response.json")


@pytest.fixture
async def async_engine(tmp_path):
    """File-backed SQLite engine with the cache schema created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return create_session_factory(async_engine)


@pytest.fixture
def cache(session_factory) -> SleepCacheRepository:
    return SleepCacheRepository(session_factory)


@pytest.fixture
def source() -> FixtureSampleSource:
    return FixtureSampleSource()


@pytest.fixture
def store(source, cache) -> SleepStore:
    """SleepStore with a frozen clock: the retention window starts at NOW - 24h."""
    return SleepStore(source, cache, CACHE_LENGTH, clock=lambda: NOW)
