"""Integration test: cache repository and store against real Postgres.

Verifies check-then-insert upserts, replacement and chunked deletes with
native timezone-aware timestamps and UUID columns.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from sleep.adapters.fixture import FixtureSampleSource
from sleep.domain.models import SleepCategory
from sleep.domain.orm import CachedSleepModel
from sleep.repository import SleepCacheRepository
from sleep.store import SleepStore
from tests.conftest import make_entry, make_sample

pytestmark = pytest.mark.integration

T0 = datetime(2024, 3, 14, 23, 0, tzinfo=UTC)


async def test_upsert_same_id_twice_yields_one_row(session_factory, db_session):
    cache = SleepCacheRepository(session_factory)
    entry_id = uuid4()

    assert await cache.upsert(make_entry(T0, id=entry_id)) is True
    assert await cache.upsert(make_entry(T0, value=SleepCategory.ASLEEP, id=entry_id)) is False

    count = await db_session.execute(
        select(func.count()).where(CachedSleepModel.uuid == entry_id)
    )
    assert count.scalar_one() == 1

    newer = make_entry(T0 + timedelta(minutes=5), value=SleepCategory.ASLEEP, id=entry_id)
    await cache.replace(entry_id, newer)
    [cached] = await cache.query()
    assert cached.value == SleepCategory.ASLEEP
    assert cached.start_date == newer.start_date


async def test_batch_delete_across_chunk_boundary(session_factory):
    cache = SleepCacheRepository(session_factory)
    entries = [make_entry(T0 + timedelta(minutes=i)) for i in range(3)]
    for entry in entries:
        await cache.upsert(entry)

    ids = [uuid4() for _ in range(498)] + [e.id for e in entries]
    assert await cache.delete_batch(ids) == 3
    assert await cache.query() == []


async def test_store_falls_back_to_cache(session_factory):
    source = FixtureSampleSource()
    cache = SleepCacheRepository(session_factory)
    now = T0 + timedelta(days=30)
    store = SleepStore(source, cache, timedelta(hours=24), clock=lambda: now)

    sample = make_sample(T0)
    await store.add_sample(sample)
    source.fail_with = ConnectionError("offline")

    result = await store.get_samples(T0 - timedelta(days=1), T0 + timedelta(days=1))
    assert [e.id for e in result] == [sample.uuid]
