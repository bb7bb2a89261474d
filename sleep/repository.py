"""Sleep cache repository: all DB access for the sleep cache.

Encapsulates the cached_sleep_entries table: date-range queries,
check-then-insert upserts, in-place replacement and (batched) deletes.

Every operation runs under one asyncio.Lock, the cache's serial queue:
reads and writes never interleave, and they run in the order they were
submitted. The upsert existence check relies on that.

Storage failures never escape. Reads degrade to an empty list and writes
to "nothing changed"; both are logged.
"""

import asyncio
from collections.abc import Iterator, Sequence
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.metrics import cache_operations_total
from sleep.domain.models import StoredSleepEntry
from sleep.domain.orm import CachedSleepModel

logger = structlog.get_logger()

DEFAULT_DELETE_BATCH_SIZE = 500

# Failures a storage round-trip can raise: driver errors arrive wrapped by
# SQLAlchemy, connection refusals sometimes as bare OSError.
STORAGE_ERRORS = (SQLAlchemyError, OSError)


def chunked(items: Sequence[UUID], size: int) -> Iterator[Sequence[UUID]]:
    """Yield consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for offset in range(0, len(items), size):
        yield items[offset : offset + size]


def _has_changes(session: AsyncSession) -> bool:
    return bool(session.new or session.dirty or session.deleted)


class SleepCacheRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._queue = asyncio.Lock()

    async def query(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        ascending: bool = True,
    ) -> list[StoredSleepEntry]:
        """Fetch cached entries whose start_date falls in [start, end).

        Either bound may be None for an open range. Returns an empty list
        if the store cannot be read.
        """
        query = select(CachedSleepModel)
        if start is not None:
            query = query.where(CachedSleepModel.start_date >= start)
        if end is not None:
            query = query.where(CachedSleepModel.start_date < end)
        if ascending:
            query = query.order_by(CachedSleepModel.start_date.asc(), CachedSleepModel.pk.asc())
        else:
            query = query.order_by(CachedSleepModel.start_date.desc(), CachedSleepModel.pk.desc())

        async with self._queue:
            try:
                async with self.session_factory() as session:
                    result = await session.execute(query)
                    rows = result.scalars().all()
                    entries = [StoredSleepEntry.from_orm_row(row) for row in rows]
            except STORAGE_ERRORS:
                logger.exception("cache_query_failed", start=start, end=end)
                cache_operations_total.labels(operation="query", status="error").inc()
                return []

        cache_operations_total.labels(operation="query", status="ok").inc()
        return entries

    async def upsert(self, entry: StoredSleepEntry) -> bool:
        """Insert an entry unless one with the same id is already cached.

        Returns True if a row was created. An existing row is left untouched;
        use replace() to overwrite it.
        """
        exists_query = (
            select(CachedSleepModel.pk).where(CachedSleepModel.uuid == entry.id).limit(1)
        )

        async with self._queue:
            try:
                async with self.session_factory() as session:
                    existing = (await session.execute(exists_query)).first()
                    if existing is not None:
                        cache_operations_total.labels(operation="upsert", status="noop").inc()
                        return False

                    row = CachedSleepModel()
                    row.update_from(entry)
                    session.add(row)
                    if _has_changes(session):
                        await session.commit()
            except STORAGE_ERRORS:
                logger.exception("cache_upsert_failed", entry_id=str(entry.id))
                cache_operations_total.labels(operation="upsert", status="error").inc()
                return False

        cache_operations_total.labels(operation="upsert", status="ok").inc()
        logger.debug("cache_entry_created", entry_id=str(entry.id))
        return True

    async def replace(self, old_id: UUID, entry: StoredSleepEntry) -> bool:
        """Overwrite every cached row with id `old_id` from `entry`. True if any row matched."""
        rows_query = select(CachedSleepModel).where(CachedSleepModel.uuid == old_id)

        async with self._queue:
            try:
                async with self.session_factory() as session:
                    rows = (await session.execute(rows_query)).scalars().all()
                    for row in rows:
                        row.update_from(entry)
                    if _has_changes(session):
                        await session.commit()
            except STORAGE_ERRORS:
                logger.exception(
                    "cache_replace_failed", old_id=str(old_id), entry_id=str(entry.id)
                )
                cache_operations_total.labels(operation="replace", status="error").inc()
                return False

        status = "ok" if rows else "noop"
        cache_operations_total.labels(operation="replace", status=status).inc()
        return bool(rows)

    async def delete(self, entry_id: UUID) -> bool:
        """Delete every cached row with this id. True if any row was removed."""
        rows_query = select(CachedSleepModel).where(CachedSleepModel.uuid == entry_id)

        async with self._queue:
            try:
                async with self.session_factory() as session:
                    rows = (await session.execute(rows_query)).scalars().all()
                    for row in rows:
                        await session.delete(row)
                    if _has_changes(session):
                        await session.commit()
            except STORAGE_ERRORS:
                logger.exception("cache_delete_failed", entry_id=str(entry_id))
                cache_operations_total.labels(operation="delete", status="error").inc()
                return False

        deleted = len(rows) > 0
        cache_operations_total.labels(operation="delete", status="ok" if deleted else "noop").inc()
        return deleted

    async def delete_batch(
        self, ids: Sequence[UUID], batch_size: int = DEFAULT_DELETE_BATCH_SIZE
    ) -> int:
        """Delete cached rows for many ids, one DELETE per chunk of `batch_size`.

        Chunking keeps each IN (...) list inside the backend's parameter
        limits. Returns the total number of rows removed; ids that were never
        cached simply contribute nothing.
        """
        ids = list(ids)
        deleted = 0

        async with self._queue:
            for batch in chunked(ids, batch_size):
                stmt = (
                    delete(CachedSleepModel)
                    .where(CachedSleepModel.uuid.in_(batch))
                    .execution_options(synchronize_session=False)
                )
                try:
                    async with self.session_factory() as session:
                        result = await session.execute(stmt)
                        if result.rowcount:
                            await session.commit()
                            deleted += result.rowcount
                except STORAGE_ERRORS:
                    logger.exception("cache_batch_delete_failed", batch_size=len(batch))
                    cache_operations_total.labels(operation="delete_batch", status="error").inc()

        cache_operations_total.labels(operation="delete_batch", status="ok").inc()
        logger.info("cache_batch_deleted", requested=len(ids), deleted=deleted)
        return deleted

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Drop cached rows that ended before `cutoff`. Returns rows removed."""
        stmt = (
            delete(CachedSleepModel)
            .where(CachedSleepModel.end_date < cutoff)
            .execution_options(synchronize_session=False)
        )

        async with self._queue:
            try:
                async with self.session_factory() as session:
                    result = await session.execute(stmt)
                    purged = result.rowcount or 0
                    if purged:
                        await session.commit()
            except STORAGE_ERRORS:
                logger.exception("cache_purge_failed", cutoff=cutoff)
                cache_operations_total.labels(operation="purge", status="error").inc()
                return 0

        cache_operations_total.labels(operation="purge", status="ok").inc()
        if purged:
            logger.info("cache_purged", cutoff=cutoff.isoformat(), purged=purged)
        return purged
