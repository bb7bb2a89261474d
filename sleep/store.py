"""SleepStore: source-first sample reads with a local cache behind them.

Read path (get_samples):
- A query that starts inside the retention window is answered from the
  cache alone when the fast path is enabled.
- Anything else asks the sample source; if the source fails for any
  reason, the cache answers the same range instead. Callers always get a
  (possibly empty) chronological list, never an error.

Write path (reconciliation): additions, updates and tombstones from the
source's change feed are applied to the cache. The store keeps no state
of its own; every cache access goes through SleepCacheRepository and its
serial queue. Source queries are awaited before that queue is entered.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog

from shared.metrics import sample_queries_total
from sleep.adapters.protocol import SleepSampleSource
from sleep.domain.errors import HealthStoreError, UnknownReturnConfigurationError
from sleep.domain.models import (
    DeletedSample,
    HourAndMinute,
    SampleChanges,
    SleepSample,
    StoredSleepEntry,
)
from sleep.repository import DEFAULT_DELETE_BATCH_SIZE, SleepCacheRepository
from sleep.statistics import DEFAULT_SAMPLE_LIMIT, SleepStatistics, is_sample_sequence

logger = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment


@dataclass
class ChangeResult:
    """Outcome of applying one change-feed delivery to the cache."""

    created: int = 0
    skipped: int = 0
    updated: int = 0
    deleted: int = 0
    purged: int = 0


class SleepStore:
    def __init__(
        self,
        source: SleepSampleSource,
        cache: SleepCacheRepository,
        cache_length: timedelta,
        *,
        statistics: SleepStatistics | None = None,
        cache_fast_path: bool = True,
        delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.source = source
        self.cache = cache
        self.cache_length = cache_length
        self.statistics = statistics or SleepStatistics(source)
        self.cache_fast_path = cache_fast_path
        self.delete_batch_size = delete_batch_size
        self._clock = clock

    @property
    def earliest_cache_date(self) -> datetime:
        return self._clock() - self.cache_length

    # --- Reads ---

    async def get_samples(
        self, start: datetime, end: datetime | None = None
    ) -> list[StoredSleepEntry]:
        """Samples with start_date in [start, end), in chronological order.

        Served from the source when possible, from the cache otherwise.
        Never raises.
        """
        start = as_utc(start)
        end = as_utc(end) if end is not None else None

        if self.cache_fast_path and start >= self.earliest_cache_date:
            sample_queries_total.labels(path="cache").inc()
            return await self.cache.query(start=start, end=end)

        try:
            entries = await self.fetch_samples(start, end)
        except HealthStoreError as exc:
            logger.warning(
                "source_query_failed_using_cache",
                start=start.isoformat(),
                end=end.isoformat() if end else None,
                error=str(exc.underlying),
            )
            sample_queries_total.labels(path="fallback").inc()
            return await self.cache.query(start=start, end=end)

        sample_queries_total.labels(path="source").inc()
        return entries

    async def fetch_samples(
        self, start: datetime, end: datetime | None = None
    ) -> list[StoredSleepEntry]:
        """Samples straight from the source, chronological by start_date.

        Raises:
            HealthStoreError: The source failed or answered with something other
                than a list of samples; wraps the original error.
        """
        start = as_utc(start)
        end = as_utc(end) if end is not None else None
        try:
            samples = await self.source.query(start=start, end=end, ascending=True)
        except Exception as exc:
            raise HealthStoreError(exc) from exc

        if not is_sample_sequence(samples):
            raise HealthStoreError(UnknownReturnConfigurationError())

        return sorted(StoredSleepEntry.from_sample(s) for s in samples)

    async def get_average_sleep_start_time(
        self, sample_limit: int = DEFAULT_SAMPLE_LIMIT
    ) -> HourAndMinute:
        return await self.statistics.average_start_time(sample_limit)

    # --- Reconciliation ---

    async def add_sample(self, sample: SleepSample) -> bool:
        return await self.add_entry(StoredSleepEntry.from_sample(sample))

    async def add_entry(self, entry: StoredSleepEntry) -> bool:
        """Cache a new entry. False if one with the same id was already cached."""
        return await self.cache.upsert(entry)

    async def update_sample(self, old: SleepSample, new: SleepSample) -> bool:
        return await self.replace_entry(
            StoredSleepEntry.from_sample(old), StoredSleepEntry.from_sample(new)
        )

    async def replace_entry(self, old: StoredSleepEntry, new: StoredSleepEntry) -> bool:
        """Overwrite the cached copy of `old` with `new`. False if `old` was not cached.

        No sync_version comparison happens here; the last replace to reach
        the cache wins.
        """
        return await self.cache.replace(old.id, new)

    async def delete_sample(self, tombstone: DeletedSample) -> bool:
        return await self.cache.delete(tombstone.uuid)

    async def delete_entry(self, entry: StoredSleepEntry) -> bool:
        return await self.cache.delete(entry.id)

    async def delete_samples(self, ids: Sequence[UUID]) -> int:
        return await self.cache.delete_batch(ids, batch_size=self.delete_batch_size)

    async def apply_changes(self, changes: SampleChanges) -> ChangeResult:
        """Apply a change-feed delivery: deletions, then additions, then updates.

        A sample added and edited in the same delivery ends up at its newest
        version. Updates whose old sample is not cached
        are not counted.

        Entries that ended before the retention window are purged afterwards.
        """
        result = ChangeResult()

        if changes.deleted:
            result.deleted = await self.delete_samples([d.uuid for d in changes.deleted])

        for sample in changes.added:
            if await self.add_sample(sample):
                result.created += 1
            else:
                result.skipped += 1

        for update in changes.updated:
            if await self.update_sample(update.old, update.new):
                result.updated += 1

        result.purged = await self.purge_expired_entries()

        logger.info(
            "changes_applied",
            created=result.created,
            skipped=result.skipped,
            updated=result.updated,
            deleted=result.deleted,
            purged=result.purged,
        )
        return result

    async def purge_expired_entries(self) -> int:
        return await self.cache.purge_older_than(self.earliest_cache_date)
