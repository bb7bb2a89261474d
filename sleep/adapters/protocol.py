"""Sample source protocol for the external health-data service.

Fixture and live sources both implement this interface.
The sync and statistic layers depend only on the protocol, never on a
concrete source.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from sleep.domain.models import SleepCategory, SleepSample


@runtime_checkable
class SleepSampleSource(Protocol):
    """Read-only query interface over the source's sleep analysis samples."""

    source_name: str

    async def query(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        category: SleepCategory | None = None,
        limit: int | None = None,
        ascending: bool = True,
    ) -> list[SleepSample]:
        """Fetch samples whose start_date falls in [start, end).

        Args:
            start: Inclusive lower bound on start_date, or None.
            end: Exclusive upper bound on start_date, or None for no bound.
            category: Only samples with this category value, or all if None.
            limit: Maximum number of samples, or None for no limit.
            ascending: Sort by start_date ascending (True) or newest first.

        Raises:
            SampleSourceError: The source could not answer the query.
            SampleShapeError: The source answered with an unreadable payload.
        """
        ...
