"""Average sleep start time from recent source samples.

Always asks the sample source directly; the cache is never consulted.

Algorithm:
1. Newest `sample_limit` in-bed samples.
2. No in-bed data at all → the same query for asleep samples, whose
   outcome is final. Any other failure is final immediately.
3. Each sample's start time becomes seconds since midnight in the zone it
   was recorded in (metadata), else in the default zone.
4. Integer mean of those seconds → (hour, minute).

The mean is a plain arithmetic mean of clock times, so bedtimes on either
side of midnight (23:30 and 00:30) average to midday rather than midnight.
"""

from collections.abc import Sequence
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from shared.metrics import statistic_fallbacks_total
from sleep.adapters.protocol import SleepSampleSource
from sleep.domain.errors import (
    NoSleepDataAvailableError,
    QueryError,
    SampleShapeError,
    UnknownReturnConfigurationError,
)
from sleep.domain.models import HourAndMinute, SleepCategory, SleepSample

logger = structlog.get_logger()

DEFAULT_SAMPLE_LIMIT = 30


def is_sample_sequence(result: object) -> bool:
    return isinstance(result, Sequence) and all(isinstance(s, SleepSample) for s in result)


def time_of_day_in_seconds(moment: datetime, zone: tzinfo | None) -> int:
    """Seconds since local midnight of `moment` in `zone` (process local zone if None)."""
    local = moment.astimezone(zone)
    return local.hour * 3600 + local.minute * 60 + local.second


class SleepStatistics:
    def __init__(self, source: SleepSampleSource, default_tz: tzinfo | None = None):
        self.source = source
        self.default_tz = default_tz

    async def average_start_time(self, sample_limit: int = DEFAULT_SAMPLE_LIMIT) -> HourAndMinute:
        """Average start time of day of the most recent in-bed (or asleep) samples.

        Raises:
            NoSleepDataAvailableError: Neither category has any samples.
            QueryError: The source failed to answer.
            UnknownReturnConfigurationError: The source answered with something
                other than a list of samples.
        """
        try:
            return await self._average_start_time(SleepCategory.IN_BED, sample_limit)
        except NoSleepDataAvailableError:
            # No in-bed samples; asleep samples still approximate bedtime
            statistic_fallbacks_total.inc()
            logger.info("average_start_time_falling_back", category=SleepCategory.ASLEEP.name)
            return await self._average_start_time(SleepCategory.ASLEEP, sample_limit)

    async def _average_start_time(
        self, category: SleepCategory, sample_limit: int
    ) -> HourAndMinute:
        try:
            samples = await self.source.query(
                category=category, limit=sample_limit, ascending=False
            )
        except SampleShapeError as exc:
            logger.error("sleep_data_shape_unexpected", category=category.name, error=str(exc))
            raise UnknownReturnConfigurationError() from exc
        except Exception as exc:
            logger.error("sleep_data_query_failed", category=category.name, error=str(exc))
            raise QueryError(str(exc)) from exc

        if not is_sample_sequence(samples):
            raise UnknownReturnConfigurationError()
        if not samples:
            raise NoSleepDataAvailableError()

        total = sum(time_of_day_in_seconds(s.start_date, self._zone_for(s)) for s in samples)
        average = total // len(samples)
        return HourAndMinute(hour=average // 3600, minute=average % 3600 // 60)

    def _zone_for(self, sample: SleepSample) -> tzinfo | None:
        if sample.time_zone is None:
            return self.default_tz
        try:
            return ZoneInfo(sample.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "sample_time_zone_unknown",
                sample_id=str(sample.uuid),
                time_zone=sample.time_zone,
            )
            return self.default_tz
