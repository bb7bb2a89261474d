"""Fixture sample source: serves samples held in memory (no HTTP).

Samples come from a JSON fixture file in the live payload format, or are
added directly. Used in fixture mode and by tests; `fail_with` makes every
query raise, to exercise the cache fallback paths.
"""

import json
from datetime import datetime
from pathlib import Path

from sleep.adapters.mapper import SampleMapper
from sleep.domain.errors import SampleSourceError
from sleep.domain.models import SleepCategory, SleepSample


class FixtureSampleSource:
    """Fixture-mode source: filters, sorts and limits an in-memory sample list."""

    source_name = "fixture"

    def __init__(self, samples: list[SleepSample] | None = None) -> None:
        self._samples: list[SleepSample] = list(samples or [])
        self.fail_with: Exception | None = None
        self.query_count = 0

    @classmethod
    def from_file(cls, path: str | Path) -> "FixtureSampleSource":
        raw = json.loads(Path(path).read_text())
        return cls(SampleMapper().parse(raw))

    @property
    def samples(self) -> list[SleepSample]:
        return list(self._samples)

    def add(self, *samples: SleepSample) -> None:
        self._samples.extend(samples)

    def remove(self, sample: SleepSample) -> None:
        self._samples = [s for s in self._samples if s.uuid != sample.uuid]

    async def query(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        category: SleepCategory | None = None,
        limit: int | None = None,
        ascending: bool = True,
    ) -> list[SleepSample]:
        self.query_count += 1
        if self.fail_with is not None:
            raise SampleSourceError(str(self.fail_with)) from self.fail_with

        matches = [
            s
            for s in self._samples
            if (start is None or s.start_date >= start)
            and (end is None or s.start_date < end)
            and (category is None or s.value == category)
        ]
        matches.sort(key=lambda s: s.start_date, reverse=not ascending)
        if limit is not None:
            matches = matches[:limit]
        return matches
