"""Sleep sample domain models.

Two shapes of the same interval:
- SleepSample: what the external health-data source hands us, with its
  loose metadata dictionary (sync lineage, recording timezone).
- StoredSleepEntry: the immutable record we cache and return to callers.

Identity rules:
- An entry IS its id. Equality and hashing look at nothing else, so a
  newer version of the same external sample compares equal to the old one.
- Entries sort by start_date, ascending.
"""

from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING, Any, NamedTuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from sleep.domain.orm import CachedSleepModel

METADATA_SYNC_IDENTIFIER = "sync_identifier"
METADATA_SYNC_VERSION = "sync_version"
METADATA_TIME_ZONE = "time_zone"

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def clamp_int32(value: int) -> int:
    """Clamp to the signed 32-bit range used by the cache columns."""
    return max(INT32_MIN, min(INT32_MAX, value))


class SleepCategory(IntEnum):
    """Sleep analysis category codes used by the health-data source."""

    IN_BED = 0
    ASLEEP = 1
    AWAKE = 2
    ASLEEP_CORE = 3
    ASLEEP_DEEP = 4
    ASLEEP_REM = 5


class HourAndMinute(NamedTuple):
    hour: int
    minute: int


class SleepSample(BaseModel):
    """One category sample as reported by the external source."""

    model_config = ConfigDict(frozen=True)

    uuid: UUID
    start_date: datetime
    end_date: datetime
    value: int
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def sync_identifier(self) -> str | None:
        ident = self.metadata.get(METADATA_SYNC_IDENTIFIER)
        return ident if isinstance(ident, str) else None

    @property
    def sync_version(self) -> int:
        version = self.metadata.get(METADATA_SYNC_VERSION)
        if isinstance(version, int) and not isinstance(version, bool):
            return version
        return 1

    @property
    def time_zone(self) -> str | None:
        tz = self.metadata.get(METADATA_TIME_ZONE)
        return tz if isinstance(tz, str) and tz else None


class DeletedSample(BaseModel):
    """Tombstone for a sample removed at the source."""

    uuid: UUID


class SampleUpdate(BaseModel):
    old: SleepSample
    new: SleepSample


class SampleChanges(BaseModel):
    """One delivery from the source's change feed."""

    added: list[SleepSample] = Field(default_factory=list)
    updated: list[SampleUpdate] = Field(default_factory=list)
    deleted: list[DeletedSample] = Field(default_factory=list)


class StoredSleepEntry(BaseModel):
    """Cached sleep interval. Identity is `id`, ordering is `start_date`."""

    model_config = ConfigDict(frozen=True)

    id: UUID

    # Sync lineage from the source system
    sync_identifier: str | None = None
    sync_version: int = 1

    # Interval
    start_date: datetime
    end_date: datetime
    value: int

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StoredSleepEntry):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __lt__(self, other: "StoredSleepEntry") -> bool:
        if not isinstance(other, StoredSleepEntry):
            return NotImplemented
        return self.start_date < other.start_date

    def __le__(self, other: "StoredSleepEntry") -> bool:
        if not isinstance(other, StoredSleepEntry):
            return NotImplemented
        return self.start_date <= other.start_date

    def __gt__(self, other: "StoredSleepEntry") -> bool:
        if not isinstance(other, StoredSleepEntry):
            return NotImplemented
        return self.start_date > other.start_date

    def __ge__(self, other: "StoredSleepEntry") -> bool:
        if not isinstance(other, StoredSleepEntry):
            return NotImplemented
        return self.start_date >= other.start_date

    @classmethod
    def from_sample(cls, sample: SleepSample) -> "StoredSleepEntry":
        return cls(
            id=sample.uuid,
            sync_identifier=sample.sync_identifier,
            sync_version=sample.sync_version,
            start_date=sample.start_date,
            end_date=sample.end_date,
            value=sample.value,
        )

    @classmethod
    def from_orm_row(cls, row: "CachedSleepModel") -> "StoredSleepEntry":
        return cls(
            id=row.uuid,
            sync_identifier=row.sync_identifier,
            sync_version=row.sync_version,
            start_date=row.start_date,
            end_date=row.end_date,
            value=row.value,
        )
