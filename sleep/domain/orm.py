"""SQLAlchemy ORM model for the sleep cache.

Tables:
- cached_sleep_entries: local copy of source sleep samples inside the
  retention window

`uuid` is the logical identity. It is indexed but deliberately not unique:
uniqueness comes from the repository's check-then-insert under its serial
lock, and `replace` may rewrite a row's uuid in place.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Index, Integer, Text, TypeDecorator, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sleep.domain.models import clamp_int32

if TYPE_CHECKING:
    from sleep.domain.models import StoredSleepEntry


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always round-trips as UTC.

    Backends without native timezone support (SQLite) hand back naive
    values; those are stored and read as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class CachedSleepModel(Base):
    __tablename__ = "cached_sleep_entries"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    uuid: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    # Sync lineage
    sync_identifier: Mapped[str | None] = mapped_column(Text, nullable=True)
    sync_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Interval
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_cached_sleep_entries_uuid", "uuid"),
        Index("idx_cached_sleep_entries_start_date", "start_date"),
    )

    def update_from(self, entry: "StoredSleepEntry") -> None:
        """Overwrite every column from an entry."""
        self.uuid = entry.id
        self.sync_identifier = entry.sync_identifier
        self.sync_version = clamp_int32(entry.sync_version)
        self.start_date = entry.start_date
        self.end_date = entry.end_date
        self.value = clamp_int32(entry.value)
