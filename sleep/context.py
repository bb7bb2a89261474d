"""Process-wide sleep cache context.

Built once at startup from Settings and passed to whatever needs it:
engine, session factory, sample source, cache repository, statistics and
the SleepStore that ties them together. close() releases the engine.
"""

from dataclasses import dataclass
from datetime import tzinfo

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from shared.config import Settings
from shared.database import create_engine, create_session_factory
from sleep.adapters.factory import get_source
from sleep.adapters.protocol import SleepSampleSource
from sleep.domain.orm import Base
from sleep.repository import SleepCacheRepository
from sleep.statistics import SleepStatistics
from sleep.store import SleepStore

logger = structlog.get_logger()


@dataclass
class SleepKitContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker
    source: SleepSampleSource
    cache: SleepCacheRepository
    statistics: SleepStatistics
    store: SleepStore

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        source: SleepSampleSource | None = None,
        default_tz: tzinfo | None = None,
    ) -> "SleepKitContext":
        engine = create_engine(settings.database_url)
        session_factory = create_session_factory(engine)
        source = source if source is not None else get_source(settings)
        cache = SleepCacheRepository(session_factory)
        statistics = SleepStatistics(source, default_tz=default_tz)
        store = SleepStore(
            source,
            cache,
            settings.cache_length,
            statistics=statistics,
            cache_fast_path=settings.cache_fast_path,
            delete_batch_size=settings.delete_batch_size,
        )
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            source=source,
            cache=cache,
            statistics=statistics,
            store=store,
        )

    async def start(self) -> None:
        """Create the cache table when configured to (migrations own it otherwise)."""
        if self.settings.create_schema:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("cache_schema_created")

    async def close(self) -> None:
        await self.engine.dispose()
