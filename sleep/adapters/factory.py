"""Source factory: returns the fixture or live sample source based on config.

In fixture mode, samples are served from memory (optionally seeded from
a JSON fixture file). In live mode, samples are fetched from the
health-data API. Both implement the same SleepSampleSource protocol.
"""

from shared.config import Settings
from sleep.adapters.protocol import SleepSampleSource


def get_source(settings: Settings) -> SleepSampleSource:
    """Return the sample source for the configured source_mode."""
    if settings.source_mode == "live":
        from sleep.adapters.live import LiveSampleSource

        return LiveSampleSource(
            settings.source_base_url,
            settings.source_access_token,
            max_attempts=settings.retry_max_attempts,
            max_wait=settings.retry_max_wait_seconds,
        )
    if settings.source_mode == "fixture":
        from sleep.adapters.fixture import FixtureSampleSource

        if settings.fixture_path:
            return FixtureSampleSource.from_file(settings.fixture_path)
        return FixtureSampleSource()
    raise ValueError(
        f"Unsupported source_mode: {settings.source_mode}. Must be one of: fixture, live"
    )
