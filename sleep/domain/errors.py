"""Sleep store error taxonomy.

Cache failures never appear here: the cache degrades to empty results.
These errors describe what went wrong talking to the sample source or
computing a statistic from its data.
"""


class SampleSourceError(Exception):
    """Raised by sample source adapters when a query cannot be answered."""


class SampleShapeError(SampleSourceError):
    """The source answered, but not with a readable list of samples."""


class SleepStoreError(Exception):
    """Base class for errors surfaced by SleepStore and SleepStatistics."""


class NoMatchingBedtimeError(SleepStoreError):
    def __init__(self):
        super().__init__("No sample matched the requested bedtime")


class UnknownReturnConfigurationError(SleepStoreError):
    def __init__(self):
        super().__init__("Sample source returned a result of an unexpected shape")


class NoSleepDataAvailableError(SleepStoreError):
    def __init__(self):
        super().__init__("No sleep data available")


class QueryError(SleepStoreError):
    """The source reported an error for a statistic query."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(description)


class HealthStoreError(SleepStoreError):
    """Raw failure from the source on the plain sample fetch path."""

    def __init__(self, underlying: BaseException):
        self.underlying = underlying
        super().__init__(f"Sample source request failed: {underlying}")
