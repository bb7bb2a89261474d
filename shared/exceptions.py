"""RFC 9457 Problem Details exception hierarchy.

All API errors extend ProblemDetailError and are converted to
application/problem+json responses by the exception handler middleware.
"""

PROBLEM_BASE_URI = "https://api.sleepkit.dev/problems"


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class InvalidDateRangeError(ProblemDetailError):
    def __init__(self, start: str, end: str):
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/invalid-date-range",
            title="Invalid Date Range",
            status=400,
            detail=f"Parameter 'start' ({start}) must be before 'end' ({end})",
        )


class SleepDataUnavailableError(ProblemDetailError):
    def __init__(self):
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/no-sleep-data",
            title="No Sleep Data Available",
            status=404,
            detail="No in-bed or asleep samples are available to compute a bedtime.",
        )


class SampleSourceFailedError(ProblemDetailError):
    def __init__(self, detail: str):
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/sample-source-error",
            title="Sample Source Error",
            status=502,
            detail=detail,
        )


class StatisticUnavailableError(ProblemDetailError):
    def __init__(self, detail: str):
        super().__init__(
            type_uri=f"{PROBLEM_BASE_URI}/statistic-unavailable",
            title="Statistic Unavailable",
            status=500,
            detail=detail,
        )
