"""Prometheus metrics for cache and source observability.

Counters and histograms around the cache, the sample source and the API.
Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Sync counters
sample_queries_total = Counter(
    "sample_queries_total",
    "Total sample queries by the path that served them",
    ["path"],  # path: cache, source, fallback
)

cache_operations_total = Counter(
    "cache_operations_total",
    "Total cache operations",
    ["operation", "status"],  # status: ok, noop, error
)

statistic_fallbacks_total = Counter(
    "statistic_fallbacks_total",
    "Times the average start time fell back from in-bed to asleep samples",
)

# API counters
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)

# Histograms
sample_source_duration_seconds = Histogram(
    "sample_source_duration_seconds",
    "Duration of sample source queries",
    ["source"],
)

api_response_duration_seconds = Histogram(
    "api_response_duration_seconds",
    "Duration of API responses",
    ["endpoint"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
