"""
Prometheus metrics for schema registry resolution.

Provides instrumentation for:
- Registry request counts and latency
- Cache hits, misses and replayed errors
- Errors by category
"""

from prometheus_client import Counter, Histogram

# Registry round-trips
registry_requests_total = Counter(
    "schema_registry_requests_total",
    "Total number of HTTP requests issued to the schema registry",
    ["method", "status"],  # status: HTTP status code or "transport_error"
)

registry_request_duration_seconds = Histogram(
    "schema_registry_request_duration_seconds",
    "Time spent waiting on schema registry requests",
    ["method"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Resolution cache
cache_lookups_total = Counter(
    "schema_cache_lookups_total",
    "Resolution cache lookups by outcome",
    ["cache", "result"],  # cache: id, strategy, reference; result: hit, miss, error_hit
)

# Error tracking by category
registry_errors_total = Counter(
    "schema_registry_errors_total",
    "Errors returned by schema resolution",
    ["error_category"],
)
