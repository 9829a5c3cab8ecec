# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Prometheus metrics for the task API."""
from prometheus_client import Counter, Histogram

USERS_CREATED = Counter("users_created_total", "Total users created")
USERS_DELETED = Counter("users_deleted_total", "Total users deleted")
TASKS_CREATED = Counter("tasks_created_total", "Total tasks created", ["assigned"])
TASKS_DELETED = Counter("tasks_deleted_total", "Total tasks deleted")
SYNC_UPDATES = Counter(
    "reference_sync_updates_total",
    "Side-updates applied to keep task assignments and pendingTasks in step",
    ["kind"],
)
SYNC_FAILURES = Counter(
    "reference_sync_failures_total",
    "Reference synchronisation steps that failed after the primary write",
    ["operation"],
)
QUERIES = Counter(
    "collection_queries_total", "Collection queries served", ["collection", "mode"]
)
REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "HTTP request latency", ["method", "endpoint"]
)
HTTP_ERRORS = Counter(
    "http_errors_total", "Total HTTP errors", ["method", "endpoint", "status"]
)
