"""Core resilience and scheduling utilities."""

from stratflow_lite.core.error_reporter import (
    ErrorEvent,
    RateLimitedReporter,
    ReportOutcome,
    Severity,
    classify_severity,
)
from stratflow_lite.core.expiring_cache import ExpiringCache
from stratflow_lite.core.recurrence import (
    Frequency,
    RecurrenceExpander,
    RecurrenceRequest,
    expand_occurrences,
    validate_recurrence_request,
)
from stratflow_lite.core.retry import RetryingInvoker, RetryPolicy, compute_backoff_delay

__all__ = [
    "ErrorEvent",
    "ExpiringCache",
    "Frequency",
    "RateLimitedReporter",
    "RecurrenceExpander",
    "RecurrenceRequest",
    "ReportOutcome",
    "RetryPolicy",
    "RetryingInvoker",
    "Severity",
    "classify_severity",
    "compute_backoff_delay",
    "expand_occurrences",
    "validate_recurrence_request",
]
