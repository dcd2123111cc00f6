"""Rate-limited error reporting.

Every unexpected failure passes through a RateLimitedReporter before it is
shown to the user. The reporter classifies the error, stores a structured
record in a bounded ring buffer and optionally forwards it to other sinks
(console logging today, a remote collector later).

A sliding window per context caps how many events are recorded, so a failing
call site cannot flood the log. Suppression only affects logging: the caller
still sees the original exception.

The reporter never raises. Internal faults while formatting or storing an
event are reduced to a console warning.
"""

from __future__ import annotations

import json
import logging
import time
import traceback
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

import httpx

from stratflow_lite.exceptions import ApiError
from stratflow_lite.lite_logging import ERROR_EVENTS_LOGGER

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS_PER_WINDOW = 10
DEFAULT_WINDOW_MS = 60_000
DEFAULT_BUFFER_SIZE = 100


class Severity(str, Enum):
    """Severity attached to each recorded event. Metadata only."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"


class ReportOutcome(str, Enum):
    """Result of a report() call."""

    LOGGED = "logged"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


def _status_of(error: BaseException) -> Optional[int]:
    """Extract an HTTP status from the error shape, if it has one."""
    if isinstance(error, ApiError):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def _is_network_error(error: BaseException) -> bool:
    if isinstance(error, (httpx.RequestError, ConnectionError, TimeoutError)):
        return True
    return "network" in str(error).lower() or type(error).__name__ == "NetworkError"


def classify_severity(error: BaseException) -> Severity:
    """Classify an error.

    - HTTP status >= 500 -> critical
    - HTTP status 400-499 -> error
    - no status, network-class failure -> critical
    - everything else -> warning
    """
    status = _status_of(error)
    if status is not None:
        if status >= 500:
            return Severity.CRITICAL
        if status >= 400:
            return Severity.ERROR
        return Severity.WARNING
    if _is_network_error(error):
        return Severity.CRITICAL
    return Severity.WARNING


@dataclass
class ErrorEvent:
    """Structured record of one reported error."""

    message: str
    context: str
    severity: Severity
    error_type: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    status: Optional[int] = None
    data: Any = None
    endpoint: Optional[str] = None
    method: Optional[str] = None
    stack: Optional[str] = None

    @classmethod
    def from_exception(cls, error: BaseException, context: str) -> "ErrorEvent":
        message = str(error) or "Unknown error"
        if isinstance(error, ApiError):
            message = error.message

        stack = None
        if error.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))

        event = cls(
            message=message,
            context=context,
            severity=classify_severity(error),
            error_type=type(error).__name__,
            stack=stack,
        )

        if isinstance(error, ApiError):
            event.status = error.status_code
            event.data = error.data
            event.endpoint = error.endpoint
            event.method = error.method
        elif isinstance(error, httpx.HTTPStatusError):
            event.status = error.response.status_code
            event.endpoint = str(error.request.url)
            event.method = error.request.method
        return event

    def to_dict(self) -> dict[str, Any]:
        entry = asdict(self)
        entry["severity"] = self.severity.value
        return {key: value for key, value in entry.items() if value is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


class LogSink(Protocol):
    """Destination for accepted events."""

    def record(self, event: ErrorEvent) -> None: ...


class RingBufferSink:
    """Keeps the most recent events in memory; oldest evicted first."""

    def __init__(self, max_logs: int = DEFAULT_BUFFER_SIZE):
        self.max_logs = max_logs
        self._logs: deque[ErrorEvent] = deque(maxlen=max_logs)

    def record(self, event: ErrorEvent) -> None:
        self._logs.append(event)

    def get_stored_logs(self) -> list[ErrorEvent]:
        return list(self._logs)

    def clear(self) -> None:
        self._logs.clear()

    def __len__(self) -> int:
        return len(self._logs)


_SEVERITY_LEVELS = {
    Severity.CRITICAL: logging.CRITICAL,
    Severity.ERROR: logging.ERROR,
    Severity.WARNING: logging.WARNING,
}


class ConsoleLogSink:
    """Forwards events to the ``stratflow_lite.errors`` logger."""

    def __init__(self, logger_name: str = ERROR_EVENTS_LOGGER):
        self._logger = logging.getLogger(logger_name)

    def record(self, event: ErrorEvent) -> None:
        self._logger.log(
            _SEVERITY_LEVELS.get(event.severity, logging.WARNING),
            "[%s] %s (status=%s, endpoint=%s)",
            event.context,
            event.message,
            event.status,
            event.endpoint,
        )


class RateLimitedReporter:
    """Gate in front of the log sinks with a per-context sliding window.

    One instance is shared by every service in a process; its window doubles
    as a throttle across unrelated features.
    """

    def __init__(
        self,
        sinks: Optional[Iterable[LogSink]] = None,
        max_events_per_window: int = DEFAULT_MAX_EVENTS_PER_WINDOW,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = time.monotonic,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        console: bool = False,
    ):
        """Initialize reporter.

        Args:
            sinks: Extra sinks receiving accepted events
            max_events_per_window: Events recorded per context per window
            window_ms: Sliding window length in milliseconds
            clock: Time source in seconds (injectable for tests)
            buffer_size: Capacity of the in-memory ring buffer
            console: Also forward accepted events to the console logger
        """
        self.max_events_per_window = max_events_per_window
        self.window_ms = window_ms
        self._clock = clock

        self.buffer = RingBufferSink(buffer_size)
        self._sinks: list[LogSink] = [self.buffer, *(sinks or [])]
        if console:
            self._sinks.append(ConsoleLogSink())

        self._windows: dict[str, deque[float]] = {}
        self._stats = {"total": 0, "logged": 0, "suppressed": 0, "failed": 0}

    def _recent(self, context: str, now: float) -> deque[float]:
        """Drop timestamps that fell out of the window and return the rest.

        A context with no live timestamps is forgotten.
        """
        window = self._windows.get(context)
        if window is None:
            return deque()
        window_seconds = self.window_ms / 1000.0
        while window and now - window[0] >= window_seconds:
            window.popleft()
        if not window:
            del self._windows[context]
        return window

    def is_rate_limited(self, context: str) -> bool:
        """True if the next event for context would be suppressed."""
        return len(self._recent(context, self._clock())) >= self.max_events_per_window

    def report(self, error: BaseException, context: str = "") -> ReportOutcome:
        """Record an error unless its context is over quota.

        Args:
            error: The exception that occurred
            context: Partition key, usually "<Service>:<method>"

        Returns:
            LOGGED, SUPPRESSED, or FAILED if recording itself broke
        """
        self._stats["total"] += 1
        try:
            now = self._clock()
            window = self._recent(context, now)
            if len(window) >= self.max_events_per_window:
                self._stats["suppressed"] += 1
                logger.warning("Error logging rate limited for context: %s", context)
                return ReportOutcome.SUPPRESSED

            event = ErrorEvent.from_exception(error, context)
            window.append(now)
            self._windows[context] = window
            for sink in self._sinks:
                try:
                    sink.record(event)
                except Exception as e:
                    logger.warning("Log sink %s failed to record event: %s", type(sink).__name__, e)

            self._stats["logged"] += 1
            return ReportOutcome.LOGGED
        except Exception as e:
            self._stats["failed"] += 1
            logger.warning("Failed to log error: %s", e)
            return ReportOutcome.FAILED

    def get_stored_logs(self) -> list[dict[str, Any]]:
        """Snapshot of the ring buffer as dictionaries, oldest first."""
        return [event.to_dict() for event in self.buffer.get_stored_logs()]

    def clear_logs(self) -> None:
        """Empty the ring buffer and forget all rate-limit windows."""
        self.buffer.clear()
        self._windows.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "tracked_contexts": len(self._windows),
            "stored_logs": len(self.buffer),
            "config": {
                "max_events_per_window": self.max_events_per_window,
                "window_ms": self.window_ms,
                "buffer_size": self.buffer.max_logs,
            },
        }
