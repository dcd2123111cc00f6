"""Unit tests for the rate-limited error reporter."""

import json
import logging

import httpx
import pytest

from stratflow_lite.core.error_reporter import (
    ErrorEvent,
    RateLimitedReporter,
    ReportOutcome,
    Severity,
    classify_severity,
)
from stratflow_lite.exceptions import ApiError

pytestmark = pytest.mark.unit


class ExplodingSink:
    def record(self, event):
        raise RuntimeError("sink unavailable")


class CollectingSink:
    def __init__(self):
        self.events = []

    def record(self, event):
        self.events.append(event)


def test_fifteen_rapid_events_record_ten(reporter):
    outcomes = [reporter.report(RuntimeError(f"boom {i}"), "SprintService:get_all_sprints") for i in range(15)]

    assert outcomes.count(ReportOutcome.LOGGED) == 10
    assert outcomes.count(ReportOutcome.SUPPRESSED) == 5
    assert outcomes[:10] == [ReportOutcome.LOGGED] * 10
    assert len(reporter.get_stored_logs()) == 10


def test_event_accepted_again_after_window(reporter, clock):
    for _ in range(10):
        reporter.report(RuntimeError("boom"), "ctx")
    assert reporter.report(RuntimeError("boom"), "ctx") is ReportOutcome.SUPPRESSED

    clock.advance(60.001)

    assert reporter.report(RuntimeError("boom"), "ctx") is ReportOutcome.LOGGED


def test_window_slides_per_event(clock):
    reporter = RateLimitedReporter(max_events_per_window=2, window_ms=1000, clock=clock)

    reporter.report(RuntimeError("a"), "ctx")
    clock.advance(0.5)
    reporter.report(RuntimeError("b"), "ctx")
    clock.advance(0.5)
    # First event is exactly one window old and no longer counts
    assert reporter.report(RuntimeError("c"), "ctx") is ReportOutcome.LOGGED
    assert reporter.report(RuntimeError("d"), "ctx") is ReportOutcome.SUPPRESSED


def test_contexts_are_limited_independently(reporter):
    for _ in range(10):
        reporter.report(RuntimeError("boom"), "ProjectService:get_project")

    assert reporter.is_rate_limited("ProjectService:get_project")
    assert not reporter.is_rate_limited("SprintService:get_sprint")
    assert reporter.report(RuntimeError("boom"), "SprintService:get_sprint") is ReportOutcome.LOGGED


def test_buffer_keeps_most_recent_hundred(clock):
    reporter = RateLimitedReporter(clock=clock)

    for i in range(120):
        reporter.report(RuntimeError(f"event {i}"), f"ctx-{i}")

    logs = reporter.get_stored_logs()
    assert len(logs) == 100
    assert logs[0]["message"] == "event 20"
    assert logs[-1]["message"] == "event 119"


@pytest.mark.parametrize(
    "error,expected",
    [
        (ApiError(500), Severity.CRITICAL),
        (ApiError(503), Severity.CRITICAL),
        (ApiError(404), Severity.ERROR),
        (ApiError(401), Severity.ERROR),
        (ApiError(302), Severity.WARNING),
        (httpx.ConnectError("connection refused"), Severity.CRITICAL),
        (ConnectionError("reset"), Severity.CRITICAL),
        (TimeoutError(), Severity.CRITICAL),
        (RuntimeError("Network unreachable"), Severity.CRITICAL),
        (ValueError("bad input"), Severity.WARNING),
    ],
)
def test_classify_severity(error, expected):
    assert classify_severity(error) is expected


def test_classify_http_status_error():
    request = httpx.Request("GET", "https://api.test/api/projects")
    response = httpx.Response(502, request=request)
    error = httpx.HTTPStatusError("bad gateway", request=request, response=response)

    assert classify_severity(error) is Severity.CRITICAL


def test_api_error_fields_are_recorded(reporter):
    error = ApiError(422, data={"message": "Invalid sprint"}, endpoint="/sprints", method="POST")

    reporter.report(error, "SprintService:create_sprint")

    [entry] = reporter.get_stored_logs()
    assert entry["message"] == "Invalid sprint"
    assert entry["status"] == 422
    assert entry["endpoint"] == "/sprints"
    assert entry["method"] == "POST"
    assert entry["severity"] == "error"
    assert entry["data"] == {"message": "Invalid sprint"}


def test_plain_error_omits_http_fields(reporter):
    reporter.report(ValueError("bad"), "ctx")

    [entry] = reporter.get_stored_logs()
    assert entry["error_type"] == "ValueError"
    assert "status" not in entry
    assert "endpoint" not in entry
    assert "timestamp" in entry


def test_raised_error_carries_stack(reporter):
    try:
        raise RuntimeError("with traceback")
    except RuntimeError as e:
        reporter.report(e, "ctx")

    [entry] = reporter.get_stored_logs()
    assert "RuntimeError: with traceback" in entry["stack"]


def test_event_serializes_to_json():
    event = ErrorEvent.from_exception(ApiError(500), "AnalyticsService:get_appointment_analytics")

    payload = json.loads(event.to_json())

    assert payload["message"] == "Server error: 500"
    assert payload["severity"] == "critical"


def test_failing_sink_does_not_break_reporting(clock):
    collector = CollectingSink()
    reporter = RateLimitedReporter(sinks=[ExplodingSink(), collector], clock=clock)

    outcome = reporter.report(RuntimeError("boom"), "ctx")

    assert outcome is ReportOutcome.LOGGED
    assert len(collector.events) == 1
    assert len(reporter.get_stored_logs()) == 1


def test_reporter_never_raises_on_internal_fault():
    def broken_clock():
        raise OSError("clock unavailable")

    reporter = RateLimitedReporter(clock=broken_clock)

    assert reporter.report(RuntimeError("boom"), "ctx") is ReportOutcome.FAILED
    assert reporter.get_stats()["failed"] == 1


def test_console_sink_logs_at_severity_level(clock, caplog):
    reporter = RateLimitedReporter(clock=clock, console=True)

    with caplog.at_level(logging.WARNING, logger="stratflow_lite.errors"):
        reporter.report(ApiError(500, endpoint="/projects"), "ProjectService:get_all_projects")

    records = [r for r in caplog.records if r.name == "stratflow_lite.errors"]
    assert len(records) == 1
    assert records[0].levelno == logging.CRITICAL
    assert "ProjectService:get_all_projects" in records[0].getMessage()


def test_clear_logs_resets_buffer_and_windows(reporter):
    for _ in range(10):
        reporter.report(RuntimeError("boom"), "ctx")

    reporter.clear_logs()

    assert reporter.get_stored_logs() == []
    assert reporter.report(RuntimeError("boom"), "ctx") is ReportOutcome.LOGGED


def test_stats(reporter):
    for _ in range(12):
        reporter.report(RuntimeError("boom"), "ctx")

    stats = reporter.get_stats()
    assert stats["total"] == 12
    assert stats["logged"] == 10
    assert stats["suppressed"] == 2
    assert stats["stored_logs"] == 10
    assert stats["config"]["window_ms"] == 60_000


class UnprintableError(Exception):
    def __str__(self):
        raise RuntimeError("cannot render")


def test_failed_event_build_does_not_use_quota(clock):
    reporter = RateLimitedReporter(max_events_per_window=1, clock=clock)

    assert reporter.report(UnprintableError(), "ctx") is ReportOutcome.FAILED
    assert not reporter.is_rate_limited("ctx")
    assert reporter.report(RuntimeError("boom"), "ctx") is ReportOutcome.LOGGED


def test_idle_contexts_are_forgotten(reporter, clock):
    reporter.report(RuntimeError("a"), "SprintService:get_sprint")
    reporter.report(RuntimeError("b"), "ProjectService:get_project")
    assert reporter.get_stats()["tracked_contexts"] == 2

    clock.advance(60)
    reporter.report(RuntimeError("c"), "ProjectService:get_project")

    assert not reporter.is_rate_limited("SprintService:get_sprint")
    assert reporter.get_stats()["tracked_contexts"] == 1
