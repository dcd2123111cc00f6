"""End-to-end booking of a recurring series through the wired service container.

A weekly series from 2024-03-01 10:00 until 2024-03-15 creates three
appointments. The confirmation email fails twice before the mail relay
recovers; the retry invoker absorbs the failures.
"""

import json
from datetime import date, datetime

import httpx
import pytest

from stratflow_lite.core.config_manager import ClientSettings
from stratflow_lite.core.dependencies import build_services
from stratflow_lite.exceptions import ServiceError

pytestmark = pytest.mark.integration


class BackOfficeStub:
    def __init__(self, email_failures: int = 0, sprint_failures: int = 0):
        self.email_failures = email_failures
        self.sprint_failures = sprint_failures
        self.appointments: list[dict] = []
        self.email_attempts = 0
        self.sprint_reads = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")

        if (request.method, path) == ("POST", "/appointments"):
            record = {"_id": f"appt-{len(self.appointments) + 1}", **json.loads(request.content)}
            self.appointments.append(record)
            return httpx.Response(201, json=record)

        if (request.method, path) == ("POST", "/notifications/email"):
            self.email_attempts += 1
            if self.email_attempts <= self.email_failures:
                return httpx.Response(503, json={"message": "Mail relay unavailable"})
            return httpx.Response(200, json={"status": "sent"})

        if (request.method, path) == ("GET", "/sprints"):
            self.sprint_reads += 1
            if self.sprint_reads <= self.sprint_failures:
                return httpx.Response(500)
            return httpx.Response(200, json=[{"_id": "s1", "name": "Sprint 1"}])

        return httpx.Response(404, json={"message": "Not found"})


@pytest.fixture
def stub():
    return BackOfficeStub(email_failures=2)


@pytest.fixture
def services(api_factory, stub, clock, recording_sleep):
    return build_services(
        ClientSettings(environment="test"),
        api=api_factory(stub, token="token-1"),
        clock=clock,
        sleep=recording_sleep,
    )


async def test_weekly_series_with_flaky_confirmation(services, stub, recording_sleep):
    draft = {
        "title": "Weekly stand-up",
        "date": datetime(2024, 3, 1, 10, 0),
        "contactName": "Sam",
        "contactEmail": "sam@example.com",
    }

    result = await services.appointments.create_recurring_appointments(draft, date(2024, 3, 15), "weekly")

    assert len(stub.appointments) == 3
    assert sorted(record["date"] for record in stub.appointments) == [
        "2024-03-01T10:00:00",
        "2024-03-08T10:00:00",
        "2024-03-15T10:00:00",
    ]
    assert stub.email_attempts == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert result.confirmation == {"status": "sent"}
    assert result.confirmation_error is None
    assert result.first.date == datetime(2024, 3, 1, 10, 0)
    assert services.reporter.get_stored_logs() == []


async def test_repeated_read_failures_are_rate_limited(services, stub):
    stub.sprint_failures = 100

    for _ in range(15):
        with pytest.raises(ServiceError, match="^Failed to fetch sprints: Server error: 500$"):
            await services.sprints.get_all_sprints()

    stats = services.reporter.get_stats()
    assert stats["logged"] == 10
    assert stats["suppressed"] == 5


async def test_caches_are_private_per_service(services, stub):
    await services.sprints.get_all_sprints()

    assert len(services.sprints.cache) == 1
    assert len(services.projects.cache) == 0
    assert services.sprints.cache is not services.projects.cache
    assert services.analytics.cache.ttl_seconds == 30
    assert services.appointments.notifications is services.notifications
