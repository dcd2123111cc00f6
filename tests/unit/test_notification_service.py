"""Tests for NotificationService retry, error wrapping and pending tracking."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from stratflow_lite.exceptions import NotificationError
from stratflow_lite.models import Appointment
from stratflow_lite.services.notification_service import NotificationService

pytestmark = pytest.mark.unit


@pytest.fixture
def appointment():
    return Appointment(
        _id="a1",
        title="Quarterly review",
        date=datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc),
        location="Room 4",
        contactName="Dana",
        contactEmail="dana@example.com",
        contactPhone="+15550100",
    )


class ScriptedBackend:
    """MockTransport handler that fails the first ``failures`` calls per path."""

    def __init__(self, failures: int = 0, status: int = 503):
        self.failures = failures
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.requests) <= self.failures:
            return httpx.Response(self.status, json={"message": "Mail relay unavailable"})
        return httpx.Response(200, json={"id": "n1", "status": "queued"})

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture
def make_service(api_factory, invoker, reporter):
    def factory(backend):
        return NotificationService(api_factory(backend), invoker, reporter)

    return factory


async def test_email_payload(make_service, appointment):
    backend = ScriptedBackend()
    service = make_service(backend)

    result = await service.send_email_notification(appointment)

    assert result == {"id": "n1", "status": "queued"}
    [request] = backend.requests
    assert request.url.path == "/api/notifications/email"
    body = json.loads(request.content)
    assert body["appointmentId"] == "a1"
    assert body["recipientEmail"] == "dana@example.com"
    assert body["type"] == "APPOINTMENT_CONFIRMATION"
    assert body["data"]["title"] == "Quarterly review"
    assert body["data"]["contactName"] == "Dana"


async def test_email_succeeds_on_third_attempt(make_service, appointment, recording_sleep, reporter):
    backend = ScriptedBackend(failures=2)
    service = make_service(backend)

    await service.send_email_notification(appointment)

    assert len(backend.requests) == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert reporter.get_stored_logs() == []


async def test_exhausted_email_raises_prefixed_error(make_service, appointment, reporter):
    backend = ScriptedBackend(failures=100)
    service = make_service(backend)

    with pytest.raises(NotificationError) as excinfo:
        await service.send_email_notification(appointment)

    assert str(excinfo.value) == "Failed to send email notification: Mail relay unavailable"
    assert excinfo.value.__cause__.status_code == 503
    assert len(backend.requests) == 4
    # Reported once by the invoker, not again by the service
    logs = reporter.get_stored_logs()
    assert len(logs) == 1
    assert logs[0]["context"] == "NotificationService:send_email_notification"


async def test_sms_payload_omits_contact_name(make_service, appointment):
    backend = ScriptedBackend()
    service = make_service(backend)

    await service.send_sms_notification(appointment, priority="high")

    [body] = backend.bodies()
    assert body["phoneNumber"] == "+15550100"
    assert body["priority"] == "high"
    assert "contactName" not in body["data"]


async def test_schedule_reminder_uses_lead_time(make_service, appointment):
    backend = ScriptedBackend()
    service = make_service(backend)

    await service.schedule_reminder(appointment, reminder_type="email", lead_time=timedelta(hours=2))

    [body] = backend.bodies()
    expected = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
    assert body["scheduledFor"] == int(expected.timestamp() * 1000)
    assert body["reminderType"] == "email"
    assert body["type"] == "APPOINTMENT_REMINDER"


async def test_pending_notifications_tracked_and_cancelled(make_service, appointment):
    service = make_service(ScriptedBackend())

    await service.send_email_notification(appointment)
    await service.schedule_reminder(appointment)

    pending = {p.id: p for p in service.get_pending_notifications()}
    assert set(pending) == {"email:a1", "reminder:a1"}
    assert pending["reminder:a1"].status == "scheduled"

    await service.cancel_notifications("a1")

    assert service.get_pending_notifications() == []


async def test_update_marks_reminder_updated(make_service, appointment):
    backend = ScriptedBackend()
    service = make_service(backend)
    await service.schedule_reminder(appointment)

    await service.update_notifications(appointment, send_update_notification=False)

    assert backend.requests[-1].method == "PUT"
    assert backend.requests[-1].url.path == "/api/notifications/a1"
    assert json.loads(backend.requests[-1].content)["sendUpdateNotification"] is False
    [reminder] = service.get_pending_notifications()
    assert reminder.status == "updated"


async def test_status_lookup_is_not_retried(make_service, reporter):
    backend = ScriptedBackend(failures=1)
    service = make_service(backend)

    with pytest.raises(NotificationError, match="Failed to get notification status"):
        await service.get_notification_status("n1")

    assert len(backend.requests) == 1
    assert reporter.get_stored_logs()[0]["context"] == "NotificationService:get_notification_status"


async def test_resend_failed_notification(make_service):
    backend = ScriptedBackend()
    service = make_service(backend)

    await service.resend_failed_notification("n9", max_attempts=5)

    [request] = backend.requests
    assert request.url.path == "/api/notifications/resend/n9"
    assert json.loads(request.content) == {"maxAttempts": 5}


async def test_clear_pending_notifications(make_service, appointment):
    service = make_service(ScriptedBackend())
    await service.send_sms_notification(appointment)

    service.clear_pending_notifications()

    assert service.get_pending_notifications() == []
