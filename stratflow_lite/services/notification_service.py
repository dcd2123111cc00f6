"""Outbound appointment notifications (email, SMS, reminders).

Every dispatch is individually wrapped in the RetryingInvoker, so an SMS
retry sequence never affects an independent email sequence. When retries are
exhausted the invoker reports the error and this service re-raises it as a
NotificationError with an operation prefix.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from stratflow_lite.core.error_reporter import RateLimitedReporter
from stratflow_lite.core.http_client import ApiClient
from stratflow_lite.core.retry import RetryingInvoker
from stratflow_lite.exceptions import NotificationError
from stratflow_lite.models import Appointment, NotificationType, PendingNotification
from stratflow_lite.services.base_service import CachedResourceService

logger = logging.getLogger(__name__)

NOTIFICATION_TIMEOUT_SECONDS = 10.0
DEFAULT_REMINDER_LEAD = timedelta(hours=24)


class NotificationService(CachedResourceService):
    """Sends and tracks notifications for appointments."""

    service_name = "NotificationService"
    error_class = NotificationError

    def __init__(
        self,
        api: ApiClient,
        invoker: RetryingInvoker,
        reporter: Optional[RateLimitedReporter] = None,
    ):
        super().__init__(api, reporter=reporter)
        self.invoker = invoker
        self._pending: dict[str, PendingNotification] = {}

    async def _dispatch(
        self,
        method: str,
        action: str,
        operation: Callable[[], Awaitable[Any]],
    ) -> Any:
        # The invoker reports the final error; only wrap it here.
        async with self._failure_context(method, action, report=False):
            return await self.invoker.run(operation, self._context(method))

    def _track(self, kind: NotificationType, appointment_id: str, status: str, details: Any) -> None:
        key = f"{kind.value}:{appointment_id}"
        self._pending[key] = PendingNotification(
            id=key,
            type=kind,
            status=status,
            timestamp=datetime.now(timezone.utc),
            details=details,
        )

    async def send_email_notification(
        self,
        appointment: Appointment,
        template: str = "APPOINTMENT_CONFIRMATION",
        priority: str = "normal",
        attachments: Optional[list[Any]] = None,
    ) -> Any:
        """Send an email for the appointment.

        Raises:
            NotificationError: "Failed to send email notification: <reason>"
        """

        async def operation() -> Any:
            response = await self.api.post(
                "/notifications/email",
                json={
                    "appointmentId": appointment.id,
                    "recipientEmail": appointment.contact_email,
                    "type": template,
                    "priority": priority,
                    "data": appointment.notification_data(),
                    "attachments": attachments or [],
                },
                timeout=NOTIFICATION_TIMEOUT_SECONDS,
            )
            self._track(NotificationType.EMAIL, appointment.id, "sent", response)
            return response

        return await self._dispatch("send_email_notification", "send email notification", operation)

    async def send_sms_notification(
        self,
        appointment: Appointment,
        template: str = "APPOINTMENT_CONFIRMATION",
        priority: str = "normal",
    ) -> Any:
        async def operation() -> Any:
            data = appointment.notification_data()
            data.pop("contactName", None)
            response = await self.api.post(
                "/notifications/sms",
                json={
                    "appointmentId": appointment.id,
                    "phoneNumber": appointment.contact_phone,
                    "type": template,
                    "priority": priority,
                    "data": data,
                },
                timeout=NOTIFICATION_TIMEOUT_SECONDS,
            )
            self._track(NotificationType.SMS, appointment.id, "sent", response)
            return response

        return await self._dispatch("send_sms_notification", "send SMS notification", operation)

    async def schedule_reminder(
        self,
        appointment: Appointment,
        reminder_type: str = "both",
        lead_time: timedelta = DEFAULT_REMINDER_LEAD,
        template: str = "APPOINTMENT_REMINDER",
    ) -> Any:
        """Ask the backend to send a reminder ``lead_time`` before the appointment.

        Args:
            reminder_type: "email", "sms" or "both"
        """
        scheduled_for = int((appointment.date - lead_time).timestamp() * 1000)

        async def operation() -> Any:
            response = await self.api.post(
                "/notifications/schedule",
                json={
                    "appointmentId": appointment.id,
                    "type": template,
                    "reminderType": reminder_type,
                    "scheduledFor": scheduled_for,
                    "data": {
                        "title": appointment.title,
                        "date": appointment.date.isoformat(),
                        "location": appointment.location,
                        "contactEmail": appointment.contact_email,
                        "contactPhone": appointment.contact_phone,
                    },
                },
                timeout=NOTIFICATION_TIMEOUT_SECONDS,
            )
            self._track(NotificationType.REMINDER, appointment.id, "scheduled", response)
            return response

        return await self._dispatch("schedule_reminder", "schedule reminder", operation)

    async def cancel_notifications(self, appointment_id: str) -> Any:
        async def operation() -> Any:
            response = await self.api.delete(f"/notifications/{appointment_id}")
            for kind in NotificationType:
                self._pending.pop(f"{kind.value}:{appointment_id}", None)
            return response

        return await self._dispatch("cancel_notifications", "cancel notifications", operation)

    async def update_notifications(
        self,
        appointment: Appointment,
        send_update_notification: bool = True,
        update_reminders: bool = True,
        template: str = "APPOINTMENT_UPDATE",
    ) -> Any:
        async def operation() -> Any:
            response = await self.api.put(
                f"/notifications/{appointment.id}",
                json={
                    "type": template,
                    "sendUpdateNotification": send_update_notification,
                    "updateReminders": update_reminders,
                    "data": {
                        "title": appointment.title,
                        "date": appointment.date.isoformat(),
                        "location": appointment.location,
                        "contactEmail": appointment.contact_email,
                        "contactPhone": appointment.contact_phone,
                    },
                },
                timeout=NOTIFICATION_TIMEOUT_SECONDS,
            )
            reminder = self._pending.get(f"{NotificationType.REMINDER.value}:{appointment.id}")
            if reminder is not None:
                reminder.status = "updated"
                reminder.timestamp = datetime.now(timezone.utc)
            return response

        return await self._dispatch("update_notifications", "update notifications", operation)

    async def get_notification_status(self, notification_id: str) -> Any:
        """Single status lookup; not retried."""
        async with self._failure_context("get_notification_status", "get notification status"):
            return await self.api.get(f"/notifications/status/{notification_id}")

    async def resend_failed_notification(self, notification_id: str, max_attempts: int = 3) -> Any:
        async def operation() -> Any:
            return await self.api.post(
                f"/notifications/resend/{notification_id}", json={"maxAttempts": max_attempts}
            )

        return await self._dispatch("resend_failed_notification", "resend notification", operation)

    def get_pending_notifications(self) -> list[PendingNotification]:
        return list(self._pending.values())

    def clear_pending_notifications(self) -> None:
        self._pending.clear()
