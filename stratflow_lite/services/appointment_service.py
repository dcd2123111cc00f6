"""Appointment data access and recurring-series booking."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import TypeAdapter

from stratflow_lite.core.error_reporter import RateLimitedReporter
from stratflow_lite.core.expiring_cache import ExpiringCache
from stratflow_lite.core.http_client import ApiClient
from stratflow_lite.core.recurrence import Frequency, RecurrenceExpander
from stratflow_lite.exceptions import NotificationError, RecurringBookingError
from stratflow_lite.models import Appointment, AppointmentDraft
from stratflow_lite.services.base_service import CachedResourceService
from stratflow_lite.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

_APPOINTMENT_LIST = TypeAdapter(list[Appointment])

LIST_KEY = "allAppointments"


def _detail_key(appointment_id: str) -> str:
    return f"appointment:{appointment_id}"


@dataclass
class RecurringBookingResult:
    """Outcome of booking a recurring series.

    Attributes:
        appointments: Created records ordered by occurrence date
        confirmation: Notification backend response for the earliest record
        confirmation_error: Message when the confirmation could not be sent
    """

    appointments: list[Appointment]
    confirmation: Any = None
    confirmation_error: Optional[str] = None

    @property
    def first(self) -> Appointment:
        return self.appointments[0]


class AppointmentService(CachedResourceService):
    """CRUD for appointments plus recurring-series creation."""

    service_name = "AppointmentService"

    def __init__(
        self,
        api: ApiClient,
        cache: Optional[ExpiringCache] = None,
        reporter: Optional[RateLimitedReporter] = None,
        notifications: Optional[NotificationService] = None,
        expander: Optional[RecurrenceExpander] = None,
    ):
        super().__init__(api, cache, reporter)
        self.notifications = notifications
        self.expander = expander or RecurrenceExpander()

    async def list_appointments(self) -> list[Appointment]:
        async def fetch() -> list[Appointment]:
            return _APPOINTMENT_LIST.validate_python(await self.api.get("/appointments"))

        return await self._cached_get(LIST_KEY, "list_appointments", "fetch appointments", fetch)

    async def get_appointment(self, appointment_id: str) -> Appointment:
        async def fetch() -> Appointment:
            return Appointment.model_validate(await self.api.get(f"/appointments/{appointment_id}"))

        return await self._cached_get(
            _detail_key(appointment_id), "get_appointment", "fetch appointment", fetch
        )

    async def create_appointment(self, draft: Union[AppointmentDraft, dict[str, Any]]) -> Appointment:
        if isinstance(draft, dict):
            draft = AppointmentDraft.model_validate(draft)

        async with self._failure_context("create_appointment", "create appointment"):
            created = Appointment.model_validate(
                await self.api.post("/appointments", json=draft.to_payload())
            )
        self._invalidate(LIST_KEY)
        self.cache.set(_detail_key(created.id), created)
        return created

    async def update_appointment(self, appointment_id: str, changes: dict[str, Any]) -> Appointment:
        payload = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in changes.items()
        }
        async with self._failure_context("update_appointment", "update appointment"):
            updated = Appointment.model_validate(
                await self.api.put(f"/appointments/{appointment_id}", json=payload)
            )
        self._invalidate(LIST_KEY, _detail_key(appointment_id))
        return updated

    async def delete_appointment(self, appointment_id: str) -> None:
        async with self._failure_context("delete_appointment", "delete appointment"):
            await self.api.delete(f"/appointments/{appointment_id}")
        self._invalidate(LIST_KEY, _detail_key(appointment_id))

    async def create_recurring_appointments(
        self,
        draft: Union[AppointmentDraft, dict[str, Any]],
        until: Union[date, datetime],
        frequency: Union[str, Frequency],
        send_confirmation: bool = True,
    ) -> RecurringBookingResult:
        """Book one appointment per occurrence and confirm the earliest.

        The draft's ``date`` is the series anchor. Input is validated before
        any request is sent. All create calls run concurrently and are awaited
        until every one has settled. The confirmation email goes out only when
        all creates succeeded, and only for the chronologically first record.

        Raises:
            RecurrenceValidationError: Malformed recurrence input
            RecurringBookingError: At least one create failed; carries the
                records that were created and the per-occurrence failures
        """
        if isinstance(draft, dict):
            draft = AppointmentDraft.model_validate(draft)

        request = self.expander.validate(draft.date, until, frequency)
        occurrences = self.expander.expand_request(request)
        logger.info(
            "Booking %d %s occurrences of %r", len(occurrences), request.frequency.value, draft.title
        )

        outcomes = await asyncio.gather(
            *(self.create_appointment(draft.model_copy(update={"date": when})) for when in occurrences),
            return_exceptions=True,
        )

        created: list[Appointment] = []
        failures: list[tuple[datetime, BaseException]] = []
        for when, outcome in zip(occurrences, outcomes):
            if isinstance(outcome, BaseException):
                failures.append((when, outcome))
            else:
                created.append(outcome)
        ordered = sorted(created, key=lambda appointment: appointment.date)

        if failures:
            logger.warning(
                "%d of %d occurrences of %r failed; created %s; confirmation not sent",
                len(failures),
                len(occurrences),
                draft.title,
                [appointment.id for appointment in ordered],
            )
            when, first_error = failures[0]
            raise RecurringBookingError(
                f"Failed to create recurring appointments: {len(failures)} of {len(occurrences)} "
                f"occurrences failed (first: {when.isoformat()}: {first_error})",
                created=ordered,
                failures=failures,
            )

        result = RecurringBookingResult(appointments=ordered)

        if send_confirmation and self.notifications is not None:
            try:
                result.confirmation = await self.notifications.send_email_notification(ordered[0])
            except NotificationError as e:
                logger.warning("Confirmation for %s not sent: %s", ordered[0].id, e)
                result.confirmation_error = str(e)

        return result
