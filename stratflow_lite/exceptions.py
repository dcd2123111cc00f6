"""Exception hierarchy for stratflow_lite.

Data-access failures are chained with a context prefix at each layer
("Failed to send email notification: <reason>") rather than replaced, so the
underlying message always reaches the user.
"""

from __future__ import annotations

from typing import Any, Optional


class StratflowError(Exception):
    """Base exception for all stratflow_lite errors."""


class ApiError(StratflowError):
    """The backend answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the backend
        data: Decoded response body (None when empty or not JSON)
        endpoint: Request path
        method: HTTP method (upper case)
    """

    def __init__(
        self,
        status_code: int,
        data: Any = None,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        status_text: Optional[str] = None,
    ):
        self.status_code = status_code
        self.data = data
        self.endpoint = endpoint
        self.method = method
        self.status_text = status_text
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Backend-supplied message when present, else a generic status message."""
        if isinstance(self.data, dict):
            body_message = self.data.get("message")
            if body_message:
                return str(body_message)
        return f"Server error: {self.status_code}"

    @property
    def is_authentication_error(self) -> bool:
        return self.status_code == 401

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class RecurrenceValidationError(StratflowError, ValueError):
    """Recurrence input rejected before expansion.

    Raised when:
    - The anchor is not a datetime
    - The upper bound is not a date
    - The frequency is not one of daily, weekly, monthly
    - The series would exceed the configured occurrence cap
    """


class ServiceError(StratflowError):
    """A data-access operation failed.

    The message carries the operation prefix; the original exception is
    available as ``__cause__``.
    """


class NotificationError(ServiceError):
    """Notification dispatch failed after all retry attempts."""


class RecurringBookingError(ServiceError):
    """One or more creates of a recurring series failed.

    Raised only after every create has settled. No confirmation is sent.

    Attributes:
        created: Appointments that were created, ordered by date
        failures: (occurrence, exception) pairs for the creates that failed
    """

    def __init__(self, message: str, created: list[Any], failures: list[tuple[Any, BaseException]]):
        super().__init__(message)
        self.created = created
        self.failures = failures
