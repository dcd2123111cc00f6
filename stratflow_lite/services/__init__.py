"""Data-access services built on the core utilities."""

from stratflow_lite.services.analytics_service import AnalyticsService
from stratflow_lite.services.appointment_service import AppointmentService, RecurringBookingResult
from stratflow_lite.services.notification_service import NotificationService
from stratflow_lite.services.project_service import ProjectService
from stratflow_lite.services.sprint_service import SprintService

__all__ = [
    "AnalyticsService",
    "AppointmentService",
    "NotificationService",
    "ProjectService",
    "RecurringBookingResult",
    "SprintService",
]
