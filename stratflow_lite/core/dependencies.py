"""Dependency injection container for stratflow_lite."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional

from stratflow_lite.core.config_manager import ClientSettings
from stratflow_lite.core.error_reporter import RateLimitedReporter
from stratflow_lite.core.expiring_cache import ExpiringCache
from stratflow_lite.core.http_client import ApiClient
from stratflow_lite.core.recurrence import RecurrenceExpander
from stratflow_lite.core.retry import RetryingInvoker, RetryPolicy
from stratflow_lite.services import (
    AnalyticsService,
    AppointmentService,
    NotificationService,
    ProjectService,
    SprintService,
)


@dataclass
class ServiceContainer:
    """Holds the shared reporter, the invoker, the API client and every service.

    Each service owns a private ExpiringCache; the reporter is shared.
    """

    settings: ClientSettings
    api: ApiClient
    reporter: RateLimitedReporter
    invoker: RetryingInvoker
    appointments: AppointmentService
    notifications: NotificationService
    sprints: SprintService
    projects: ProjectService
    analytics: AnalyticsService

    async def aclose(self) -> None:
        await self.api.aclose()


def build_services(
    settings: Optional[ClientSettings] = None,
    api: Optional[ApiClient] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> ServiceContainer:
    """Wire every dependency from settings.

    Args:
        settings: Client settings (defaults if None)
        api: Pre-built API client (tests pass one with a mock transport)
        clock: Time source shared by caches and the reporter
        sleep: Backoff delay function used by the invoker

    Returns:
        ServiceContainer with all services initialized
    """
    settings = settings or ClientSettings()

    if api is None:
        token = settings.api_token
        api = ApiClient(
            base_url=settings.api_base_url,
            token_provider=lambda: token,
            timeout=settings.api_timeout,
        )

    reporter = RateLimitedReporter(
        max_events_per_window=settings.report_max_events,
        window_ms=settings.report_window_ms,
        clock=clock,
        buffer_size=settings.report_buffer_size,
        console=settings.is_development,
    )
    invoker = RetryingInvoker(reporter, RetryPolicy.from_settings(settings), sleep=sleep)

    def cache_for(name: str, ttl: float) -> ExpiringCache:
        return ExpiringCache(ttl_seconds=ttl, clock=clock, name=name)

    notifications = NotificationService(api, invoker, reporter)
    appointments = AppointmentService(
        api,
        cache_for("AppointmentService", settings.cache_ttl_seconds),
        reporter,
        notifications=notifications,
        expander=RecurrenceExpander(),
    )

    return ServiceContainer(
        settings=settings,
        api=api,
        reporter=reporter,
        invoker=invoker,
        appointments=appointments,
        notifications=notifications,
        sprints=SprintService(api, cache_for("SprintService", settings.cache_ttl_seconds), reporter),
        projects=ProjectService(api, cache_for("ProjectService", settings.cache_ttl_seconds), reporter),
        analytics=AnalyticsService(
            api, cache_for("AnalyticsService", settings.aggregate_cache_ttl_seconds), reporter
        ),
    )
