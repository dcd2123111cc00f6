"""Aggregate analytics reads.

These views change often, so the service's cache uses a short TTL
(30 seconds by default) instead of the five-minute default.
"""

from __future__ import annotations

from typing import Any, Optional

from stratflow_lite.core.error_reporter import RateLimitedReporter
from stratflow_lite.core.expiring_cache import AGGREGATE_TTL_SECONDS, ExpiringCache
from stratflow_lite.core.http_client import ApiClient
from stratflow_lite.services.base_service import CachedResourceService


class AnalyticsService(CachedResourceService):
    service_name = "AnalyticsService"

    def __init__(
        self,
        api: ApiClient,
        cache: Optional[ExpiringCache] = None,
        reporter: Optional[RateLimitedReporter] = None,
    ):
        super().__init__(
            api,
            cache or ExpiringCache(ttl_seconds=AGGREGATE_TTL_SECONDS, name=self.service_name),
            reporter,
        )

    async def get_appointment_analytics(self) -> Any:
        async def fetch() -> Any:
            return await self.api.get("/analytics/appointments")

        return await self._cached_get(
            "appointmentAnalytics", "get_appointment_analytics", "fetch appointment analytics", fetch
        )

    async def get_scheduling_metrics(self, time_range: str = "week", group_by: str = "day") -> Any:
        async def fetch() -> Any:
            return await self.api.get(
                "/analytics/scheduling", params={"timeRange": time_range, "groupBy": group_by}
            )

        return await self._cached_get(
            f"schedulingMetrics:{time_range}:{group_by}",
            "get_scheduling_metrics",
            "fetch scheduling metrics",
            fetch,
        )

    async def get_appointment_trends(self, start_date: str, end_date: str, group_by: str = "day") -> Any:
        async def fetch() -> Any:
            return await self.api.get(
                "/analytics/trends",
                params={"startDate": start_date, "endDate": end_date, "groupBy": group_by},
            )

        return await self._cached_get(
            f"appointmentTrends:{start_date}:{end_date}:{group_by}",
            "get_appointment_trends",
            "fetch appointment trends",
            fetch,
        )

    async def refresh_analytics_cache(self) -> Any:
        """Ask the backend to recompute aggregates, then drop local copies."""
        async with self._failure_context("refresh_analytics_cache", "refresh analytics cache"):
            response = await self.api.post("/analytics/cache/refresh")
        self.cache.clear()
        return response
