"""Shared plumbing for data-access services.

Each service owns its ExpiringCache and is solely responsible for
invalidating its own keys after a mutation it performs.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from stratflow_lite.core.error_reporter import RateLimitedReporter
from stratflow_lite.core.expiring_cache import ExpiringCache
from stratflow_lite.core.http_client import ApiClient, create_error_message
from stratflow_lite.exceptions import ServiceError

logger = logging.getLogger(__name__)


class CachedResourceService:
    """Base class composing an API client, a private cache and the shared reporter."""

    service_name = "Service"
    error_class: type[ServiceError] = ServiceError

    def __init__(
        self,
        api: ApiClient,
        cache: Optional[ExpiringCache] = None,
        reporter: Optional[RateLimitedReporter] = None,
    ):
        self.api = api
        self.cache = cache or ExpiringCache(name=self.service_name)
        self.reporter = reporter

    def _context(self, method: str) -> str:
        return f"{self.service_name}:{method}"

    @asynccontextmanager
    async def _failure_context(self, method: str, action: str, report: bool = True) -> AsyncIterator[None]:
        """Report failures and re-raise them as ``error_class("Failed to <action>: ...")``."""
        try:
            yield
        except ServiceError:
            raise
        except Exception as e:
            if report and self.reporter is not None:
                self.reporter.report(e, self._context(method))
            raise self.error_class(f"Failed to {action}: {create_error_message(e)}") from e

    async def _cached_get(
        self,
        key: str,
        method: str,
        action: str,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return cached data for key or fetch, cache and return it."""
        async with self._failure_context(method, action):
            return await self.cache.get_or_fetch(key, fetch)

    def _invalidate(self, *keys: str) -> None:
        for key in keys:
            self.cache.invalidate(key)

    def _invalidate_prefix(self, prefix: str) -> int:
        return self.cache.invalidate_matching(lambda key: key.startswith(prefix))
