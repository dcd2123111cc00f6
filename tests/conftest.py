"""Shared fixtures: deterministic clocks, recording sleeps and mock HTTP backends."""

from collections.abc import AsyncIterator, Callable
from typing import Any, Optional

import httpx
import pytest

from stratflow_lite.core.error_reporter import RateLimitedReporter
from stratflow_lite.core.http_client import ApiClient
from stratflow_lite.core.retry import RetryingInvoker


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def reporter(clock: FakeClock) -> RateLimitedReporter:
    """Fresh reporter per test; nothing is shared between cases."""
    return RateLimitedReporter(clock=clock)


@pytest.fixture
def invoker(reporter: RateLimitedReporter, recording_sleep: RecordingSleep) -> RetryingInvoker:
    return RetryingInvoker(reporter, sleep=recording_sleep)


@pytest.fixture
async def api_factory() -> AsyncIterator[Callable[..., ApiClient]]:
    """Build ApiClients backed by httpx.MockTransport; all are closed at teardown.

    Usage:
        api = api_factory(handler)            # handler(request) -> httpx.Response
        api = api_factory(handler, token="t") # bearer token injected per request
    """
    created: list[ApiClient] = []

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> ApiClient:
        client = ApiClient(
            base_url="https://api.test/api",
            token_provider=(lambda: token),
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        created.append(client)
        return client

    yield factory

    for client in created:
        await client.aclose()
