"""Bounded exponential-backoff retry for outbound calls.

Usage Example:
    ```python
    invoker = RetryingInvoker(reporter=reporter)

    response = await invoker.run(
        lambda: api.post("/notifications/email", json=payload),
        context="NotificationService:send_email_notification",
    )
    ```

Schedule: the first try runs immediately; retry ``n`` (0-based) waits
``backoff_base_ms * 2**n`` milliseconds first. With the defaults that is up to
four tries separated by 1s, 2s and 4s. No jitter is applied and every
exception type is retried.

The backoff wait uses ``asyncio.sleep`` so other work on the event loop keeps
running. There is no cancellation hook: a run continues until it succeeds or
exhausts its attempts.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

from stratflow_lite.core.error_reporter import RateLimitedReporter

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry defaults.

    ``max_attempts`` counts retries beyond the first try.
    """

    max_attempts: int = 3
    backoff_base_ms: int = 1000

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        return cls(
            max_attempts=getattr(settings, "retry_max_attempts", 3),
            backoff_base_ms=getattr(settings, "retry_backoff_ms", 1000),
        )


def compute_backoff_delay(retries: int, backoff_base_ms: int) -> float:
    """Delay in seconds before retry number ``retries`` (0-based)."""
    return backoff_base_ms * (2**retries) / 1000.0


class RetryingInvoker:
    """Wraps asynchronous operations with bounded exponential-backoff retry."""

    def __init__(
        self,
        reporter: Optional[RateLimitedReporter] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize invoker.

        Args:
            reporter: Receives the final error when attempts are exhausted
            policy: Default attempt cap and backoff base
            sleep: Awaitable delay function (injectable for tests)
        """
        self.reporter = reporter
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

        self._stats = {
            "operations": 0,
            "successes": 0,
            "failures": 0,
            "retries": 0,
        }

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str,
        max_attempts: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        idempotent: bool = True,
    ) -> T:
        """Invoke ``operation`` until it succeeds or retries run out.

        Args:
            operation: Zero-argument callable returning an awaitable
            context: Label used for logging and error reporting
            max_attempts: Retries allowed after the first try (policy default if None)
            backoff_base_ms: Base delay in milliseconds (policy default if None)
            idempotent: When False the operation is tried exactly once

        Returns:
            The operation's result

        Raises:
            The last exception raised by the operation, unchanged
        """
        retry_cap = self.policy.max_attempts if max_attempts is None else max_attempts
        base_ms = self.policy.backoff_base_ms if backoff_base_ms is None else backoff_base_ms
        if not idempotent:
            retry_cap = 0

        self._stats["operations"] += 1
        retries = 0

        while True:
            try:
                result = await operation()
            except Exception as e:
                if retries >= retry_cap:
                    self._stats["failures"] += 1
                    logger.warning(
                        "%s failed after %d attempt(s): %s", context, retries + 1, e
                    )
                    if self.reporter is not None:
                        self.reporter.report(e, context)
                    raise

                delay = compute_backoff_delay(retries, base_ms)
                logger.info(
                    "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                    context,
                    retries + 1,
                    retry_cap + 1,
                    e,
                    delay,
                )
                await self._sleep(delay)
                retries += 1
                self._stats["retries"] += 1
                continue

            if retries > 0:
                logger.info("%s succeeded on attempt %d", context, retries + 1)
            self._stats["successes"] += 1
            return result

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "policy": {
                "max_attempts": self.policy.max_attempts,
                "backoff_base_ms": self.policy.backoff_base_ms,
            },
        }
