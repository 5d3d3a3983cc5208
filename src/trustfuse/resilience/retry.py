"""
Retry Strategies using Tenacity.

Standard retry policy for upstream source fetches.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from trustfuse.core.logging import get_logger

logger = get_logger("resilience.retry")

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def is_transient_error(exception: BaseException) -> bool:
    """Check if exception is a transient network/upstream error."""
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in RETRYABLE_STATUS_CODES
    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exception, (TimeoutError, ConnectionError)):
        return True
    msg = str(exception).lower()
    return any(
        x in msg
        for x in [
            "timeout",
            "connection refused",
            "connection reset",
            "temporarily unavailable",
            "rate limit",
        ]
    )


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"Retrying source fetch (attempt {retry_state.attempt_number}): {exc}")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff bounds for transient failures."""

    attempts: int = 3
    multiplier: float = 0.5
    wait_min: float = 0.5
    wait_max: float = 8.0


DEFAULT_RETRY_POLICY = RetryPolicy()


async def execute_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy | None = None,
    **kwargs: Any,
) -> T:
    """
    Execute an async function, retrying transient errors with backoff.

    Non-transient errors propagate on the first attempt; the last transient
    error is re-raised once attempts are exhausted.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(is_transient_error),
        wait=wait_exponential(multiplier=policy.multiplier, min=policy.wait_min, max=policy.wait_max),
        stop=stop_after_attempt(policy.attempts),
        reraise=True,
        before_sleep=_log_retry,
    ):
        with attempt:
            return await func(*args, **kwargs)
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = [
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    "execute_with_retry",
    "is_transient_error",
]
