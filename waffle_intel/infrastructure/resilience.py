"""Timeouts and bounded retries for calls to external AI services."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import openai
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from waffle_intel.commons.telemetry import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Per-attempt timeout plus exponential backoff between attempts."""

    attempts: int = 3
    timeout_seconds: float = 60.0
    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 8.0


def is_transient(exc: BaseException) -> bool:
    """Whether an error is worth retrying: timeouts, throttling and 5xx."""
    if isinstance(
        exc,
        TimeoutError
        | openai.APITimeoutError
        | openai.APIConnectionError
        | openai.RateLimitError
        | openai.InternalServerError,
    ):
        return True
    return isinstance(exc, openai.APIStatusError) and exc.status_code >= 500


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation: str,
) -> T:
    """Await ``fn()`` under the policy's timeout, retrying transient failures.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt.
        policy: Timeout and retry bounds.
        operation: Name used in log records.

    Returns:
        The first successful result.

    Raises:
        The last exception once attempts are exhausted, or immediately for
        non-transient errors.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(max(1, policy.attempts)),
        wait=wait_exponential(
            multiplier=policy.min_wait_seconds,
            min=policy.min_wait_seconds,
            max=policy.max_wait_seconds,
        ),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            number = attempt.retry_state.attempt_number
            if number > 1:
                logger.warning(
                    "Retrying external call",
                    extra={"operation": operation, "attempt": number},
                )
            async with asyncio.timeout(policy.timeout_seconds):
                return await fn()
    raise RuntimeError(f"{operation}: retry loop exited unexpectedly")
