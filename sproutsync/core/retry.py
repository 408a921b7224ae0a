"""SproutSync — Retry Policy.

A retry policy is a plain value: how many attempts, how long to wait between
them, and which exceptions are worth another try. ``with_retry`` consumes it
for any coroutine factory, so call sites never hand-roll their own loops.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from sproutsync.config import settings
from sproutsync.core.errors import RetryExhaustedError
from sproutsync.core.logging import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Default classifier: transport failures and errors flagged retryable."""
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError)):
        return True
    return bool(getattr(exc, "retryable", False))


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with a fixed delay between them."""

    max_attempts: int = 3
    delay_seconds: float = 10.0
    classifier: Callable[[BaseException], bool] = is_transient

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            delay_seconds=settings.retry_delay_seconds,
        )


async def with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str,
    is_empty: Optional[Callable[[Any], bool]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``func`` under ``policy``.

    Args:
        func: Zero-argument callable returning a fresh awaitable per attempt.
        policy: Attempt count, delay and error classifier.
        description: Human-readable label used in log lines.
        is_empty: Optional predicate; a result it flags as empty is retried
            like a transient failure. When every attempt comes back empty the
            last (empty) result is returned rather than raising.
        sleep: Injected for tests.

    Raises:
        RetryExhaustedError: every attempt raised a retryable exception.
        Exception: the first non-retryable exception, unchanged.
    """
    last_error: Optional[BaseException] = None
    result: Any = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await func()
        except Exception as e:
            if not policy.classifier(e):
                raise
            last_error = e
            logger.warning(
                f"{description} failed (attempt {attempt}/{policy.max_attempts}): {e}",
                extra={"attempt": attempt},
            )
        else:
            if is_empty is None or not is_empty(result):
                return result
            last_error = None
            logger.warning(
                f"{description} returned no data (attempt {attempt}/{policy.max_attempts})",
                extra={"attempt": attempt},
            )

        if attempt < policy.max_attempts:
            logger.info(f"Waiting {policy.delay_seconds:g}s before retrying {description}")
            await sleep(policy.delay_seconds)

    if last_error is not None:
        logger.error(f"{description}: retries exhausted after {policy.max_attempts} attempts")
        raise RetryExhaustedError(description, policy.max_attempts, last_error)

    logger.error(f"{description}: still empty after {policy.max_attempts} attempts")
    return result
