"""Retry wrapper with linear backoff and per-attempt timeouts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Generator
from typing import Any, TypeVar

import backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


def linear(base_delay: float = DEFAULT_BASE_DELAY) -> Generator[float, None, None]:
    """Wait generator yielding ``base_delay * k`` before retry ``k``.

    Failures here are mostly provider rate limiting, which clears on its own,
    so the delay grows linearly rather than exponentially.
    """
    # Advance past backoff's initial .send(None)
    yield  # type: ignore[misc]
    attempt = 1
    while True:
        yield base_delay * attempt
        attempt += 1


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    attempt_timeout: float | None = None,
) -> T:
    """Run ``operation`` up to ``max_attempts`` times.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        label: Name used in log lines for this operation.
        max_attempts: Total number of attempts, including the first.
        base_delay: Seconds; the wait before attempt ``k + 1`` is ``base_delay * k``.
        attempt_timeout: Optional per-attempt deadline; an attempt that
            exceeds it is cancelled and counts as a failure.

    Returns:
        The first successful result.

    Raises:
        Exception: The last attempt's error once all attempts are exhausted.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    def _on_backoff(details: Any) -> None:
        logger.warning(
            "%s attempt %d of %d failed: %s (retrying in %.1fs)",
            label,
            details["tries"],
            max_attempts,
            details.get("exception"),
            details.get("wait", 0.0),
        )

    def _on_giveup(details: Any) -> None:
        logger.warning(
            "%s failed after %d attempt(s): %s",
            label,
            details["tries"],
            details.get("exception"),
        )

    @backoff.on_exception(
        linear,
        Exception,
        max_tries=max_attempts,
        jitter=None,
        on_backoff=_on_backoff,
        on_giveup=_on_giveup,
        logger=None,
        base_delay=base_delay,
    )
    async def _attempt() -> T:
        if attempt_timeout is None:
            return await operation()
        async with asyncio.timeout(attempt_timeout):
            return await operation()

    return await _attempt()
