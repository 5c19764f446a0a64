"""Async wait-with-backoff combinator used for readiness polling."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackoffSchedule:
    """Bounded exponential backoff (delays in seconds)."""

    initial_delay: float = 0.1
    multiplier: float = 1.5
    max_delay: float = 2.0
    max_attempts: int = 10

    def delays(self) -> Iterator[float]:
        """Yield the pause taken after each failed attempt except the last."""

        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            yield delay
            delay = min(delay * self.multiplier, self.max_delay)


class RetryExhausted(Exception):
    """Raised when a probe never reported readiness."""

    def __init__(self, attempts: int, last_failure: str):
        super().__init__(f"not ready after {attempts} attempts: {last_failure}")
        self.attempts = attempts
        self.last_failure = last_failure


def is_positive(result: Any) -> bool:
    """Accept ``True`` or a positive integer; anything else is not ready."""

    if isinstance(result, bool):
        return result
    if isinstance(result, int):
        return result > 0
    return False


async def wait_until_ready(
    probe: Callable[[], Awaitable[Any]],
    schedule: BackoffSchedule,
    accept: Callable[[Any], bool] = is_positive,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> int:
    """Call ``probe`` until ``accept`` approves its result.

    Returns the number of attempts used. Exceptions raised by the probe count
    as failed attempts; their message is kept as the last failure detail.
    """

    delays = schedule.delays()
    last_failure = "no attempt made"
    for attempt in range(1, schedule.max_attempts + 1):
        try:
            result = await probe()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_failure = f"{type(exc).__name__}: {exc}"
        else:
            if accept(result):
                logger.debug("Probe ready after %d attempt(s)", attempt)
                return attempt
            last_failure = f"probe returned {result!r}"

        delay = next(delays, None)
        if delay is None:
            break
        logger.warning("Not ready (attempt %d/%d): %s; retrying in %.0fms",
                       attempt, schedule.max_attempts, last_failure, delay * 1000)
        await sleep(delay)

    raise RetryExhausted(schedule.max_attempts, last_failure)
