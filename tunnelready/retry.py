from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterator, TypeVar

from .errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Jitter adds at most this fraction of the scheduled delay, never subtracts.
JITTER_FRACTION = 0.5


def backoff_delays(
    initial_delay: float,
    *,
    multiplier: float = 2.0,
    max_delay: float | None = None,
    jitter: bool = False,
    rng: Callable[[], float] = random.random,
) -> Iterator[float]:
    delay = initial_delay
    last = initial_delay
    while True:
        value = delay
        if jitter:
            value += delay * JITTER_FRACTION * rng()
            if max_delay is not None:
                value = max(delay, min(value, max_delay))
        # A large jitter on one step may exceed the next base delay.
        value = max(value, last)
        last = value
        yield value
        delay *= multiplier
        if max_delay is not None:
            delay = min(delay, max_delay)


def retry_expo(
    operation: Callable[[], T],
    initial_delay: float,
    max_total_duration: float,
    max_attempts: int | None = None,
    *,
    multiplier: float = 2.0,
    max_delay: float | None = None,
    jitter: bool = False,
    rng: Callable[[], float] = random.random,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``operation`` until it succeeds, backing off exponentially between
    attempts that fail with a retryable error.

    Terminal errors propagate on the attempt that raised them. When
    ``max_attempts`` or ``max_total_duration`` runs out, the exception of the
    last attempt is re-raised as is.
    """
    _validate(initial_delay, max_total_duration, max_attempts, multiplier, max_delay)
    deadline = clock() + max_total_duration
    delays = backoff_delays(initial_delay, multiplier=multiplier, max_delay=max_delay, jitter=jitter, rng=rng)
    previous = 0.0
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if max_attempts is not None and attempt >= max_attempts:
                logger.debug("giving up after %d attempt(s): %s", attempt, exc)
                raise
            remaining = deadline - clock()
            scheduled = next(delays)
            # A tail delay clipped below the previous one would break the
            # non-decreasing schedule.
            if remaining <= 0 or (scheduled > remaining and remaining < previous):
                logger.debug("retry budget of %gs exhausted after %d attempt(s): %s", max_total_duration, attempt, exc)
                raise
            delay = min(scheduled, remaining)
            logger.debug("attempt %d failed, retrying in %.3fs: %s", attempt, delay, exc)
            sleep(delay)
            previous = delay


def _validate(
    initial_delay: float,
    max_total_duration: float,
    max_attempts: int | None,
    multiplier: float,
    max_delay: float | None,
) -> None:
    if initial_delay <= 0:
        raise ValueError(f"initial_delay must be > 0, got {initial_delay!r}")
    if max_total_duration <= 0:
        raise ValueError(f"max_total_duration must be > 0, got {max_total_duration!r}")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts!r}")
    if multiplier < 1:
        raise ValueError(f"multiplier must be >= 1, got {multiplier!r}")
    if max_delay is not None and max_delay < initial_delay:
        raise ValueError(f"max_delay {max_delay!r} is below initial_delay {initial_delay!r}")


@dataclass(frozen=True)
class BackoffConfig:
    initial_delay: float
    max_total_duration: float
    max_attempts: int | None = None
    multiplier: float = 2.0
    max_delay: float | None = None
    jitter: bool = False

    def __post_init__(self) -> None:
        _validate(self.initial_delay, self.max_total_duration, self.max_attempts, self.multiplier, self.max_delay)

    def delays(self) -> Iterator[float]:
        return backoff_delays(
            self.initial_delay,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )

    def retry(self, operation: Callable[[], T], **kwargs) -> T:
        return retry_expo(
            operation,
            self.initial_delay,
            self.max_total_duration,
            self.max_attempts,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
            jitter=self.jitter,
            **kwargs,
        )
