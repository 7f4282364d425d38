from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from .errors import PollTimeoutError, is_retryable

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]


def poll_immediate(
    interval: float,
    timeout: float,
    probe: Probe,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Call ``probe`` right away and then every ``interval`` seconds until it
    returns True. Returns the number of calls made.

    A retryable exception from the probe counts as "not yet" and is kept as
    the last error; any other exception propagates unchanged. When the next
    call would start at or past ``timeout``, PollTimeoutError is raised with
    the last retryable error attached.
    """
    if interval <= 0:
        raise ValueError(f"poll interval must be positive, got {interval!r}")
    if timeout < interval:
        raise PollTimeoutError(timeout, 0)

    deadline = clock() + timeout
    attempts = 0
    last_error: BaseException | None = None
    while True:
        attempts += 1
        try:
            done = probe()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            logger.debug("poll attempt %d: retryable error: %s", attempts, exc)
            last_error = exc
            done = False
        if done:
            logger.debug("poll condition met after %d attempt(s)", attempts)
            return attempts
        if clock() + interval >= deadline:
            raise PollTimeoutError(timeout, attempts, last_error)
        sleep(interval)


@dataclass(frozen=True)
class PollConfig:
    interval: float
    timeout: float

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError(f"PollConfig.interval must be > 0, got {self.interval!r}")
        if self.timeout < 0:
            raise ValueError(f"PollConfig.timeout must be >= 0, got {self.timeout!r}")

    def poll(self, probe: Probe, **kwargs) -> int:
        return poll_immediate(self.interval, self.timeout, probe, **kwargs)
