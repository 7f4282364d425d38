from __future__ import annotations

from typing import Iterator


class RetryableError(Exception):
    """Marks ``cause`` as transient: pollers and retriers try again."""

    def __init__(self, cause: BaseException):
        super().__init__(str(cause))
        self.cause = cause
        self.__cause__ = cause

    def __repr__(self) -> str:
        return f"RetryableError({self.cause!r})"


class PollTimeoutError(TimeoutError):
    def __init__(self, timeout: float, attempts: int, last_error: BaseException | None = None):
        message = f"condition not met within {timeout:g}s after {attempts} attempt(s)"
        if last_error is not None:
            message = f"{message}; last error: {last_error}"
        super().__init__(message)
        self.timeout = timeout
        self.attempts = attempts
        self.last_error = last_error


class PayloadMismatchError(AssertionError):
    def __init__(self, marker: str, body: str):
        super().__init__(f"response body does not contain {marker!r}:\n{body}")
        self.marker = marker
        self.body = body


# Only explicit wrapping (``raise ... from``) counts; implicit ``__context__``
# would mark errors raised while handling a retryable one.
def _walk_causes(err: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def mark_retryable(err: BaseException) -> RetryableError:
    if isinstance(err, RetryableError):
        return err
    return RetryableError(err)


def is_retryable(err: BaseException | None) -> bool:
    if err is None:
        return False
    return any(isinstance(item, RetryableError) for item in _walk_causes(err))


def unwrap(err: BaseException) -> BaseException:
    while isinstance(err, RetryableError):
        err = err.cause
    return err
