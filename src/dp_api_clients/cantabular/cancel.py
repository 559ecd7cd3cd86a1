"""Cooperative cancellation for long table walks and CSV streams."""

from __future__ import annotations

import threading
import time

from attrs import define, field

from .errors import IterationCancelledError


class CancelledError(Exception):
    """Default cause recorded when a token is cancelled without a reason."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class DeadlineExceededError(TimeoutError):
    """Cause recorded when a token's deadline passes."""

    def __init__(self, message: str = "context deadline exceeded") -> None:
        super().__init__(message)


@define(slots=True)
class CancelToken:
    """Thread-safe cancellation flag with an optional monotonic deadline.

    The token is polled, never waited on: iterators call :meth:`cause` before
    each step and stop when it returns an exception.
    """

    deadline: float | None = None
    _event: threading.Event = field(factory=threading.Event, init=False, repr=False)
    _cause: BaseException | None = field(default=None, init=False, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        """Create a token that cancels itself ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, cause: BaseException | None = None) -> None:
        """Cancel the token, recording ``cause`` for the first caller only."""
        if not self._event.is_set():
            self._cause = cause or CancelledError()
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self.cause() is not None

    def cause(self) -> BaseException | None:
        """Return why the token is cancelled, or None while it is still live."""
        if self._event.is_set():
            return self._cause
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel(DeadlineExceededError())
            return self._cause
        return None


def raise_if_cancelled(token: CancelToken | None) -> None:
    """Raise :class:`IterationCancelledError` chained from the token's cause."""
    if token is None:
        return
    cause = token.cause()
    if cause is not None:
        raise IterationCancelledError(f"context is done: {cause}") from cause


__all__ = ["CancelToken", "CancelledError", "DeadlineExceededError", "raise_if_cancelled"]
