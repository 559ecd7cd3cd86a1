"""Common error type for ONS API clients.

Every client failure that relates to an HTTP call is raised as an
:class:`ApiError`, which carries the status code to report upstream and a
dictionary of structured log data. Errors are chained with ``raise ... from``
so the helpers below walk the ``__cause__`` chain the same way callers would
unwrap nested errors.
"""

from __future__ import annotations

from collections.abc import Iterator
from http import HTTPStatus
from typing import Any


class ApiError(Exception):
    """Client error annotated with an HTTP status code and log data."""

    def __init__(
        self,
        message: str | BaseException,
        status_code: int,
        log_data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(str(message) if message is not None else "nil error")
        self.status_code = status_code
        self.log_data = log_data

    @property
    def code(self) -> int:
        """Alias kept for parity with the ``Code()`` accessor used across ONS services."""
        return self.status_code

    def __repr__(self) -> str:
        return f"ApiError({str(self)!r}, {self.status_code}, {self.log_data!r})"


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__


def status_code(err: BaseException | None, default: int = HTTPStatus.INTERNAL_SERVER_ERROR) -> int:
    """Return the first status code found on the error chain, else ``default``."""
    for item in _chain(err):
        code = getattr(item, "status_code", None)
        if isinstance(code, int):
            return code
    return int(default)


def log_data(err: BaseException | None) -> dict[str, Any] | None:
    """Return the log data of the first error in the chain that has any."""
    for item in _chain(err):
        data = getattr(item, "log_data", None)
        if data:
            return data
    return None


def unwrap_log_data(err: BaseException | None) -> dict[str, Any]:
    """Merge the log data of every error in the chain.

    Keys seen more than once with different values are collected into a list,
    identical key/value pairs are kept once.
    """
    merged: dict[str, Any] = {}
    multi: set[str] = set()
    for item in _chain(err):
        data = getattr(item, "log_data", None)
        if not data:
            continue
        for key, value in data.items():
            if key not in merged:
                merged[key] = value
            elif key in multi:
                if value not in merged[key]:
                    merged[key].append(value)
            elif merged[key] != value:
                merged[key] = [merged[key], value]
                multi.add(key)
    return merged


__all__ = ["ApiError", "status_code", "log_data", "unwrap_log_data"]
