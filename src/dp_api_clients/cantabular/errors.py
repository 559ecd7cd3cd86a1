"""Errors raised while iterating and rendering Cantabular tables."""

from __future__ import annotations

from http import HTTPStatus


class TableError(Exception):
    """Base class for table iteration and rendering failures."""


class TableShapeError(TableError):
    """Dimensions and values do not describe a consistent table."""


class IteratorExhaustedError(TableError):
    """The iterator was used after it reached the end of the table."""

    def __init__(self, message: str = "after end of table") -> None:
        super().__init__(message)


class IterationCancelledError(TableError):
    """Iteration stopped because the cancel token fired."""


class CsvWriteError(TableError):
    """The CSV sink failed while writing the header or a row."""

    def __init__(self, phase: str, row: int | None = None) -> None:
        where = phase if row is None else f"{phase} {row}"
        super().__init__(f"failed to write csv {where}")
        self.phase = phase
        self.row = row


class StreamError(TableError):
    """A GraphQL-to-CSV stream aborted before completing.

    ``rows_written`` counts the CSV rows (header included) already handed to
    the sink when the failure happened. The original failure is available as
    ``__cause__``.
    """

    def __init__(self, message: str, rows_written: int) -> None:
        super().__init__(message)
        self.rows_written = rows_written

    @property
    def cancelled(self) -> bool:
        return isinstance(self.__cause__, IterationCancelledError)

    @property
    def status_code(self) -> int:
        code = getattr(self.__cause__, "status_code", None)
        if isinstance(code, int):
            return code
        return int(HTTPStatus.INTERNAL_SERVER_ERROR)


__all__ = [
    "CsvWriteError",
    "IterationCancelledError",
    "IteratorExhaustedError",
    "StreamError",
    "TableError",
    "TableShapeError",
]
