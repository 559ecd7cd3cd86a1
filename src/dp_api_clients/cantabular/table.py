"""Render Cantabular tables as CSV."""

import csv
import io
from collections.abc import Iterator, Sequence
from typing import TextIO

import structlog

from .cancel import CancelToken, raise_if_cancelled
from .errors import CsvWriteError
from .iterator import unravel_index
from .models import Dimension, Table

logger = structlog.get_logger(__name__)

COUNT_COLUMN = "count"
_WRITE_ERRORS = (OSError, ValueError, csv.Error)


def csv_writer(sink: TextIO):
    """Standard CSV writer with newline record terminators."""
    return csv.writer(sink, lineterminator="\n")


def header_row(dimensions: Sequence[Dimension]) -> list[str]:
    """Dimension labels in order, followed by the count column."""
    return [dim.variable.label for dim in dimensions] + [COUNT_COLUMN]


def iter_rows(table: Table, *, cancel: CancelToken | None = None) -> Iterator[list[str]]:
    """Yield one CSV data row per table value, in row-major order."""
    table.check_shape()
    sizes = [dim.size for dim in table.dimensions]
    for index, value in enumerate(table.values):
        raise_if_cancelled(cancel)
        coords = unravel_index(index, sizes)
        labels = [
            dim.categories[pos].label for dim, pos in zip(table.dimensions, coords)
        ]
        yield labels + [str(value)]


def write_table_csv(
    table: Table,
    sink: TextIO,
    *,
    cancel: CancelToken | None = None,
) -> int:
    """Write the header and every row of ``table`` to ``sink``.

    Returns the number of CSV rows written, header included. Output written
    before a failure is incomplete and should be discarded.
    """
    table.check_shape()
    writer = csv_writer(sink)
    log = logger.bind(dimensions=len(table.dimensions), cells=len(table.values))
    try:
        writer.writerow(header_row(table.dimensions))
    except _WRITE_ERRORS as exc:
        log.error("csv.header_failed", exc_info=True)
        raise CsvWriteError("header") from exc
    written = 1
    for row in iter_rows(table, cancel=cancel):
        try:
            writer.writerow(row)
        except _WRITE_ERRORS as exc:
            log.error("csv.row_failed", row=written - 1, exc_info=True)
            raise CsvWriteError("row", written - 1) from exc
        written += 1
    log.debug("csv.table_written", rows=written)
    return written


def table_to_csv(table: Table) -> io.StringIO:
    """Render ``table`` into memory and return a reader positioned at the start."""
    buffer = io.StringIO()
    write_table_csv(table, buffer)
    buffer.seek(0)
    return buffer


__all__ = [
    "COUNT_COLUMN",
    "csv_writer",
    "header_row",
    "iter_rows",
    "table_to_csv",
    "write_table_csv",
]
