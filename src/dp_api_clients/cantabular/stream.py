"""Transform a static dataset GraphQL response into CSV without loading it whole.

The response body is parsed incrementally with ijson. Dimensions are small
and are materialised as soon as they arrive; values can number in the
millions and each one is written out as a CSV row the moment it is parsed.
"""

from collections.abc import Iterator
from typing import IO, Any, TextIO

import ijson
import marshmallow as ma
import requests
import structlog
import urllib3
from attrs import define

from ..errors import ApiError
from .cancel import CancelToken, raise_if_cancelled
from .errors import CsvWriteError, StreamError, TableError, TableShapeError
from .gql import GraphQLErrorSchema, errors_to_api_error, table_error
from .iterator import DimensionIterator
from .models import Dimension, DimensionSchema
from .table import _WRITE_ERRORS, csv_writer, header_row

logger = structlog.get_logger(__name__)

TABLE_PREFIX = "data.dataset.table"
DIMENSIONS_PREFIX = f"{TABLE_PREFIX}.dimensions"
VALUES_PREFIX = f"{TABLE_PREFIX}.values"
VALUE_ITEM_PREFIX = f"{VALUES_PREFIX}.item"
TABLE_ERROR_PREFIX = f"{TABLE_PREFIX}.error"
ERRORS_PREFIX = "errors"

Event = tuple[str, str, Any]

# Body reads go through urllib3, so a dropped connection surfaces as its
# HTTPError rather than an OSError.
_STREAM_ERRORS = (
    TableError,
    ApiError,
    ijson.JSONError,
    ma.ValidationError,
    OSError,
    requests.RequestException,
    urllib3.exceptions.HTTPError,
)


@define(slots=True)
class _Progress:
    rows: int = 0
    cells: int = 0


def _build_array(events: Iterator[Event], prefix: str, event: str, value: Any) -> list[Any]:
    """Collect the JSON array starting at ``prefix`` into Python objects."""
    builder = ijson.ObjectBuilder()
    builder.event(event, value)
    for item_prefix, item_event, item_value in events:
        builder.event(item_event, item_value)
        if item_prefix == prefix and item_event == "end_array":
            break
    return builder.value


def _load_dimensions(raw: list[Any]) -> list[Dimension]:
    dimensions = DimensionSchema(many=True).load(raw)
    for dim in dimensions:
        dim.check()
    return dimensions


def _write(writer: Any, row: list[str], phase: str, index: int | None = None) -> None:
    try:
        writer.writerow(row)
    except _WRITE_ERRORS as exc:
        raise CsvWriteError(phase, index) from exc


def _transform(
    events: Iterator[Event],
    sink: TextIO,
    progress: _Progress,
    cancel: CancelToken | None,
) -> None:
    writer = csv_writer(sink)
    dimensions: list[Dimension] | None = None
    cursor: DimensionIterator | None = None
    saw_values = False

    for prefix, event, value in events:
        if prefix == ERRORS_PREFIX and event == "start_array":
            errors = GraphQLErrorSchema(many=True).load(_build_array(events, prefix, event, value))
            if errors:
                raise errors_to_api_error(errors)
        elif prefix == DIMENSIONS_PREFIX and event == "start_array":
            dimensions = _load_dimensions(_build_array(events, prefix, event, value))
        elif prefix == TABLE_ERROR_PREFIX and event == "string" and value:
            raise table_error(value)
        elif prefix == VALUES_PREFIX and event == "start_array":
            if dimensions is None:
                raise TableShapeError("table values received before dimensions")
            cursor = DimensionIterator(dimensions, cancel=cancel)
            raise_if_cancelled(cancel)
            _write(writer, header_row(dimensions), "header")
            progress.rows += 1
            saw_values = True
        elif prefix == VALUE_ITEM_PREFIX:
            if event != "number":
                raise TableShapeError(f"expected a number in table values but got {event}")
            if progress.cells == 0:
                cursor.check_cancelled()
            else:
                cursor.next()
            if cursor.end():
                raise TableShapeError("table has more values than cells")
            # ijson yields Decimal for anything with a fraction or exponent.
            if not isinstance(value, int):
                raise TableShapeError(
                    f"table value {value} at cell {progress.cells} is not an integer"
                )
            row = [category.label for category in cursor.row()] + [str(value)]
            _write(writer, row, "row", progress.cells)
            progress.rows += 1
            progress.cells += 1
        elif prefix == VALUES_PREFIX and event == "end_array":
            expected = 1
            for dim in dimensions:
                expected *= dim.size
            if progress.cells != expected:
                raise TableShapeError(
                    f"table shape mismatch: {progress.cells} values for {expected} cells"
                )

    if not saw_values:
        raise ApiError("GraphQL response did not contain table values", 502)


def graphql_json_to_csv(
    body: IO[bytes],
    sink: TextIO,
    *,
    cancel: CancelToken | None = None,
) -> int:
    """Stream the table in a GraphQL JSON ``body`` into ``sink`` as CSV.

    Returns the number of CSV rows written, header included. Any failure is
    raised as :class:`StreamError` carrying the rows already written, after
    the sink has been flushed.
    """
    progress = _Progress()
    log = logger.bind(operation="graphql_json_to_csv")
    log.debug("stream.start")
    try:
        _transform(iter(ijson.parse(body)), sink, progress, cancel)
    except _STREAM_ERRORS as exc:
        log.warning("stream.aborted", rows=progress.rows, error=str(exc))
        raise StreamError(f"transform error: {exc}", rows_written=progress.rows) from exc
    finally:
        flush = getattr(sink, "flush", None)
        if flush is not None:
            flush()
    log.debug("stream.complete", rows=progress.rows)
    return progress.rows


__all__ = ["graphql_json_to_csv"]
