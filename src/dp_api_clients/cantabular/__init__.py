"""Cantabular client, table models and CSV rendering."""

from .cancel import CancelToken
from .client import CantabularClient
from .config import CantabularConfig
from .errors import (
    CsvWriteError,
    IterationCancelledError,
    IteratorExhaustedError,
    StreamError,
    TableError,
    TableShapeError,
)
from .filters import DimensionOptions, SubmitFilterRequest, SubmitFilterResponse
from .iterator import DimensionIterator, unravel_index
from .models import (
    Category,
    CodebookResponse,
    CodebookVariable,
    Dataset,
    Dimension,
    Filter,
    StaticDatasetQueryRequest,
    Table,
    Variable,
)
from .stream import graphql_json_to_csv
from .table import header_row, iter_rows, table_to_csv, write_table_csv

__all__ = [
    "CancelToken",
    "CantabularClient",
    "CantabularConfig",
    "Category",
    "CodebookResponse",
    "CodebookVariable",
    "CsvWriteError",
    "Dataset",
    "Dimension",
    "DimensionIterator",
    "DimensionOptions",
    "Filter",
    "IterationCancelledError",
    "IteratorExhaustedError",
    "StaticDatasetQueryRequest",
    "StreamError",
    "SubmitFilterRequest",
    "SubmitFilterResponse",
    "Table",
    "TableError",
    "TableShapeError",
    "Variable",
    "graphql_json_to_csv",
    "header_row",
    "iter_rows",
    "table_to_csv",
    "unravel_index",
    "write_table_csv",
]
