"""Domain models for Cantabular GraphQL and codebook responses."""

from collections.abc import Iterable
from datetime import datetime
from math import prod
from typing import Any

import marshmallow as ma
from attrs import define, field

from .errors import TableShapeError


def _tuple(value: Iterable[Any] | None) -> tuple[Any, ...]:
    """Normalize optional JSON arrays into tuples."""
    if value is None:
        return ()
    return tuple(value)


class _Schema(ma.Schema):
    """Base schema that ignores fields the models do not carry."""

    class Meta:
        unknown = ma.EXCLUDE


@define(slots=True, frozen=True)
class Category:
    """One value of a dimension, e.g. ``London`` in ``City``."""

    code: str
    label: str


class CategorySchema(_Schema):
    code = ma.fields.Str(required=True)
    label = ma.fields.Str(required=True)

    @ma.post_load
    def make_category(self, data: dict[str, str], **kwargs: object) -> Category:
        return Category(**data)


@define(slots=True, frozen=True)
class Variable:
    """Name and label of a Cantabular variable."""

    name: str
    label: str = ""


class VariableSchema(_Schema):
    name = ma.fields.Str(required=True)
    label = ma.fields.Str(load_default="")

    @ma.post_load
    def make_variable(self, data: dict[str, str], **kwargs: object) -> Variable:
        return Variable(**data)


@define(slots=True, frozen=True)
class Dimension:
    """A categorical axis of a table.

    ``count`` is whatever the upstream response reported and may be missing.
    The number of categories is the authoritative size.
    """

    variable: Variable
    categories: tuple[Category, ...] = field(converter=_tuple, factory=tuple)
    count: int | None = None

    @property
    def size(self) -> int:
        return len(self.categories)

    def check(self) -> None:
        """Raise :class:`TableShapeError` if the reported count disagrees with the categories."""
        if self.count is not None and self.count != self.size:
            raise TableShapeError(
                f"dimension {self.variable.name!r} reports count {self.count} "
                f"but has {self.size} categories"
            )


class DimensionSchema(_Schema):
    variable = ma.fields.Nested(VariableSchema, required=True)
    categories = ma.fields.List(
        ma.fields.Nested(CategorySchema), load_default=list, allow_none=True
    )
    count = ma.fields.Int(load_default=None, allow_none=True)

    @ma.post_load
    def make_dimension(self, data: dict[str, Any], **kwargs: object) -> Dimension:
        return Dimension(**data)


@define(slots=True, frozen=True)
class Table:
    """Counts for every combination of dimension categories, in row-major order."""

    dimensions: tuple[Dimension, ...] = field(converter=_tuple, factory=tuple)
    values: tuple[int, ...] = field(converter=_tuple, factory=tuple)
    error: str | None = None

    @property
    def cell_count(self) -> int:
        """Number of cells implied by the dimensions."""
        return prod(dim.size for dim in self.dimensions)

    def check_shape(self) -> None:
        """Validate dimension counts, integer values and the length of ``values``."""
        if not self.dimensions:
            raise TableShapeError("table has no dimensions")
        for dim in self.dimensions:
            dim.check()
        for index, value in enumerate(self.values):
            if isinstance(value, bool) or not isinstance(value, int):
                raise TableShapeError(f"table value {value!r} at cell {index} is not an integer")
        if len(self.values) != self.cell_count:
            raise TableShapeError(
                f"table shape mismatch: {len(self.values)} values "
                f"for {self.cell_count} cells"
            )


class TableSchema(_Schema):
    dimensions = ma.fields.List(ma.fields.Nested(DimensionSchema), load_default=list)
    values = ma.fields.List(ma.fields.Int(strict=True), load_default=list, allow_none=True)
    error = ma.fields.Str(load_default=None, allow_none=True)

    @ma.post_load
    def make_table(self, data: dict[str, Any], **kwargs: object) -> Table:
        return Table(**data)


@define(slots=True, frozen=True)
class Filter:
    """Restrict a query variable to a set of category codes."""

    variable: str
    codes: tuple[str, ...] = field(converter=_tuple, factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {"variable": self.variable, "codes": list(self.codes)}


@define(slots=True, frozen=True)
class StaticDatasetQueryRequest:
    """Dataset, variables and optional filters for a static dataset table query."""

    dataset: str = ""
    variables: tuple[str, ...] = field(converter=_tuple, factory=tuple)
    filters: tuple[Filter, ...] = field(converter=_tuple, factory=tuple)

    def to_variables(self) -> dict[str, object]:
        """Return the GraphQL ``variables`` object for this request."""
        payload: dict[str, object] = {
            "dataset": self.dataset,
            "variables": list(self.variables),
        }
        if self.filters:
            payload["filters"] = [flt.to_dict() for flt in self.filters]
        return payload


@define(slots=True, frozen=True)
class MapFrom:
    """Source variables a derived codebook variable maps from."""

    source_names: tuple[str, ...] = field(converter=_tuple, factory=tuple)
    codes: tuple[str, ...] = field(converter=_tuple, factory=tuple)


class MapFromSchema(_Schema):
    source_names = ma.fields.List(ma.fields.Str(), data_key="sourceNames", load_default=list)
    codes = ma.fields.List(ma.fields.Str(), load_default=list)

    @ma.post_load
    def make_map_from(self, data: dict[str, Any], **kwargs: object) -> MapFrom:
        return MapFrom(**data)


@define(slots=True, frozen=True)
class CodebookVariable:
    """Variable entry of a Cantabular codebook, optionally with its categories."""

    name: str
    label: str = ""
    length: int = 0
    codes: tuple[str, ...] = field(converter=_tuple, factory=tuple)
    labels: tuple[str, ...] = field(converter=_tuple, factory=tuple)
    map_from: tuple[MapFrom, ...] = field(converter=_tuple, factory=tuple)

    def categories(self) -> list[Category]:
        """Pair codes with labels when the codebook was requested with categories."""
        return [Category(code=code, label=label) for code, label in zip(self.codes, self.labels)]


class CodebookVariableSchema(_Schema):
    name = ma.fields.Str(required=True)
    label = ma.fields.Str(load_default="")
    length = ma.fields.Int(data_key="len", load_default=0)
    codes = ma.fields.List(ma.fields.Str(), load_default=list, allow_none=True)
    labels = ma.fields.List(ma.fields.Str(), load_default=list, allow_none=True)
    map_from = ma.fields.List(
        ma.fields.Nested(MapFromSchema), data_key="mapFrom", load_default=list, allow_none=True
    )

    @ma.post_load
    def make_variable(self, data: dict[str, Any], **kwargs: object) -> CodebookVariable:
        return CodebookVariable(**data)


@define(slots=True, frozen=True)
class Dataset:
    """Dataset descriptor returned alongside a codebook."""

    name: str
    digest: str = ""
    description: str = ""
    size: int = 0
    rule_base_variable: str = ""
    created: datetime | None = None


class DatasetSchema(_Schema):
    name = ma.fields.Str(required=True)
    digest = ma.fields.Str(load_default="")
    description = ma.fields.Str(load_default="")
    size = ma.fields.Int(load_default=0)
    rule_base_variable = ma.fields.Str(data_key="ruleBaseVariable", load_default="")
    created = ma.fields.DateTime(data_key="datetime", load_default=None, allow_none=True)

    @ma.post_load
    def make_dataset(self, data: dict[str, Any], **kwargs: object) -> Dataset:
        return Dataset(**data)


@define(slots=True, frozen=True)
class CodebookResponse:
    """Body of ``GET /codebook/{dataset}``."""

    codebook: tuple[CodebookVariable, ...] = field(converter=_tuple, factory=tuple)
    dataset: Dataset | None = None

    def variable(self, name: str) -> CodebookVariable | None:
        """Look up a codebook variable by name."""
        for var in self.codebook:
            if var.name == name:
                return var
        return None


class CodebookResponseSchema(_Schema):
    codebook = ma.fields.List(
        ma.fields.Nested(CodebookVariableSchema), load_default=list, allow_none=True
    )
    dataset = ma.fields.Nested(DatasetSchema, load_default=None, allow_none=True)

    @ma.post_load
    def make_response(self, data: dict[str, Any], **kwargs: object) -> CodebookResponse:
        return CodebookResponse(**data)


__all__ = [
    "Category",
    "CategorySchema",
    "CodebookResponse",
    "CodebookResponseSchema",
    "CodebookVariable",
    "CodebookVariableSchema",
    "Dataset",
    "DatasetSchema",
    "Dimension",
    "DimensionSchema",
    "Filter",
    "MapFrom",
    "MapFromSchema",
    "StaticDatasetQueryRequest",
    "Table",
    "TableSchema",
    "Variable",
    "VariableSchema",
]
