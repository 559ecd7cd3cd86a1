"""Models for submitting filters through the Cantabular filter-flex API."""

from datetime import datetime
from typing import Any

import marshmallow as ma
from attrs import define, field

from .models import _Schema, _tuple


def _present(data: dict[str, Any]) -> dict[str, Any]:
    """Drop missing nested objects so the attrs defaults apply."""
    return {key: value for key, value in data.items() if value is not None}


@define(slots=True, frozen=True)
class DimensionOptions:
    """Options selected for one dimension of a filter."""

    name: str
    options: tuple[str, ...] = field(converter=_tuple, factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "options": list(self.options)}


@define(slots=True, frozen=True)
class SubmitFilterRequest:
    filter_id: str
    population_type: str = ""
    dimension_options: tuple[DimensionOptions, ...] = field(converter=_tuple, factory=tuple)

    def to_dict(self) -> dict[str, object]:
        """JSON body of the submit request; empty dimension options are omitted."""
        body: dict[str, object] = {
            "filter_id": self.filter_id,
            "population_type": self.population_type,
        }
        if self.dimension_options:
            body["dimension_options"] = [opt.to_dict() for opt in self.dimension_options]
        return body


@define(slots=True, frozen=True)
class FilterEvent:
    name: str
    timestamp: datetime | None = None


class FilterEventSchema(_Schema):
    name = ma.fields.Str(load_default="")
    timestamp = ma.fields.DateTime(load_default=None, allow_none=True)

    @ma.post_load
    def make_event(self, data: dict[str, Any], **kwargs: object) -> FilterEvent:
        return FilterEvent(**data)


@define(slots=True, frozen=True)
class FilterDataset:
    id: str = ""
    edition: str = ""
    version: int = 0


class FilterDatasetSchema(_Schema):
    id = ma.fields.Str(load_default="")
    edition = ma.fields.Str(load_default="")
    version = ma.fields.Int(load_default=0)

    @ma.post_load
    def make_dataset(self, data: dict[str, Any], **kwargs: object) -> FilterDataset:
        return FilterDataset(**data)


@define(slots=True, frozen=True)
class Link:
    href: str = ""
    id: str = ""


class LinkSchema(_Schema):
    href = ma.fields.Str(load_default="")
    id = ma.fields.Str(load_default="")

    @ma.post_load
    def make_link(self, data: dict[str, Any], **kwargs: object) -> Link:
        return Link(**data)


@define(slots=True, frozen=True)
class FilterLinks:
    version: Link = field(factory=Link)
    self_link: Link = field(factory=Link)


class FilterLinksSchema(_Schema):
    version = ma.fields.Nested(LinkSchema, load_default=None, allow_none=True)
    self_link = ma.fields.Nested(LinkSchema, data_key="self", load_default=None, allow_none=True)

    @ma.post_load
    def make_links(self, data: dict[str, Any], **kwargs: object) -> FilterLinks:
        return FilterLinks(**_present(data))


@define(slots=True, frozen=True)
class FilterDimension:
    name: str
    options: tuple[str, ...] = field(converter=_tuple, factory=tuple)
    dimension_url: str = ""
    is_area_type: bool = False


class FilterDimensionSchema(_Schema):
    name = ma.fields.Str(required=True)
    options = ma.fields.List(ma.fields.Str(), load_default=list, allow_none=True)
    dimension_url = ma.fields.Str(load_default="")
    is_area_type = ma.fields.Bool(load_default=False)

    @ma.post_load
    def make_dimension(self, data: dict[str, Any], **kwargs: object) -> FilterDimension:
        return FilterDimension(**data)


@define(slots=True, frozen=True)
class SubmitFilterResponse:
    """Filter job state returned by ``POST /filters/{id}/submit``."""

    filter_id: str
    instance_id: str = ""
    dimension_list_url: str = ""
    population_type: str = ""
    dataset: FilterDataset = field(factory=FilterDataset)
    links: FilterLinks = field(factory=FilterLinks)
    events: tuple[FilterEvent, ...] = field(converter=_tuple, factory=tuple)
    dimensions: tuple[FilterDimension, ...] = field(converter=_tuple, factory=tuple)


class SubmitFilterResponseSchema(_Schema):
    filter_id = ma.fields.Str(required=True)
    instance_id = ma.fields.Str(load_default="")
    dimension_list_url = ma.fields.Str(load_default="")
    population_type = ma.fields.Str(load_default="")
    dataset = ma.fields.Nested(FilterDatasetSchema, load_default=None, allow_none=True)
    links = ma.fields.Nested(FilterLinksSchema, load_default=None, allow_none=True)
    events = ma.fields.List(ma.fields.Nested(FilterEventSchema), load_default=list, allow_none=True)
    dimensions = ma.fields.List(
        ma.fields.Nested(FilterDimensionSchema), load_default=list, allow_none=True
    )

    @ma.post_load
    def make_response(self, data: dict[str, Any], **kwargs: object) -> SubmitFilterResponse:
        return SubmitFilterResponse(**_present(data))


__all__ = [
    "DimensionOptions",
    "FilterDataset",
    "FilterDimension",
    "FilterEvent",
    "FilterLinks",
    "Link",
    "SubmitFilterRequest",
    "SubmitFilterResponse",
    "SubmitFilterResponseSchema",
]
