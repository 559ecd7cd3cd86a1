"""GraphQL response fragments shared by the Cantabular queries."""

from collections.abc import Mapping, Sequence
from http import HTTPStatus
from typing import Any

import marshmallow as ma
from attr import asdict as attrs_asdict
from attrs import define, field

from ..errors import ApiError
from .models import _Schema, _tuple


@define(slots=True, frozen=True)
class Location:
    line: int = 0
    column: int = 0


class LocationSchema(_Schema):
    line = ma.fields.Int(load_default=0)
    column = ma.fields.Int(load_default=0)

    @ma.post_load
    def make_location(self, data: dict[str, int], **kwargs: object) -> Location:
        return Location(**data)


@define(slots=True, frozen=True)
class GraphQLError:
    """Entry of the top-level ``errors`` array of a GraphQL response."""

    message: str
    locations: tuple[Location, ...] = field(converter=_tuple, factory=tuple)
    path: tuple[str, ...] = field(converter=_tuple, factory=tuple)

    def status_code(self) -> int:
        """Status code prefixed to the message, e.g. 404 for ``404 Not Found: ...``.

        Messages without a recognised HTTP status prefix map to 502 Bad Gateway.
        """
        prefix = self.message[:3]
        if len(prefix) < 3 or not prefix.isdigit():
            return int(HTTPStatus.BAD_GATEWAY)
        try:
            return int(HTTPStatus(int(prefix)))
        except ValueError:
            return int(HTTPStatus.BAD_GATEWAY)

    def to_dict(self) -> dict[str, Any]:
        return attrs_asdict(self, retain_collection_types=False)


class GraphQLErrorSchema(_Schema):
    message = ma.fields.Str(required=True)
    locations = ma.fields.List(ma.fields.Nested(LocationSchema), load_default=list, allow_none=True)
    path = ma.fields.List(ma.fields.Raw(), load_default=list, allow_none=True)

    @ma.post_load
    def make_error(self, data: dict[str, Any], **kwargs: object) -> GraphQLError:
        return GraphQLError(**data)


def load_errors(payload: Mapping[str, Any]) -> list[GraphQLError]:
    """Decode the ``errors`` member of a GraphQL response body, if any."""
    raw = payload.get("errors") or []
    return GraphQLErrorSchema(many=True).load(raw)


def errors_to_api_error(errors: Sequence[GraphQLError]) -> ApiError:
    """Summarize GraphQL errors as one :class:`ApiError` using the first error's status."""
    first = errors[0]
    return ApiError(
        f"error(s) returned by graphQL query: {first.message}",
        first.status_code(),
        {"errors": [error.to_dict() for error in errors]},
    )


TABLE_ERRORS = {
    "withinMaxCells": "resulting dataset too large",
}


def table_error(message: str) -> ApiError:
    """Translate the ``table.error`` field of a response into an :class:`ApiError`."""
    return ApiError(
        f"GraphQL error: {TABLE_ERRORS.get(message, message)}",
        int(HTTPStatus.BAD_REQUEST),
        {"table_error": message},
    )


@define(slots=True, frozen=True)
class DimensionNode:
    """Variable node returned by the rule base dimension queries."""

    name: str
    label: str = ""
    description: str = ""
    categories_count: int = 0
    map_from: tuple[str, ...] = field(converter=_tuple, factory=tuple)


def _edges(container: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    if not container:
        return []
    return [edge.get("node") or {} for edge in container.get("edges") or []]


def parse_dimension_nodes(variables: Mapping[str, Any] | None) -> list[DimensionNode]:
    """Flatten a ``variables { edges { node { ... } } }`` connection into nodes."""
    nodes: list[DimensionNode] = []
    for node in _edges(variables):
        mapped: list[str] = []
        for connection in node.get("mapFrom") or []:
            mapped.extend(source["name"] for source in _edges(connection) if source.get("name"))
        nodes.append(
            DimensionNode(
                name=node["name"],
                label=node.get("label") or "",
                description=node.get("description") or "",
                categories_count=(node.get("categories") or {}).get("totalCount") or 0,
                map_from=mapped,
            )
        )
    return nodes


__all__ = [
    "DimensionNode",
    "GraphQLError",
    "GraphQLErrorSchema",
    "Location",
    "LocationSchema",
    "TABLE_ERRORS",
    "errors_to_api_error",
    "load_errors",
    "parse_dimension_nodes",
    "table_error",
]
