"""HTTP client for the Cantabular server and its GraphQL extended API."""

from __future__ import annotations

import json
from collections.abc import Sequence
from http import HTTPStatus
from typing import Any, TextIO

import marshmallow as ma
import requests
import structlog
from attrs import define, field

from ..errors import ApiError
from ..headers import ETAG_HEADER, auth_headers
from ..health import STATUS_CRITICAL, STATUS_OK, CheckState, status_message
from . import queries
from .cancel import CancelToken
from .config import CantabularConfig
from .filters import SubmitFilterRequest, SubmitFilterResponse, SubmitFilterResponseSchema
from .gql import DimensionNode, errors_to_api_error, load_errors, parse_dimension_nodes, table_error
from .models import (
    CodebookResponse,
    CodebookResponseSchema,
    Dimension,
    DimensionSchema,
    StaticDatasetQueryRequest,
    Table,
    TableSchema,
)
from .stream import graphql_json_to_csv

logger = structlog.get_logger(__name__)

SERVICE = "cantabular"
SERVICE_API_EXT = "cantabularAPIExt"
SERVICE_METADATA = "cantabularMetadataService"
FILTER_SERVICE = "dp-cantabular-filter-flex-api"


@define(slots=True)
class CantabularClient:
    """Requests-based client for Cantabular REST and GraphQL endpoints."""

    config: CantabularConfig = field(factory=CantabularConfig)
    timeout: float = 30.0
    session: requests.Session = field(factory=requests.Session)
    headers: dict[str, str] = field(
        factory=lambda: {"Accept": "application/json"},
    )

    @property
    def graphql_url(self) -> str:
        return f"{self.config.ext_api_host}/graphql"

    def static_dataset_query(self, request: StaticDatasetQueryRequest) -> Table:
        """Query a static dataset table, loading the whole response into memory.

        Use :meth:`static_dataset_query_stream_csv` when large responses are expected.
        """
        data = self._graphql_data(queries.QUERY_STATIC_DATASET, request.to_variables())
        raw_table = ((data.get("dataset") or {}).get("table")) or {}
        table = self._load(TableSchema(), raw_table, self.graphql_url)
        if table.error:
            raise table_error(table.error)
        return table

    def static_dataset_query_stream_csv(
        self,
        request: StaticDatasetQueryRequest,
        sink: TextIO,
        *,
        cancel: CancelToken | None = None,
    ) -> int:
        """Stream a static dataset table straight from the response body into ``sink`` as CSV.

        Returns the number of CSV rows written, header included. Transform
        failures raise :class:`~dp_api_clients.cantabular.errors.StreamError`.
        """
        payload = {"query": queries.QUERY_STATIC_DATASET, "variables": request.to_variables()}
        response = self._post_graphql(payload, stream=True)
        log = logger.bind(url=self.graphql_url, dataset=request.dataset)
        try:
            response.raw.decode_content = True
            rows = graphql_json_to_csv(response.raw, sink, cancel=cancel)
        finally:
            response.close()
        log.info("cantabular.stream_complete", rows=rows)
        return rows

    def static_dataset_type(self, dataset: str) -> str:
        """Return the dataset type, e.g. ``microdata`` or ``table``."""
        data = self._graphql_data(queries.QUERY_STATIC_DATASET_TYPE, {"dataset": dataset})
        return (data.get("dataset") or {}).get("type") or ""

    def list_datasets(self) -> list[str]:
        """Names of every dataset loaded in the extended API."""
        data = self._graphql_data(queries.QUERY_LIST_DATASETS, {})
        return [item["name"] for item in data.get("datasets") or []]

    def get_blobs(self) -> list[str]:
        """Names of the blobs the extended API serves.

        Each loaded dataset is one blob, so this asks the same ``datasets``
        question as :meth:`list_datasets` and logs under its own event name.
        """
        names = self.list_datasets()
        logger.debug("cantabular.blobs_listed", count=len(names))
        return names

    def get_dimensions(self, dataset: str) -> list[DimensionNode]:
        """All variables of ``dataset``."""
        data = self._graphql_data(queries.QUERY_DIMENSIONS, {"dataset": dataset})
        return parse_dimension_nodes((data.get("dataset") or {}).get("variables"))

    def get_geography_dimensions(self, dataset: str) -> list[DimensionNode]:
        """Variables sourced from the rule base variable of ``dataset``."""
        data = self._graphql_data(queries.QUERY_GEOGRAPHY_DIMENSIONS, {"dataset": dataset})
        rule_base = (data.get("dataset") or {}).get("ruleBase") or {}
        return parse_dimension_nodes(rule_base.get("isSourceOf"))

    def get_dimensions_by_name(
        self, dataset: str, names: Sequence[str]
    ) -> list[DimensionNode]:
        """Only the variables of ``dataset`` whose names are listed."""
        data = self._graphql_data(
            queries.QUERY_DIMENSIONS_BY_NAME,
            {"dataset": dataset, "variables": list(names)},
        )
        return parse_dimension_nodes((data.get("dataset") or {}).get("variables"))

    def get_dimension_options(self, request: StaticDatasetQueryRequest) -> list[Dimension]:
        """Categories of the requested variables, without counts."""
        data = self._graphql_data(queries.QUERY_DIMENSION_OPTIONS, request.to_variables())
        raw_table = ((data.get("dataset") or {}).get("table")) or {}
        if raw_table.get("error"):
            raise table_error(raw_table["error"])
        return self._load(
            DimensionSchema(many=True), raw_table.get("dimensions") or [], self.graphql_url
        )

    def get_codebook(
        self,
        dataset: str,
        variables: Sequence[str] = (),
        *,
        categories: bool = False,
    ) -> CodebookResponse:
        """Fetch the codebook of ``dataset`` from the Cantabular server."""
        if not self.config.host:
            raise ApiError(
                "cantabular server host not configured", HTTPStatus.SERVICE_UNAVAILABLE.value
            )
        url = f"{self.config.host}/{self.config.version}/codebook/{dataset}"
        params: list[tuple[str, str]] = [("cats", str(categories).lower())]
        params.extend(("v", name) for name in variables)
        response = self._get(url, params=params)
        try:
            if response.status_code != HTTPStatus.OK:
                raise self._error_response(url, response)
            payload = self._decode_json(url, response)
        finally:
            response.close()
        return self._load(CodebookResponseSchema(), payload, url)

    def submit_filter(
        self,
        request: SubmitFilterRequest,
        *,
        user_auth_token: str = "",
        service_auth_token: str = "",
        download_service_token: str = "",
        if_match: str = "",
    ) -> tuple[SubmitFilterResponse, str]:
        """Submit a filter job to the filter-flex API.

        Returns the decoded job and the ``ETag`` of the response, which is
        empty when the API sent none.
        """
        self._require_ext_api()
        url = f"{self.config.ext_api_host}/filters/{request.filter_id}/submit"
        body = request.to_dict()
        log = logger.bind(url=url, method="POST", service=FILTER_SERVICE)
        log.info("filter.submit_start", body=body)
        request_headers = {
            **self.headers,
            **auth_headers(
                user_auth_token=user_auth_token,
                service_auth_token=service_auth_token,
                download_service_token=download_service_token,
                if_match=if_match,
            ),
        }
        try:
            response = self.session.post(
                url, json=body, headers=request_headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            log.error("http.request_failed", exc_info=True)
            raise ApiError(
                f"failed to make request: {exc}",
                HTTPStatus.INTERNAL_SERVER_ERROR.value,
                {"url": url, "method": "POST"},
            ) from exc
        try:
            if response.status_code != HTTPStatus.OK:
                raise ApiError(
                    "invalid response from filter api - should be: "
                    f"{HTTPStatus.OK.value}, got: {response.status_code}, path: {url}",
                    response.status_code,
                    {"url": url, "filter_id": request.filter_id},
                )
            etag = response.headers.get(ETAG_HEADER, "")
            payload = self._decode_json(url, response)
        finally:
            response.close()
        return self._load(SubmitFilterResponseSchema(), payload, url), etag

    def checker(self, state: CheckState) -> CheckState:
        """Check the Cantabular server through its datasets endpoint."""
        url = f"{self.config.host}/{self.config.version}/datasets"
        return self._check_health(state, SERVICE, url)

    def checker_api_ext(self, state: CheckState) -> CheckState:
        """Check the extended API with a minimal GraphQL query."""
        url = f"{self.graphql_url}?query={{datasets{{name}}}}"
        return self._check_health(state, SERVICE_API_EXT, url)

    def checker_metadata_service(self, state: CheckState) -> CheckState:
        """Check the metadata service, which is served from the extended API host."""
        return self._check_health(state, SERVICE_METADATA, self.graphql_url)

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
        logger.debug("http.session_closed")

    def _check_health(self, state: CheckState, service: str, url: str) -> CheckState:
        log = logger.bind(service=service, url=url)
        state.name = service
        try:
            response = self.session.get(url, timeout=self.timeout, headers=self.headers)
        except requests.RequestException as exc:
            log.error("health.request_failed", exc_info=True)
            state.update(STATUS_CRITICAL, str(exc), 0)
            return state
        try:
            code = response.status_code
        finally:
            response.close()
        if code == HTTPStatus.OK:
            state.update(STATUS_OK, status_message(service, STATUS_OK), code)
        else:
            log.warning("health.unhealthy", status=code)
            state.update(STATUS_CRITICAL, status_message(service, STATUS_CRITICAL), code)
        return state

    def _require_ext_api(self) -> None:
        if not self.config.ext_api_host:
            raise ApiError(
                "cantabular Extended API Client not configured",
                HTTPStatus.SERVICE_UNAVAILABLE.value,
            )

    def _get(self, url: str, *, params: Any = None) -> requests.Response:
        log = logger.bind(url=url, method="GET")
        log.debug("http.request_start", timeout=self.timeout)
        try:
            return self.session.get(url, params=params, timeout=self.timeout, headers=self.headers)
        except requests.RequestException as exc:
            log.error("http.request_failed", exc_info=True)
            raise ApiError(
                f"failed to make request: {exc}",
                HTTPStatus.INTERNAL_SERVER_ERROR.value,
                {"url": url, "method": "GET"},
            ) from exc

    def _post_graphql(self, payload: dict[str, Any], *, stream: bool = False) -> requests.Response:
        """POST a GraphQL document, returning the response only when it is 200 OK."""
        self._require_ext_api()
        url = self.graphql_url
        log = logger.bind(url=url, method="POST")
        log.debug("http.request_start", timeout=self.config.graphql_timeout, stream=stream)
        try:
            response = self.session.post(
                url,
                json=payload,
                headers=self.headers,
                timeout=self.config.graphql_timeout,
                stream=stream,
            )
        except requests.RequestException as exc:
            log.error("http.request_failed", exc_info=True)
            raise ApiError(
                f"failed to make GraphQL query: failed to make request: {exc}",
                HTTPStatus.INTERNAL_SERVER_ERROR.value,
                {"url": url, "method": "POST"},
            ) from exc
        if response.status_code != HTTPStatus.OK:
            try:
                raise self._error_response(url, response)
            finally:
                response.close()
        return response

    def _graphql_data(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` member, raising on GraphQL errors."""
        response = self._post_graphql({"query": query, "variables": variables})
        try:
            payload = self._decode_json(self.graphql_url, response)
        finally:
            response.close()
        errors = load_errors(payload)
        if errors:
            logger.warning(
                "graphql.errors", url=self.graphql_url, errors=[e.message for e in errors]
            )
            raise errors_to_api_error(errors)
        return payload.get("data") or {}

    @staticmethod
    def _decode_json(url: str, response: requests.Response) -> dict[str, Any]:
        try:
            return json.loads(response.content)
        except ValueError as exc:
            raise ApiError(
                f"failed to unmarshal response body: {exc}",
                HTTPStatus.INTERNAL_SERVER_ERROR.value,
                {"url": url, "response_body": response.text},
            ) from exc

    @staticmethod
    def _load(schema: ma.Schema, payload: Any, url: str) -> Any:
        """Deserialize ``payload``, reporting schema violations as an ApiError."""
        try:
            return schema.load(payload)
        except ma.ValidationError as exc:
            raise ApiError(
                f"failed to unmarshal response body: {exc.messages}",
                HTTPStatus.INTERNAL_SERVER_ERROR.value,
                {"url": url},
            ) from exc

    @staticmethod
    def _error_response(url: str, response: requests.Response) -> ApiError:
        """Translate a non-200 response carrying ``{"message": ...}`` into an ApiError."""
        body = response.text or "[response body empty]"
        try:
            message = json.loads(body)["message"]
        except (ValueError, KeyError, TypeError) as exc:
            return ApiError(
                f"failed to unmarshal error response body: {exc}",
                response.status_code,
                {"url": url, "response_body": body},
            )
        return ApiError(message, response.status_code, {"url": url})


__all__ = ["CantabularClient", "FILTER_SERVICE", "SERVICE", "SERVICE_API_EXT", "SERVICE_METADATA"]
