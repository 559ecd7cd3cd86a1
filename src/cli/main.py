"""Command line entry point for the dp-cantabular tool."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO

import click
import structlog
from attr import asdict as attrs_asdict

from dp_api_clients.cantabular import (
    CancelToken,
    CantabularClient,
    CantabularConfig,
    Filter,
    StaticDatasetQueryRequest,
    StreamError,
    TableError,
    write_table_csv,
)
from dp_api_clients.cantabular.config import (
    DEFAULT_GRAPHQL_TIMEOUT,
    ENV_EXT_API_HOST,
    ENV_GRAPHQL_TIMEOUT,
    ENV_HOST,
)
from dp_api_clients.errors import ApiError, status_code
from dp_api_clients.health import CheckState
from dp_api_clients.logging import configure_logging

HOST_HELP = f"Cantabular server URL. May also be set via the {ENV_HOST} env var."
EXT_HOST_HELP = (
    f"Cantabular extended API URL. May also be set via the {ENV_EXT_API_HOST} env var."
)
FILTER_HELP = "Restrict a variable to some category codes, as VARIABLE=CODE[,CODE...]."

LOG_FORMAT_CHOICES = ("console", "json")
LOG_LEVEL_CHOICES = ("critical", "error", "warning", "info", "debug")

logger = structlog.get_logger(__name__)


def _build_client(ctx: click.Context) -> CantabularClient:
    """Create a client from the configuration stored on the click context."""
    ctx.ensure_object(dict)
    config = ctx.obj.get("config") or CantabularConfig()
    return CantabularClient(config=config)


def _parse_filters(values: Sequence[str]) -> list[Filter]:
    """Parse ``VARIABLE=CODE,CODE`` options into filters."""
    filters: list[Filter] = []
    for raw in values:
        variable, sep, codes = raw.partition("=")
        variable = variable.strip()
        if not sep or not variable or not codes.strip():
            raise click.BadParameter(f"expected VARIABLE=CODE[,CODE...], got {raw!r}")
        filters.append(
            Filter(variable=variable, codes=[c.strip() for c in codes.split(",") if c.strip()])
        )
    return filters


@contextmanager
def _open_output(path: Path | None) -> Iterator[TextIO]:
    """Yield the requested output file, or stdout when no path is given."""
    if path is None or str(path) == "-":
        yield sys.stdout
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        yield handle


def _fail(err: Exception) -> click.ClickException:
    """Report a client failure with its status code."""
    logger.error("command.failed", error=str(err), status=status_code(err), exc_info=err)
    return click.ClickException(f"{err} (status {status_code(err)})")


@click.group()
@click.option("--host", envvar=ENV_HOST, default="", help=HOST_HELP)
@click.option("--ext-api-host", envvar=ENV_EXT_API_HOST, default="", help=EXT_HOST_HELP)
@click.option(
    "--graphql-timeout",
    envvar=ENV_GRAPHQL_TIMEOUT,
    type=float,
    default=DEFAULT_GRAPHQL_TIMEOUT,
    show_default=True,
    help="Seconds to wait for GraphQL responses.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVEL_CHOICES, case_sensitive=False),
    envvar="DP_LOG_LEVEL",
    default="info",
    show_default=True,
    help="Verbosity for structured logs.",
)
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMAT_CHOICES, case_sensitive=False),
    envvar="DP_LOG_FORMAT",
    default="console",
    show_default=True,
    help="Render logs as console-friendly text or JSON.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    host: str,
    ext_api_host: str,
    graphql_timeout: float,
    log_level: str,
    log_format: str,
) -> None:
    """Query Cantabular datasets and export tables as CSV."""
    configure_logging(level=log_level, json_output=log_format.lower() == "json")
    ctx.ensure_object(dict)
    try:
        config = CantabularConfig(
            host=host, ext_api_host=ext_api_host, graphql_timeout=graphql_timeout
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--graphql-timeout") from exc
    ctx.obj["config"] = config
    logger.bind(command_group="dp-cantabular").debug(
        "cli.initialized",
        host=bool(config.host),
        ext_api_host=bool(config.ext_api_host),
        log_level=log_level.lower(),
        log_format=log_format.lower(),
    )


@cli.command("query")
@click.option("--dataset", required=True, help="Name of the Cantabular dataset.")
@click.option(
    "--variable",
    "variables",
    multiple=True,
    required=True,
    help="Variable to cross-tabulate; repeat for each dimension, slowest first.",
)
@click.option("--filter", "filters", multiple=True, help=FILTER_HELP)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the CSV here instead of stdout.",
)
@click.option(
    "--deadline",
    type=float,
    default=None,
    help="Abort the export after this many seconds.",
)
@click.option(
    "--buffered",
    is_flag=True,
    default=False,
    help="Load the whole table before writing instead of streaming it.",
)
@click.pass_context
def query(
    ctx: click.Context,
    *,
    dataset: str,
    variables: tuple[str, ...],
    filters: tuple[str, ...],
    output_path: Path | None,
    deadline: float | None,
    buffered: bool,
) -> None:
    """Export a static dataset table as CSV."""
    request = StaticDatasetQueryRequest(
        dataset=dataset, variables=variables, filters=_parse_filters(filters)
    )
    cancel = CancelToken.with_timeout(deadline) if deadline is not None else None
    cmd_log = logger.bind(command="query", dataset=dataset, buffered=buffered)
    cmd_log.info("command.start", variables=list(variables))
    client = _build_client(ctx)
    try:
        with _open_output(output_path) as sink:
            if buffered:
                table = client.static_dataset_query(request)
                rows = write_table_csv(table, sink, cancel=cancel)
            else:
                rows = client.static_dataset_query_stream_csv(request, sink, cancel=cancel)
    except StreamError as exc:
        cmd_log.warning("command.partial_output", rows=exc.rows_written, cancelled=exc.cancelled)
        raise _fail(exc) from exc
    except (ApiError, TableError) as exc:
        raise _fail(exc) from exc
    finally:
        client.close()
    cmd_log.info("command.completed", rows=rows)
    if output_path is not None:
        click.echo(f"Wrote {rows - 1} rows to {output_path}", err=True)


@cli.command("codebook")
@click.option("--dataset", required=True, help="Name of the Cantabular dataset.")
@click.option("--variable", "variables", multiple=True, help="Restrict to these variables.")
@click.option(
    "--categories/--no-categories",
    default=False,
    show_default=True,
    help="Include category codes and labels.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the JSON here instead of stdout.",
)
@click.pass_context
def codebook(
    ctx: click.Context,
    *,
    dataset: str,
    variables: tuple[str, ...],
    categories: bool,
    output_path: Path | None,
) -> None:
    """Dump the codebook of a dataset as JSON."""
    client = _build_client(ctx)
    try:
        response = client.get_codebook(dataset, variables, categories=categories)
    except ApiError as exc:
        raise _fail(exc) from exc
    finally:
        client.close()
    payload = attrs_asdict(response, retain_collection_types=False)
    with _open_output(output_path) as sink:
        sink.write(json.dumps(payload, indent=2, default=str))
        sink.write("\n")
    logger.debug("codebook.written", variables=len(response.codebook))


@cli.command("datasets")
@click.pass_context
def datasets(ctx: click.Context) -> None:
    """List dataset names known to the extended API."""
    client = _build_client(ctx)
    try:
        names = client.list_datasets()
    except ApiError as exc:
        raise _fail(exc) from exc
    finally:
        client.close()
    for name in names:
        click.echo(name)


@cli.command("health")
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check the Cantabular server and extended API."""
    client = _build_client(ctx)
    try:
        states = [client.checker(CheckState()), client.checker_api_ext(CheckState())]
    finally:
        client.close()
    for state in states:
        click.echo(f"{state.name}: {state.status} ({state.status_code}) {state.message}")
    if not all(state.healthy for state in states):
        ctx.exit(1)


if __name__ == "__main__":
    cli()
