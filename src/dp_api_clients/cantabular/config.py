"""Configuration for the Cantabular client."""

import os
from collections.abc import Mapping

from attrs import define, field

SOFTWARE_VERSION = "v10"
DEFAULT_GRAPHQL_TIMEOUT = 60.0

ENV_HOST = "CANTABULAR_URL"
ENV_EXT_API_HOST = "CANTABULAR_API_EXT_URL"
ENV_GRAPHQL_TIMEOUT = "CANTABULAR_GRAPHQL_TIMEOUT"


def _strip_slash(value: str | None) -> str:
    return (value or "").rstrip("/")


@define(slots=True, frozen=True)
class CantabularConfig:
    """Hosts of the Cantabular server and extended API, plus the GraphQL timeout."""

    host: str = field(default="", converter=_strip_slash)
    ext_api_host: str = field(default="", converter=_strip_slash)
    graphql_timeout: float = field(default=DEFAULT_GRAPHQL_TIMEOUT, converter=float)
    version: str = SOFTWARE_VERSION

    @graphql_timeout.validator
    def _check_timeout(self, attribute: object, value: float) -> None:
        if value <= 0:
            raise ValueError(f"graphql_timeout must be positive, got {value}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CantabularConfig":
        """Build a config from ``CANTABULAR_*`` environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            host=env.get(ENV_HOST, ""),
            ext_api_host=env.get(ENV_EXT_API_HOST, ""),
            graphql_timeout=env.get(ENV_GRAPHQL_TIMEOUT, DEFAULT_GRAPHQL_TIMEOUT),
        )


__all__ = [
    "CantabularConfig",
    "DEFAULT_GRAPHQL_TIMEOUT",
    "ENV_EXT_API_HOST",
    "ENV_GRAPHQL_TIMEOUT",
    "ENV_HOST",
    "SOFTWARE_VERSION",
]
