"""Request headers shared by the ONS API clients.

Each setter writes into a plain header dict and leaves it untouched when the
value is empty, so callers can pass through whatever tokens they were given.
"""

from collections.abc import MutableMapping

USER_AUTH_TOKEN_HEADER = "X-Florence-Token"
AUTHORIZATION_HEADER = "Authorization"
DOWNLOAD_SERVICE_TOKEN_HEADER = "X-Download-Service-Token"
IF_MATCH_HEADER = "If-Match"
ETAG_HEADER = "ETag"

BEARER_PREFIX = "Bearer "

Headers = MutableMapping[str, str]


def _bearer(token: str) -> str:
    return token if token.startswith(BEARER_PREFIX) else BEARER_PREFIX + token


def set_auth_token(headers: Headers, token: str) -> None:
    """Set the user access token, both as the legacy Florence header and as a bearer token."""
    if not token:
        return
    headers[USER_AUTH_TOKEN_HEADER] = token
    headers[AUTHORIZATION_HEADER] = _bearer(token)


def set_service_auth_token(headers: Headers, token: str) -> None:
    """Set the service token as a bearer ``Authorization`` header."""
    if token:
        headers[AUTHORIZATION_HEADER] = _bearer(token)


def set_download_service_token(headers: Headers, token: str) -> None:
    if token:
        headers[DOWNLOAD_SERVICE_TOKEN_HEADER] = token


def set_if_match(headers: Headers, etag: str) -> None:
    if etag:
        headers[IF_MATCH_HEADER] = etag


def auth_headers(
    *,
    user_auth_token: str = "",
    service_auth_token: str = "",
    download_service_token: str = "",
    if_match: str = "",
) -> dict[str, str]:
    """Build the header dict for an authenticated request.

    The service token is applied last and so wins the ``Authorization``
    header when both tokens are given.
    """
    headers: dict[str, str] = {}
    set_auth_token(headers, user_auth_token)
    set_service_auth_token(headers, service_auth_token)
    set_download_service_token(headers, download_service_token)
    set_if_match(headers, if_match)
    return headers


__all__ = [
    "AUTHORIZATION_HEADER",
    "BEARER_PREFIX",
    "DOWNLOAD_SERVICE_TOKEN_HEADER",
    "ETAG_HEADER",
    "IF_MATCH_HEADER",
    "USER_AUTH_TOKEN_HEADER",
    "auth_headers",
    "set_auth_token",
    "set_download_service_token",
    "set_if_match",
    "set_service_auth_token",
]
