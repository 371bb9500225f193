"""
HTTP transport shared by the store clients.

The clients only need "send a request, get a response". Any object with an
``httpx.Client``-compatible ``request`` method works, which is how tests
inject ``httpx.MockTransport`` and how the OAuth2 helpers inject an
already-authenticated client.
"""

import json
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from structlog import get_logger

from storeverify.config import settings
from storeverify.exceptions import ConfigurationError, DecodeError, StoreStatusError, TransportError

logger = get_logger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

_PROXY_SCHEMES = ("http", "https", "socks5", "socks5h")


class RequestSender(Protocol):
    """Anything that can send an HTTP request and return an ``httpx.Response``."""

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        ...


def validate_proxy_url(proxy: str) -> httpx.URL:
    """
    Parse a proxy URL or fail with ConfigurationError.

    Raises:
        ConfigurationError: If the URL cannot be parsed, has no host, or an
            unsupported scheme
    """
    try:
        url = httpx.URL(proxy)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigurationError(f"Invalid proxy URL: {proxy!r}") from exc

    if url.scheme not in _PROXY_SCHEMES or not url.host:
        raise ConfigurationError(f"Invalid proxy URL: {proxy!r}")

    return url


def build_http_client(
    proxy: str | None = None,
    timeout: float | None = None,
    auth: httpx.Auth | None = None,
) -> httpx.Client:
    """
    Build the synchronous HTTP client used by every store client.

    Args:
        proxy: Proxy URL; falls back to settings.proxy_url. Used only when set.
        timeout: Timeout in seconds; falls back to settings.http_timeout_seconds
        auth: Optional httpx auth flow (bearer token injection)

    Raises:
        ConfigurationError: If the proxy URL is malformed
    """
    proxy = proxy if proxy is not None else settings.proxy_url
    timeout = timeout if timeout is not None else settings.http_timeout_seconds

    kwargs: dict[str, Any] = {"timeout": timeout}
    if auth is not None:
        kwargs["auth"] = auth
    if proxy:
        kwargs["proxy"] = str(validate_proxy_url(proxy))

    logger.debug("http_client_built", proxied=bool(proxy), timeout=timeout)

    return httpx.Client(**kwargs)


def path_escape(segment: str) -> str:
    """Percent-escape one URL path segment, including '/' and '%'."""
    # httpx resolves literal "." and ".." segments; escaped dots pass through
    if segment in (".", ".."):
        return segment.replace(".", "%2E")
    return quote(segment, safe="")


def send(
    sender: RequestSender,
    method: str,
    url: str,
    *,
    json_body: dict[str, Any] | None = None,
) -> httpx.Response:
    """
    Send one request and return the raw response.

    Raises:
        TransportError: If the request never produced a response
    """
    headers: dict[str, str] | None = None
    content: bytes | None = None
    if json_body is not None:
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        content = json.dumps(json_body).encode("utf-8")

    # Paths carry purchase tokens; only the host is logged.
    host = httpx.URL(url).host
    try:
        response = sender.request(method, url, headers=headers, content=content)
    except httpx.TransportError as exc:
        logger.error(
            "store_transport_failed",
            method=method,
            host=host,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise TransportError(str(exc) or type(exc).__name__, url=url) from exc

    logger.debug(
        "store_response_received", method=method, host=host, status=response.status_code
    )

    return response


def decode_json_object(response: httpx.Response) -> dict[str, Any]:
    """
    Parse a response body that must be a JSON object.

    Raises:
        DecodeError: If the body is not JSON or not an object
    """
    try:
        data = json.loads(response.content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"response body is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object, got {type(data).__name__}")

    return data


def ensure_ok(response: httpx.Response, store: str, operation: str) -> None:
    """
    Fail on anything other than HTTP 200. The body is not parsed.

    Raises:
        StoreStatusError: If the status is not 200
    """
    if response.status_code != 200:
        logger.warning(
            "store_request_rejected",
            store=store,
            operation=operation,
            status=response.status_code,
        )
        raise StoreStatusError(response.status_code, store=store, operation=operation)
