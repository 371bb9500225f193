"""
Google Play service account authentication for httpx.

Builds an httpx client that carries a fresh OAuth2 bearer token from a
service account on every request.
"""

import json
import os
from collections.abc import Generator, Mapping
from typing import Any

import httpx
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from structlog import get_logger

from storeverify.exceptions import AuthenticationError, CredentialsError
from storeverify.services.transport import build_http_client, validate_proxy_url

logger = get_logger(__name__)

ANDROID_PUBLISHER_SCOPE = "https://www.googleapis.com/auth/androidpublisher"


def load_service_account_credentials(
    json_key: str | bytes | Mapping[str, Any],
) -> service_account.Credentials:
    """
    Load service account credentials scoped for the Android Publisher API.

    Args:
        json_key: Path to the key file, the key JSON as str/bytes, or the parsed key

    Raises:
        CredentialsError: If the key cannot be read or is not a service account key
    """
    try:
        if isinstance(json_key, Mapping):
            info = dict(json_key)
        elif isinstance(json_key, bytes):
            info = json.loads(json_key.decode("utf-8"))
        elif json_key.lstrip().startswith("{"):
            info = json.loads(json_key)
        elif os.path.isfile(json_key):
            return service_account.Credentials.from_service_account_file(
                json_key,
                scopes=[ANDROID_PUBLISHER_SCOPE],
            )
        else:
            raise CredentialsError("service account key is neither JSON nor an existing file")

        if not isinstance(info, dict):
            raise CredentialsError("service account key must be a JSON object")

        return service_account.Credentials.from_service_account_info(
            info,
            scopes=[ANDROID_PUBLISHER_SCOPE],
        )

    except CredentialsError:
        raise
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CredentialsError(f"service account key is not valid JSON: {exc}") from exc
    except (ValueError, KeyError, OSError, GoogleAuthError) as exc:
        raise CredentialsError(f"could not load service account key: {exc}") from exc


class GoogleCredentialsAuth(httpx.Auth):
    """httpx auth flow that refreshes google-auth credentials when needed."""

    def __init__(self, credentials: Any, proxy: str | None = None) -> None:
        self.credentials = credentials
        session = requests.Session()
        if proxy:
            session.proxies = {"http": proxy, "https": proxy}
        self._refresh_request = GoogleAuthRequest(session=session)

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if not self.credentials.valid:
            logger.debug("refreshing_google_credentials")
            try:
                self.credentials.refresh(self._refresh_request)
            except GoogleAuthError as exc:
                logger.error("google_credentials_refresh_failed", error=str(exc))
                raise AuthenticationError(f"could not refresh Google credentials: {exc}") from exc

        request.headers["Authorization"] = f"Bearer {self.credentials.token}"
        yield request


def build_playstore_sender(
    json_key: str | bytes | Mapping[str, Any],
    proxy: str | None = None,
    timeout: float | None = None,
) -> httpx.Client:
    """
    Build an authenticated httpx client from a service account key.

    Raises:
        ConfigurationError: If the proxy URL is malformed
        CredentialsError: If the key cannot be loaded
    """
    if proxy:
        validate_proxy_url(proxy)

    credentials = load_service_account_credentials(json_key)

    logger.info(
        "playstore_credentials_loaded",
        service_account=getattr(credentials, "service_account_email", None),
    )

    return build_http_client(proxy, timeout, auth=GoogleCredentialsAuth(credentials, proxy))
