"""
Cafebazaar OAuth2 authorization-code flow.

A developer opens ``authorization_url()`` once, approves access, and hands
the returned code to ``exchange_code``. Offline access is requested so the
token comes with a refresh token.
"""

from collections.abc import Generator
from typing import Any
from urllib.parse import urlencode

import httpx
from structlog import get_logger

from storeverify.exceptions import AuthenticationError, OAuthExchangeError, TransportError
from storeverify.models.oauth import OAuthToken
from storeverify.services.transport import build_http_client

logger = get_logger(__name__)


class CafebazaarOAuth:
    """Cafebazaar OAuth2 provider implementation."""

    AUTH_URL = "https://pardakht.cafebazaar.ir/devapi/v2/auth/authorize/"
    TOKEN_URL = "https://pardakht.cafebazaar.ir/devapi/v2/auth/token/"
    SCOPE = "androidpublisher"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str | None = None,
        http_client: httpx.Client | None = None,
        proxy: str | None = None,
        timeout: float | None = None,
    ):
        if not client_id:
            raise OAuthExchangeError("client_id is required")
        if not client_secret:
            raise OAuthExchangeError("client_secret is required")
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.proxy = proxy
        self.timeout = timeout
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def http_client(self) -> httpx.Client:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = build_http_client(self.proxy, self.timeout)
        return self._http_client

    def close(self) -> None:
        """Close the HTTP client if this flow built it."""
        if self._owns_http_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def __enter__(self) -> "CafebazaarOAuth":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def authorization_url(self, state: str = "state") -> str:
        """Get OAuth authorization URL."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": self.SCOPE,
            "state": state,
            "access_type": "offline",
        }
        if self.redirect_uri:
            params["redirect_uri"] = self.redirect_uri

        return f"{self.AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> OAuthToken:
        """
        Exchange authorization code for access token.

        Raises:
            OAuthExchangeError: If the code is rejected or the response is not a token
            TransportError: If the token endpoint could not be reached
        """
        if not code:
            raise OAuthExchangeError("authorization code is required")

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if self.redirect_uri:
            data["redirect_uri"] = self.redirect_uri

        token = self._token_request(data, "token_exchange")
        logger.info(
            "cafebazaar_token_obtained",
            expires_in=token.expires_in,
            has_refresh_token=bool(token.refresh_token),
        )
        return token

    def refresh(self, token: OAuthToken) -> OAuthToken:
        """
        Get a new access token with the token's refresh token.

        Raises:
            OAuthExchangeError: If there is no refresh token or it is rejected
            TransportError: If the token endpoint could not be reached
        """
        if not token.refresh_token:
            raise OAuthExchangeError("token has no refresh_token")

        data = {
            "grant_type": "refresh_token",
            "refresh_token": token.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

        new_token = self._token_request(data, "token_refresh", previous=token)
        logger.info("cafebazaar_token_refreshed", expires_in=new_token.expires_in)
        return new_token

    def _token_request(
        self,
        data: dict[str, str],
        event: str,
        previous: OAuthToken | None = None,
    ) -> OAuthToken:
        try:
            response = self.http_client.post(self.TOKEN_URL, data=data)
        except httpx.TransportError as e:
            logger.error(f"{event}_unreachable", error=str(e))
            raise TransportError(str(e) or type(e).__name__, url=self.TOKEN_URL) from e

        if response.status_code != 200:
            logger.error(f"{event}_failed", status=response.status_code, text=response.text[:200])
            raise OAuthExchangeError(
                f"token endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"{event}_invalid_json", error=str(e))
            raise OAuthExchangeError("token endpoint returned invalid JSON") from e

        return OAuthToken.from_response(payload, previous=previous)


class OAuthBearerAuth(httpx.Auth):
    """httpx auth flow that sends a bearer token and refreshes it once expired."""

    def __init__(self, oauth: CafebazaarOAuth, token: OAuthToken) -> None:
        self.oauth = oauth
        self.token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self.token.is_expired() and self.token.refresh_token:
            try:
                self.token = self.oauth.refresh(self.token)
            except OAuthExchangeError as exc:
                raise AuthenticationError(str(exc)) from exc

        request.headers["Authorization"] = self.token.authorization_header
        yield request
