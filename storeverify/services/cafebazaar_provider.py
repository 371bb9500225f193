"""
Cafebazaar In-App Billing Client.

Validates in-app products and subscriptions through the Pardakht developer
API. Every call is a GET; any HTTP status other than 200 is a
StoreStatusError carrying that status.
"""

from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from structlog import get_logger

from storeverify.exceptions import ConfigurationError
from storeverify.models.cafebazaar import Product, Subscription
from storeverify.observability.logging import redact
from storeverify.observability.metrics import track_store_request
from storeverify.observability.tracing import trace_operation
from storeverify.services.cafebazaar_oauth import CafebazaarOAuth, OAuthBearerAuth
from storeverify.services.transport import (
    RequestSender,
    build_http_client,
    decode_json_object,
    ensure_ok,
    path_escape,
    send,
    validate_proxy_url,
)

logger = get_logger(__name__)

STORE = "cafebazaar"
CAFEBAZAAR_BASE_URL = "https://pardakht.cafebazaar.ir/devapi/v2/api"

T = TypeVar("T")


class CafebazaarClient:
    """
    Cafebazaar in-app billing client.

    Setup is two-phase: send the developer to ``authorization_url()``, then
    call ``setup()`` with the code Cafebazaar redirects back with. A sender
    can also be injected directly when the token is managed elsewhere.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        redirect_uri: str | None = None,
        proxy: str | None = None,
        timeout: float | None = None,
        oauth: CafebazaarOAuth | None = None,
        sender: RequestSender | None = None,
        base_url: str = CAFEBAZAAR_BASE_URL,
    ) -> None:
        """
        Initialize Cafebazaar client.

        Args:
            client_id: OAuth2 client ID from the Cafebazaar developer panel
            client_secret: OAuth2 client secret
            redirect_uri: Redirect URI registered for the client
            proxy: Proxy URL for the token exchange and API calls
            timeout: Request timeout in seconds
            oauth: Pre-built OAuth flow (tests, custom token endpoint client)
            sender: Already-authenticated sender; skips setup()

        Raises:
            ConfigurationError: If the proxy URL is malformed or credentials are empty
        """
        if proxy:
            validate_proxy_url(proxy)

        self.proxy = proxy
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._owns_oauth = oauth is None
        self.oauth = oauth or CafebazaarOAuth(
            client_id,
            client_secret,
            redirect_uri=redirect_uri,
            proxy=proxy,
            timeout=timeout,
        )
        self.sender = sender
        self._owned_sender: httpx.Client | None = None

        logger.info("cafebazaar_client_initialized", has_sender=sender is not None)

    def authorization_url(self) -> str:
        """URL the developer must visit to grant this client access."""
        return self.oauth.authorization_url()

    def setup(self, authorization_code: str) -> RequestSender:
        """
        Exchange the authorization code and bind all later calls to the token.

        Returns:
            The authenticated sender now used by this client

        Raises:
            OAuthExchangeError: If the code is rejected
            TransportError: If the token endpoint could not be reached
        """
        token = self.oauth.exchange_code(authorization_code)
        self._close_owned_sender()
        self._owned_sender = build_http_client(
            self.proxy, self.timeout, auth=OAuthBearerAuth(self.oauth, token)
        )
        self.sender = self._owned_sender

        logger.info("cafebazaar_client_setup_complete")

        return self.sender

    def _close_owned_sender(self) -> None:
        if self._owned_sender is not None:
            self._owned_sender.close()
            if self.sender is self._owned_sender:
                self.sender = None
            self._owned_sender = None

    def close(self) -> None:
        """
        Close the HTTP clients this client built.

        An injected sender or OAuth flow is left open for its owner to close.
        """
        self._close_owned_sender()
        if self._owns_oauth:
            self.oauth.close()

    def __enter__(self) -> "CafebazaarClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _require_sender(self) -> RequestSender:
        if self.sender is None:
            raise ConfigurationError("Cafebazaar client is not set up; call setup() first")
        return self.sender

    def _get(self, operation: str, url: str) -> httpx.Response:
        sender = self._require_sender()
        response = send(sender, "GET", url)
        ensure_ok(response, STORE, operation)
        return response

    def _fetch(self, operation: str, url: str, parse: Callable[[dict[str, Any]], T]) -> T:
        with trace_operation(f"{STORE}.{operation}"), track_store_request(STORE, operation):
            return parse(decode_json_object(self._get(operation, url)))

    def _subscription_url(self, pkg: str, subscription_id: str, token: str) -> str:
        return (
            f"{self.base_url}/applications/{path_escape(pkg)}/subscriptions/"
            f"{path_escape(subscription_id)}/purchases/{path_escape(token)}/"
        )

    def validate_product(self, pkg: str, product_id: str, token: str) -> Product:
        """
        Check the purchase and consumption status of an in-app product.

        Raises:
            ConfigurationError: If the client is not set up
            TransportError: If Cafebazaar could not be reached
            StoreStatusError: If Cafebazaar answered with a non-200 status
            DecodeError: If the body is not a product purchase
        """
        url = (
            f"{self.base_url}/validate/{path_escape(pkg)}/inapp/"
            f"{path_escape(product_id)}/purchases/{path_escape(token)}/"
        )

        logger.info(
            "validating_cafebazaar_product",
            package_name=pkg,
            product_id=product_id,
            token=redact(token),
        )

        product = self._fetch("validate_product", url, Product.from_response)

        logger.info(
            "cafebazaar_product_validated",
            product_id=product_id,
            purchase_state=product.purchase_state.name,
            consumption_state=product.consumption_state.name,
        )

        return product

    def validate_subscription(self, pkg: str, subscription_id: str, token: str) -> Subscription:
        """
        Check the status of a subscription purchase.

        Raises:
            ConfigurationError: If the client is not set up
            TransportError: If Cafebazaar could not be reached
            StoreStatusError: If Cafebazaar answered with a non-200 status
            DecodeError: If the body is not a subscription purchase
        """
        logger.info(
            "validating_cafebazaar_subscription",
            package_name=pkg,
            subscription_id=subscription_id,
            token=redact(token),
        )

        subscription = self._fetch(
            "validate_subscription",
            self._subscription_url(pkg, subscription_id, token),
            Subscription.from_response,
        )

        logger.info(
            "cafebazaar_subscription_validated",
            subscription_id=subscription_id,
            valid_until_ms=subscription.valid_until_time_millis,
            auto_renewing=subscription.auto_renewing,
        )

        return subscription

    def cancel_subscription(self, pkg: str, subscription_id: str, token: str) -> None:
        """
        Cancel a subscription purchase.

        Raises:
            ConfigurationError: If the client is not set up
            TransportError: If Cafebazaar could not be reached
            StoreStatusError: If Cafebazaar answered with a non-200 status
        """
        logger.info(
            "cancelling_cafebazaar_subscription",
            package_name=pkg,
            subscription_id=subscription_id,
        )

        operation = "cancel_subscription"
        url = self._subscription_url(pkg, subscription_id, token) + "cancel/"
        with trace_operation(f"{STORE}.{operation}"), track_store_request(STORE, operation):
            self._get(operation, url)

        logger.info(
            "cafebazaar_subscription_cancelled",
            package_name=pkg,
            subscription_id=subscription_id,
        )
