"""
Google Play Android Publisher Client.

Reads and manages in-app product and subscription purchases through the
purchases.products / purchases.subscriptions REST resources.
https://developers.google.com/android-publisher/api-ref/rest/v3/purchases

Any HTTP status other than 200 is a StoreStatusError carrying that status.
"""

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import httpx
from structlog import get_logger

from storeverify.exceptions import DecodeError
from storeverify.models.playstore import AcknowledgeOptions, DeferralInfo, Product, Subscription
from storeverify.observability.logging import redact
from storeverify.observability.metrics import track_store_request
from storeverify.observability.tracing import trace_operation
from storeverify.services.playstore_auth import build_playstore_sender
from storeverify.services.transport import (
    RequestSender,
    decode_json_object,
    ensure_ok,
    path_escape,
    send,
)

logger = get_logger(__name__)

STORE = "playstore"
PLAYSTORE_BASE_URL = "https://www.googleapis.com/androidpublisher/v3"

_DEFAULT_ACKNOWLEDGE_OPTIONS = AcknowledgeOptions()

T = TypeVar("T")


def _new_expiry_millis(data: dict[str, Any]) -> int:
    raw = data.get("newExpiryTimeMillis")
    if isinstance(raw, bool) or not isinstance(raw, (int, str)):
        raise DecodeError(f"field 'newExpiryTimeMillis' must be an integer, got {raw!r}")
    try:
        return int(raw)
    except ValueError as exc:
        raise DecodeError(f"field 'newExpiryTimeMillis' must be an integer, got {raw!r}") from exc


class PlayStoreClient:
    """
    Google Play in-app billing client.

    Handles product and subscription lookup, acknowledgement, cancellation,
    deferral, refund and revocation.
    """

    def __init__(self, sender: RequestSender, *, base_url: str = PLAYSTORE_BASE_URL) -> None:
        """
        Initialize Google Play client.

        Args:
            sender: HTTP sender that already authenticates every request
            base_url: Android Publisher API root
        """
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self._owned_sender: httpx.Client | None = None

        logger.info("playstore_client_initialized", base_url=self.base_url)

    @classmethod
    def from_service_account(
        cls,
        json_key: str | bytes | Mapping[str, Any],
        proxy: str | None = None,
        timeout: float | None = None,
    ) -> "PlayStoreClient":
        """
        Build a client authenticated with a service account key.

        Raises:
            ConfigurationError: If the proxy URL is malformed
            CredentialsError: If the key cannot be loaded
        """
        sender = build_playstore_sender(json_key, proxy, timeout)
        client = cls(sender)
        client._owned_sender = sender
        return client

    def close(self) -> None:
        """Close the HTTP client if from_service_account built it."""
        if self._owned_sender is not None:
            self._owned_sender.close()

    def __enter__(self) -> "PlayStoreClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _url(self, kind: str, pkg: str, item_id: str, token: str, action: str = "") -> str:
        url = (
            f"{self.base_url}/applications/{path_escape(pkg)}/purchases/{kind}/"
            f"{path_escape(item_id)}/tokens/{path_escape(token)}"
        )
        if action:
            url += f":{action}"
        return url

    def _get(self, operation: str, url: str, parse: Callable[[dict[str, Any]], T]) -> T:
        with trace_operation(f"{STORE}.{operation}"), track_store_request(STORE, operation):
            response = send(self.sender, "GET", url)
            ensure_ok(response, STORE, operation)
            return parse(decode_json_object(response))

    def _post(self, operation: str, url: str, json_body: dict[str, Any] | None = None) -> None:
        with trace_operation(f"{STORE}.{operation}"), track_store_request(STORE, operation):
            response = send(self.sender, "POST", url, json_body=json_body)
            ensure_ok(response, STORE, operation)

    def get_product(self, pkg: str, product_id: str, token: str) -> Product:
        """
        Check the purchase and consumption status of an in-app product.

        Raises:
            TransportError: If Google could not be reached
            StoreStatusError: If Google answered with a non-200 status
            DecodeError: If the body is not a product purchase
        """
        logger.info(
            "getting_playstore_product",
            package_name=pkg,
            product_id=product_id,
            token=redact(token),
        )

        product = self._get(
            "get_product",
            self._url("products", pkg, product_id, token),
            Product.from_response,
        )

        logger.info(
            "playstore_product_fetched",
            order_id=product.order_id,
            product_id=product_id,
            purchase_state=product.purchase_state.name,
            acknowledgement_state=product.acknowledgement_state.name,
            is_test=product.is_test_purchase(),
        )

        return product

    def acknowledge_product(
        self,
        pkg: str,
        product_id: str,
        token: str,
        options: AcknowledgeOptions | None = None,
    ) -> None:
        """
        Acknowledge an in-app product purchase.

        Args:
            options: Optional arguments; developer_payload defaults to ""

        Raises:
            TransportError: If Google could not be reached
            StoreStatusError: If Google answered with a non-200 status
        """
        options = options or _DEFAULT_ACKNOWLEDGE_OPTIONS
        logger.info("acknowledging_playstore_product", package_name=pkg, product_id=product_id)

        self._post(
            "acknowledge_product",
            self._url("products", pkg, product_id, token, "acknowledge"),
            json_body=options.to_request(),
        )

        logger.info("playstore_product_acknowledged", package_name=pkg, product_id=product_id)

    def get_subscription(self, pkg: str, subscription_id: str, token: str) -> Subscription:
        """
        Check the status of a subscription purchase.

        Raises:
            TransportError: If Google could not be reached
            StoreStatusError: If Google answered with a non-200 status
            DecodeError: If the body is not a subscription purchase
        """
        logger.info(
            "getting_playstore_subscription",
            package_name=pkg,
            subscription_id=subscription_id,
            token=redact(token),
        )

        subscription = self._get(
            "get_subscription",
            self._url("subscriptions", pkg, subscription_id, token),
            Subscription.from_response,
        )

        logger.info(
            "playstore_subscription_fetched",
            order_id=subscription.order_id,
            subscription_id=subscription_id,
            expiry_time_millis=subscription.expiry_time_millis,
            auto_renewing=subscription.auto_renewing,
            has_linked_token=bool(subscription.linked_purchase_token),
        )

        return subscription

    def acknowledge_subscription(
        self,
        pkg: str,
        subscription_id: str,
        token: str,
        options: AcknowledgeOptions | None = None,
    ) -> None:
        """
        Acknowledge a subscription purchase.

        Args:
            options: Optional arguments; developer_payload defaults to ""

        Raises:
            TransportError: If Google could not be reached
            StoreStatusError: If Google answered with a non-200 status
        """
        options = options or _DEFAULT_ACKNOWLEDGE_OPTIONS
        logger.info(
            "acknowledging_playstore_subscription",
            package_name=pkg,
            subscription_id=subscription_id,
        )

        self._post(
            "acknowledge_subscription",
            self._url("subscriptions", pkg, subscription_id, token, "acknowledge"),
            json_body=options.to_request(),
        )

        logger.info(
            "playstore_subscription_acknowledged",
            package_name=pkg,
            subscription_id=subscription_id,
        )

    def cancel_subscription(self, pkg: str, subscription_id: str, token: str) -> None:
        """Cancel a subscription; it stays valid until its expiry time."""
        self._subscription_action("cancel", pkg, subscription_id, token)

    def refund_subscription(self, pkg: str, subscription_id: str, token: str) -> None:
        """Refund the latest payment; the subscription keeps renewing."""
        self._subscription_action("refund", pkg, subscription_id, token)

    def revoke_subscription(self, pkg: str, subscription_id: str, token: str) -> None:
        """Refund and immediately end access to a subscription."""
        self._subscription_action("revoke", pkg, subscription_id, token)

    def _subscription_action(self, action: str, pkg: str, subscription_id: str, token: str) -> None:
        operation = f"{action}_subscription"
        logger.info(
            "playstore_subscription_action_requested",
            action=action,
            package_name=pkg,
            subscription_id=subscription_id,
        )

        self._post(operation, self._url("subscriptions", pkg, subscription_id, token, action))

        logger.info(
            "playstore_subscription_action_succeeded",
            action=action,
            package_name=pkg,
            subscription_id=subscription_id,
        )

    def defer_subscription(
        self,
        pkg: str,
        subscription_id: str,
        token: str,
        expected_expiry_ms: int,
        desired_expiry_ms: int,
    ) -> int:
        """
        Push a subscription's next billing date back.

        Args:
            expected_expiry_ms: Current expiry time; Google rejects a stale value
            desired_expiry_ms: New expiry time

        Returns:
            New expiry time in milliseconds as reported by Google

        Raises:
            TransportError: If Google could not be reached
            StoreStatusError: If Google answered with a non-200 status
            DecodeError: If the body carries no newExpiryTimeMillis
        """
        deferral = DeferralInfo(
            expected_expiry_time_millis=expected_expiry_ms,
            desired_expiry_time_millis=desired_expiry_ms,
        )

        logger.info(
            "deferring_playstore_subscription",
            package_name=pkg,
            subscription_id=subscription_id,
            expected_expiry_ms=expected_expiry_ms,
            desired_expiry_ms=desired_expiry_ms,
        )

        operation = "defer_subscription"
        url = self._url("subscriptions", pkg, subscription_id, token, "defer")
        with trace_operation(f"{STORE}.{operation}"), track_store_request(STORE, operation):
            response = send(self.sender, "POST", url, json_body=deferral.to_request())
            ensure_ok(response, STORE, operation)
            new_expiry = _new_expiry_millis(decode_json_object(response))

        logger.info(
            "playstore_subscription_deferred",
            package_name=pkg,
            subscription_id=subscription_id,
            new_expiry_ms=new_expiry,
        )

        return new_expiry
