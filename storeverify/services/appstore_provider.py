"""
App Store Receipt Verification Client.

Posts a base64 receipt plus the app's shared secret to Apple's
verifyReceipt endpoint and decodes the response.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt

Apple reports rejections through the ``status`` field of the body, not
through the HTTP status, so the body is always decoded.
"""

from typing import Any

import httpx
from structlog import get_logger

from storeverify.models.appstore import Environment, VerificationResult
from storeverify.observability.logging import redact
from storeverify.observability.metrics import metrics, track_store_request
from storeverify.observability.tracing import trace_operation
from storeverify.services.transport import (
    RequestSender,
    build_http_client,
    decode_json_object,
    send,
)

logger = get_logger(__name__)

STORE = "appstore"


class AppStoreClient:
    """
    Apple verifyReceipt client.

    The environment picks one of two fixed endpoints. On a 21007 / 21008
    status the caller resubmits to ``result.resubmit_environment``; this
    client never does it on its own.
    """

    def __init__(
        self,
        environment: Environment = Environment.PRODUCTION,
        *,
        sender: RequestSender | None = None,
        proxy: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize App Store client.

        Args:
            environment: Default endpoint for verify()
            sender: Pre-built HTTP sender; built from proxy/timeout when omitted
            proxy: Proxy URL used when building the sender
            timeout: Request timeout in seconds used when building the sender

        Raises:
            ConfigurationError: If the proxy URL is malformed
        """
        self.environment = Environment(environment)
        self._owned_sender: httpx.Client | None = None
        if sender is None:
            sender = self._owned_sender = build_http_client(proxy, timeout)
        self.sender = sender

        logger.info("appstore_client_initialized", environment=self.environment.value)

    def close(self) -> None:
        """Close the HTTP client if this client built it."""
        if self._owned_sender is not None:
            self._owned_sender.close()

    def __enter__(self) -> "AppStoreClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def verify(
        self,
        receipt: str,
        password: str,
        environment: Environment | None = None,
    ) -> VerificationResult:
        """
        Verify a receipt.

        Old transactions are always excluded: for auto-renewable
        subscriptions only the latest renewal is returned.

        Args:
            receipt: Base64 encoded receipt data
            password: App-specific shared secret
            environment: Overrides the client's default endpoint for this call

        Returns:
            Decoded result. A nonzero status is not raised; use
            ``result.classify()`` or ``result.raise_for_status()``.

        Raises:
            TransportError: If Apple could not be reached
            DecodeError: If the response is not a verifyReceipt body
        """
        env = Environment(environment) if environment is not None else self.environment
        body = {
            "receipt-data": receipt,
            "password": password,
            "exclude-old-transactions": True,
        }

        logger.info(
            "verifying_appstore_receipt",
            environment=env.value,
            receipt=redact(receipt, keep=16),
        )

        with trace_operation("appstore.verify", environment=env.value), track_store_request(
            STORE, "verify"
        ):
            response = send(self.sender, "POST", env.url, json_body=body)
            data = decode_json_object(response)
            result = VerificationResult.from_response(data, environment=env)

        metrics.record_receipt_status(env.value, result.status)

        if result.is_valid():
            logger.info(
                "appstore_receipt_verified",
                environment=env.value,
                bundle_id=result.receipt.bundle_id if result.receipt else None,
                latest_entries=len(result.latest_receipt_info),
                pending_renewals=len(result.pending_renewal_info),
            )
        else:
            error = result.classify()
            logger.warning(
                "appstore_receipt_rejected",
                environment=env.value,
                status=result.status,
                http_status=response.status_code,
                reason=error.message if error else None,
                retryable=result.retryable,
                resubmit_to=result.resubmit_environment.value
                if result.resubmit_environment
                else None,
            )

        return result
