"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes for testing the store clients without network:
- Mock-transport HTTP senders that record every request
- Provider payloads for App Store, Google Play and Cafebazaar
"""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from storeverify.services.transport import RequestSender

# ============================================================================
# HTTP Sender Fixtures
# ============================================================================

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            request.read()
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last_request.content)


@pytest.fixture
def mock_transport() -> Callable[..., RecordingTransport]:
    """
    Factory for a recording transport.

    Answers every request with ``status_code`` and a JSON ``body`` (no body
    when None), runs ``handler`` instead when given, or raises ``raises``
    as if the network failed.
    """

    def _create(
        status_code: int = 200,
        body: Any = None,
        handler: Handler | None = None,
        raises: Exception | None = None,
    ) -> RecordingTransport:
        def _answer(request: httpx.Request) -> httpx.Response:
            if raises is not None:
                raise raises
            if handler is not None:
                return handler(request)
            if body is None:
                return httpx.Response(status_code)
            return httpx.Response(status_code, json=body)

        return RecordingTransport(_answer)

    return _create


@pytest.fixture
def make_sender(
    mock_transport: Callable[..., RecordingTransport],
) -> Callable[..., tuple[RequestSender, RecordingTransport]]:
    """Factory for a sender backed by a recording mock transport."""

    def _make(**kwargs: Any) -> tuple[RequestSender, RecordingTransport]:
        transport = mock_transport(**kwargs)
        return httpx.Client(transport=transport), transport

    return _make


# ============================================================================
# App Store Payloads
# ============================================================================


@pytest.fixture
def purchase_entry_payload() -> dict[str, Any]:
    """One latest_receipt_info item for an auto-renewable subscription."""
    return {
        "quantity": "1",
        "product_id": "com.example.premium.monthly",
        "transaction_id": "1000000812345678",
        "original_transaction_id": "1000000800000000",
        "web_order_line_item_id": "1000000055555555",
        "is_trial_period": "false",
        "is_in_intro_offer_period": "false",
        "purchase_date": "2024-03-01 10:00:00 Etc/GMT",
        "purchase_date_ms": "1709287200000",
        "purchase_date_pst": "2024-03-01 02:00:00 America/Los_Angeles",
        "original_purchase_date": "2024-01-01 10:00:00 Etc/GMT",
        "original_purchase_date_ms": "1704103200000",
        "original_purchase_date_pst": "2024-01-01 02:00:00 America/Los_Angeles",
        "expires_date": "2024-04-01 10:00:00 Etc/GMT",
        "expires_date_ms": "1711965600000",
        "expires_date_pst": "2024-04-01 03:00:00 America/Los_Angeles",
    }


@pytest.fixture
def receipt_payload(purchase_entry_payload: dict[str, Any]) -> dict[str, Any]:
    """A successful verifyReceipt body."""
    return {
        "status": 0,
        "environment": "Production",
        "receipt": {
            "receipt_type": "Production",
            "adam_id": 1234567890,
            "app_item_id": "1234567890",
            "bundle_id": "com.example.app",
            "application_version": "42",
            "download_id": 98765,
            "version_external_identifier": "834",
            "receipt_creation_date": "2024-03-01 10:00:05 Etc/GMT",
            "receipt_creation_date_ms": "1709287205000",
            "receipt_creation_date_pst": "2024-03-01 02:00:05 America/Los_Angeles",
            "request_date": "2024-03-02 08:00:00 Etc/GMT",
            "request_date_ms": "1709366400000",
            "request_date_pst": "2024-03-02 00:00:00 America/Los_Angeles",
            "original_purchase_date": "2023-12-24 09:00:00 Etc/GMT",
            "original_purchase_date_ms": "1703408400000",
            "original_purchase_date_pst": "2023-12-24 01:00:00 America/Los_Angeles",
            "original_application_version": "1.0",
            "in_app": [purchase_entry_payload],
        },
        "latest_receipt": "MIIUVwYJKoZIhvcNAQcCoIIUSDCCFEQCAQExCzAJ",
        "latest_receipt_info": [purchase_entry_payload],
        "pending_renewal_info": [
            {
                "expiration_intent": "",
                "auto_renew_product_id": "com.example.premium.monthly",
                "original_transaction_id": "1000000800000000",
                "is_in_billing_retry_period": "0",
                "product_id": "com.example.premium.monthly",
                "auto_renew_status": "1",
            }
        ],
    }


# ============================================================================
# Google Play Payloads
# ============================================================================


@pytest.fixture
def playstore_product_payload() -> dict[str, Any]:
    """purchases.products resource as Google sends it (int64 as strings)."""
    return {
        "kind": "androidpublisher#productPurchase",
        "purchaseTimeMillis": "1700000000000",
        "purchaseState": 0,
        "consumptionState": 0,
        "developerPayload": "",
        "orderId": "GPA.1234-5678-9012-34567",
        "acknowledgementState": 0,
        "purchaseType": 0,
        "regionCode": "US",
    }


@pytest.fixture
def playstore_subscription_payload() -> dict[str, Any]:
    """purchases.subscriptions resource with the optional sub-records."""
    return {
        "kind": "androidpublisher#subscriptionPurchase",
        "startTimeMillis": "1700000000000",
        "expiryTimeMillis": "1702592000000",
        "autoRenewing": True,
        "priceCurrencyCode": "EUR",
        "priceAmountMicros": "4990000",
        "introductoryPriceInfo": {
            "introductoryPriceCurrencyCode": "EUR",
            "introductoryPriceAmountMicros": "990000",
            "introductoryPricePeriod": "P1M",
            "introductoryPriceCycles": 1,
        },
        "countryCode": "DE",
        "developerPayload": "user-42",
        "paymentState": 1,
        "orderId": "GPA.3333-4444-5555-66666..0",
        "linkedPurchaseToken": "previous-token-abc",
        "priceChange": {
            "newPrice": {"priceMicros": "5990000", "currency": "EUR"},
            "state": 0,
        },
        "profileName": "Jo Example",
        "emailAddress": "jo@example.com",
        "givenName": "Jo",
        "familyName": "Example",
        "profileId": "108000000000000000001",
        "acknowledgementState": 1,
    }


# ============================================================================
# Cafebazaar Payloads
# ============================================================================


@pytest.fixture
def cafebazaar_product_payload() -> dict[str, Any]:
    return {
        "kind": "androidpublisher#inappPurchase",
        "purchaseTime": 1700000000000,
        "purchaseState": 0,
        "consumptionState": 1,
        "developerPayload": "order-7",
    }


@pytest.fixture
def cafebazaar_subscription_payload() -> dict[str, Any]:
    return {
        "kind": "androidpublisher#subscriptionPurchase",
        "initiationTimestampMsec": 1700000000000,
        "validUntilTimestampMsec": 1702592000000,
        "autoRenewing": True,
    }


@pytest.fixture
def token_payload() -> dict[str, Any]:
    """Cafebazaar token endpoint response."""
    return {
        "access_token": "GWObRK06KHLr8pbHOIfyCZQgRG5bnA",
        "token_type": "Bearer",
        "expires_in": 3600000,
        "refresh_token": "yBC4br1l6OCNWnahJvreOchIZ9B6ze",
        "scope": "androidpublisher",
    }
