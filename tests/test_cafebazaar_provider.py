"""
Tests for the Cafebazaar in-app billing client.
"""

import httpx
import pytest

from storeverify.exceptions import (
    ConfigurationError,
    DecodeError,
    OAuthExchangeError,
    StoreStatusError,
    TransportError,
)
from storeverify.models.cafebazaar import ConsumptionState, PurchaseState
from storeverify.services.cafebazaar_oauth import CafebazaarOAuth
from storeverify.services.cafebazaar_provider import CAFEBAZAAR_BASE_URL, CafebazaarClient

PKG = "com.example.app"
API = "/devapi/v2/api"


def _client(make_sender, **kwargs):
    sender, transport = make_sender(**kwargs)
    return CafebazaarClient("client-id", "client-secret", sender=sender), transport


class TestSetup:
    def test_operations_require_setup(self):
        client = CafebazaarClient("client-id", "client-secret")

        with pytest.raises(ConfigurationError, match="setup"):
            client.validate_product(PKG, "coins", "tok1")
        with pytest.raises(ConfigurationError):
            client.validate_subscription(PKG, "premium", "tok1")
        with pytest.raises(ConfigurationError):
            client.cancel_subscription(PKG, "premium", "tok1")

    def test_authorization_url(self):
        client = CafebazaarClient("client-id", "client-secret")

        url = client.authorization_url()

        assert url.startswith(CafebazaarOAuth.AUTH_URL + "?")
        assert "client_id=client-id" in url
        assert "access_type=offline" in url

    def test_setup_exchanges_code_and_authenticates_calls(
        self, monkeypatch, mock_transport, token_payload, cafebazaar_product_payload
    ):
        api = mock_transport(200, cafebazaar_product_payload)
        monkeypatch.setattr(
            "storeverify.services.cafebazaar_provider.build_http_client",
            lambda proxy, timeout, auth=None: httpx.Client(transport=api, auth=auth),
        )
        token_transport = mock_transport(200, token_payload)
        oauth = CafebazaarOAuth(
            "client-id", "client-secret", http_client=httpx.Client(transport=token_transport)
        )
        client = CafebazaarClient("client-id", "client-secret", oauth=oauth)

        sender = client.setup("auth-code")

        assert client.sender is sender
        assert len(token_transport.requests) == 1

        client.validate_product(PKG, "coins", "tok1")

        assert api.last_request.headers["Authorization"] == (
            f"Bearer {token_payload['access_token']}"
        )

    def test_setup_rejected_code(self, mock_transport):
        oauth = CafebazaarOAuth(
            "client-id",
            "client-secret",
            http_client=httpx.Client(transport=mock_transport(400, {"error": "invalid_grant"})),
        )
        client = CafebazaarClient("client-id", "client-secret", oauth=oauth)

        with pytest.raises(OAuthExchangeError):
            client.setup("bad-code")

        assert client.sender is None

    def test_malformed_proxy(self):
        with pytest.raises(ConfigurationError):
            CafebazaarClient("client-id", "client-secret", proxy="ftp://proxy.internal")

    def test_empty_credentials(self):
        with pytest.raises(OAuthExchangeError):
            CafebazaarClient("", "client-secret")


class TestValidateProduct:
    def test_request(self, make_sender, cafebazaar_product_payload):
        client, transport = _client(make_sender, body=cafebazaar_product_payload)

        client.validate_product(PKG, "coins_100", "tok1")

        request = transport.last_request
        assert request.method == "GET"
        assert request.url.host == "pardakht.cafebazaar.ir"
        assert request.url.raw_path.decode() == (
            f"{API}/validate/com.example.app/inapp/coins_100/purchases/tok1/"
        )

    def test_result(self, make_sender, cafebazaar_product_payload):
        client, _ = _client(make_sender, body=cafebazaar_product_payload)

        product = client.validate_product(PKG, "coins_100", "tok1")

        assert product.purchase_state is PurchaseState.DONE
        assert product.consumption_state is ConsumptionState.NOT_CONSUMED
        assert product.developer_payload == "order-7"

    def test_not_found(self, make_sender):
        client, _ = _client(make_sender, status_code=404, body={"error": "not_found"})

        with pytest.raises(StoreStatusError) as exc_info:
            client.validate_product(PKG, "coins_100", "unknown-token")

        assert exc_info.value.status_code == 404
        assert exc_info.value.store == "cafebazaar"
        assert "404" in str(exc_info.value)

    def test_decode_error(self, make_sender):
        client, _ = _client(make_sender, body={"purchaseState": "done"})

        with pytest.raises(DecodeError):
            client.validate_product(PKG, "coins_100", "tok1")


class TestValidateSubscription:
    def test_request_and_result(self, make_sender, cafebazaar_subscription_payload):
        client, transport = _client(make_sender, body=cafebazaar_subscription_payload)

        sub = client.validate_subscription(PKG, "premium", "tok1")

        assert transport.last_request.method == "GET"
        assert transport.last_request.url.raw_path.decode() == (
            f"{API}/applications/com.example.app/subscriptions/premium/purchases/tok1/"
        )
        assert sub.valid_until_time_millis == 1702592000000
        assert sub.auto_renewing is True


class TestCancelSubscription:
    def test_request(self, make_sender):
        client, transport = _client(make_sender, handler=lambda r: httpx.Response(200))

        assert client.cancel_subscription(PKG, "premium", "tok1") is None

        request = transport.last_request
        assert request.method == "GET"
        assert request.url.raw_path.decode() == (
            f"{API}/applications/com.example.app/subscriptions/premium/purchases/tok1/cancel/"
        )


ALL_OPERATIONS = ["validate_product", "validate_subscription", "cancel_subscription"]


class TestNon200:
    @pytest.mark.parametrize("operation", ALL_OPERATIONS)
    @pytest.mark.parametrize("status", [201, 204, 400, 401, 403, 404, 500, 503])
    def test_status_error(self, make_sender, operation, status):
        client, _ = _client(make_sender, status_code=status, body={"purchaseState": 0})

        with pytest.raises(StoreStatusError) as exc_info:
            getattr(client, operation)(PKG, "item", "tok1")

        assert exc_info.value.status_code == status
        assert exc_info.value.operation == operation

    @pytest.mark.parametrize("operation", ALL_OPERATIONS)
    def test_garbage_error_body_is_ignored(self, make_sender, operation):
        client, _ = _client(
            make_sender, handler=lambda r: httpx.Response(502, content=b"Bad Gateway")
        )

        with pytest.raises(StoreStatusError):
            getattr(client, operation)(PKG, "item", "tok1")

    @pytest.mark.parametrize("operation", ALL_OPERATIONS)
    def test_transport_error(self, make_sender, operation):
        client, _ = _client(make_sender, raises=httpx.ConnectError("refused"))

        with pytest.raises(TransportError):
            getattr(client, operation)(PKG, "item", "tok1")


class TestPathEscaping:
    def test_reserved_characters_escaped(self, make_sender, cafebazaar_product_payload):
        client, transport = _client(make_sender, body=cafebazaar_product_payload)

        client.validate_product("com.example/app", "coins 100%", "a/b?c")

        assert transport.last_request.url.raw_path.decode() == (
            f"{API}/validate/com.example%2Fapp/inapp/coins%20100%25/purchases/a%2Fb%3Fc/"
        )

    def test_default_base_url(self):
        assert CAFEBAZAAR_BASE_URL == "https://pardakht.cafebazaar.ir/devapi/v2/api"


class TestClose:
    @pytest.fixture
    def built_senders(self, monkeypatch, mock_transport, cafebazaar_product_payload):
        senders = []

        def build(proxy, timeout, auth=None):
            sender = httpx.Client(
                transport=mock_transport(200, cafebazaar_product_payload), auth=auth
            )
            senders.append(sender)
            return sender

        monkeypatch.setattr("storeverify.services.cafebazaar_provider.build_http_client", build)
        return senders

    @pytest.fixture
    def oauth(self, mock_transport, token_payload):
        return CafebazaarOAuth(
            "client-id",
            "client-secret",
            http_client=httpx.Client(transport=mock_transport(200, token_payload)),
        )

    def test_no_http_client_built_at_construction(self):
        client = CafebazaarClient("client-id", "client-secret")

        assert client.oauth._http_client is None

    def test_setup_again_closes_previous_sender(self, built_senders, oauth):
        client = CafebazaarClient("client-id", "client-secret", oauth=oauth)

        client.setup("code-1")
        client.setup("code-2")

        first, second = built_senders
        assert first.is_closed
        assert not second.is_closed
        assert client.sender is second

    def test_closes_sender_built_by_setup(self, built_senders, oauth):
        with CafebazaarClient("client-id", "client-secret", oauth=oauth) as client:
            client.setup("auth-code")

        assert built_senders[0].is_closed
        assert client.sender is None

    def test_injected_oauth_and_sender_left_open(self, oauth):
        sender = httpx.Client()
        client = CafebazaarClient("client-id", "client-secret", oauth=oauth, sender=sender)

        client.close()

        assert not sender.is_closed
        assert not oauth.http_client.is_closed
        assert client.sender is sender

    def test_closes_oauth_it_built(self):
        client = CafebazaarClient("client-id", "client-secret")
        http_client = client.oauth.http_client

        client.close()

        assert http_client.is_closed
