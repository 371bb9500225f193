"""
Tests for exception classes.

Covers the hierarchy callers rely on to tell transport, decode and
provider rejections apart.
"""

import pytest

from storeverify.exceptions import (
    AuthenticationError,
    ConfigurationError,
    CredentialsError,
    DecodeError,
    InternalDataAccessError,
    OAuthExchangeError,
    ProtocolStatusError,
    ReceiptVerificationError,
    SandboxReceiptError,
    StoreStatusError,
    StoreVerifyError,
    TransportError,
    UnknownReceiptStatusError,
)


class TestStoreVerifyError:
    """Tests for base StoreVerifyError."""

    def test_is_exception(self):
        """StoreVerifyError is a subclass of Exception."""
        assert issubclass(StoreVerifyError, Exception)

    @pytest.mark.parametrize(
        "error_class",
        [
            TransportError,
            DecodeError,
            ProtocolStatusError,
            AuthenticationError,
            ConfigurationError,
        ],
    )
    def test_all_errors_share_base(self, error_class):
        assert issubclass(error_class, StoreVerifyError)


class TestTransportError:
    def test_attributes(self):
        exc = TransportError("connection refused", url="https://example.com")
        assert exc.message == "connection refused"
        assert exc.url == "https://example.com"
        assert "Transport error" in str(exc)

    def test_not_a_decode_error(self):
        """Unreachable provider and garbage response stay distinguishable."""
        assert not issubclass(TransportError, DecodeError)
        assert not issubclass(DecodeError, TransportError)


class TestStoreStatusError:
    def test_attributes(self):
        exc = StoreStatusError(404, store="cafebazaar", operation="validate_product")
        assert exc.status_code == 404
        assert exc.store == "cafebazaar"
        assert exc.operation == "validate_product"
        assert str(exc) == "failed with status: 404"

    def test_is_protocol_status_error(self):
        assert issubclass(StoreStatusError, ProtocolStatusError)


class TestReceiptVerificationError:
    def test_carries_status_and_retryable(self):
        exc = SandboxReceiptError(21007, retryable=False)
        assert exc.status == 21007
        assert exc.retryable is False
        assert "test environment" in str(exc)
        assert "21007" in str(exc)

    def test_internal_data_access_keeps_exact_code(self):
        exc = InternalDataAccessError(21150, retryable=True)
        assert exc.status == 21150
        assert exc.retryable is True
        assert exc.message == "internal data access error"

    def test_unknown(self):
        exc = UnknownReceiptStatusError(99999)
        assert exc.message == "unknown error occurred"
        assert isinstance(exc, ReceiptVerificationError)
        assert isinstance(exc, ProtocolStatusError)


class TestConfigurationErrors:
    def test_credentials_error(self):
        exc = CredentialsError("bad key")
        assert isinstance(exc, ConfigurationError)
        assert "bad key" in str(exc)

    def test_oauth_exchange_error_status(self):
        exc = OAuthExchangeError("token endpoint returned 400", status_code=400)
        assert isinstance(exc, ConfigurationError)
        assert exc.status_code == 400

    def test_oauth_exchange_error_without_status(self):
        exc = OAuthExchangeError("token response has no access_token")
        assert exc.status_code is None

    def test_authentication_error_message(self):
        exc = AuthenticationError("refresh failed")
        assert "Authentication failed" in str(exc)
