"""
Exception Classes - Strongly typed exception hierarchy.

Every failure carries enough structure (numeric status, store, operation)
for the caller to decide between retrying, resubmitting, or giving up.
Nothing in this library retries on its own.
"""


class StoreVerifyError(Exception):
    """Base exception for all store verification errors."""

    pass


class TransportError(StoreVerifyError):
    """Raised when the provider could not be reached (network, TLS, proxy, timeout)."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.message = message
        self.url = url
        super().__init__(f"Transport error: {message}")


class DecodeError(StoreVerifyError):
    """Raised when a response body is not JSON or does not match the expected shape."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Decode error: {message}")


class ProtocolStatusError(StoreVerifyError):
    """Raised when the provider answered but rejected the request."""

    pass


class StoreStatusError(ProtocolStatusError):
    """Raised when a market store responds with any HTTP status other than 200."""

    def __init__(self, status_code: int, store: str = "", operation: str = "") -> None:
        self.status_code = status_code
        self.store = store
        self.operation = operation
        super().__init__(f"failed with status: {status_code}")


class ReceiptVerificationError(ProtocolStatusError):
    """
    Raised for a nonzero App Store receipt status.

    Each classified status has its own subclass; ``status`` keeps the exact
    numeric code the provider returned.
    """

    message = "unknown error occurred"

    def __init__(self, status: int, retryable: bool = False) -> None:
        self.status = status
        self.retryable = retryable
        super().__init__(f"{self.message} (status {status})")


class MalformedRequestError(ReceiptVerificationError):
    """21000: the request body could not be read."""

    message = "could not read the JSON object you provided"


class MalformedReceiptError(ReceiptVerificationError):
    """21002: receipt-data was malformed or missing."""

    message = "data in the receipt-data property was malformed or missing"


class ReceiptAuthenticationError(ReceiptVerificationError):
    """21003"""

    message = "receipt could not be authenticated"


class SharedSecretMismatchError(ReceiptVerificationError):
    """21004"""

    message = (
        "shared secret you provided does not match the shared secret on file for your account"
    )


class ReceiptServiceUnavailableError(ReceiptVerificationError):
    """21005: temporary outage on the provider side."""

    message = "receipt server is not currently available"


class SandboxReceiptError(ReceiptVerificationError):
    """21007: resubmit to the sandbox endpoint."""

    message = (
        "receipt is from the test environment, but it was sent to the production "
        "environment for verification. Send it to the test environment instead"
    )


class ProductionReceiptError(ReceiptVerificationError):
    """21008: resubmit to the production endpoint."""

    message = (
        "receipt is from the production environment, but it was sent to the test "
        "environment for verification. Send it to the production environment instead"
    )


class ReceiptUnauthorizedError(ReceiptVerificationError):
    """21010: treat as if the purchase never happened."""

    message = (
        "receipt could not be authorized. Treat this the same as if a purchase was never made"
    )


class InternalDataAccessError(ReceiptVerificationError):
    """21100-21199"""

    message = "internal data access error"


class UnknownReceiptStatusError(ReceiptVerificationError):
    """Any other nonzero status."""

    message = "unknown error occurred"


class AuthenticationError(StoreVerifyError):
    """Raised when an access token cannot be obtained or refreshed at call time."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class ConfigurationError(StoreVerifyError):
    """Raised when setup input is missing or invalid, before any verification call."""

    pass


class CredentialsError(ConfigurationError):
    """Raised when service account credentials cannot be loaded."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid credentials: {message}")


class OAuthExchangeError(ConfigurationError):
    """Raised when an OAuth2 authorization code or refresh token exchange fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"OAuth exchange failed: {message}")
