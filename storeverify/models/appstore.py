"""
App Store receipt models - Immutable dataclasses for verifyReceipt responses.

https://developer.apple.com/documentation/appstorereceipts/responsebody

Apple sends most numbers as strings (dates in three encodings, quantities,
flags). They are kept verbatim, as text, exactly as received.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from storeverify.exceptions import (
    DecodeError,
    InternalDataAccessError,
    MalformedReceiptError,
    MalformedRequestError,
    ProductionReceiptError,
    ReceiptAuthenticationError,
    ReceiptServiceUnavailableError,
    ReceiptUnauthorizedError,
    ReceiptVerificationError,
    SandboxReceiptError,
    SharedSecretMismatchError,
    UnknownReceiptStatusError,
)

PRODUCTION_URL = "https://buy.itunes.apple.com/verifyReceipt"
SANDBOX_URL = "https://sandbox.itunes.apple.com/verifyReceipt"

STATUS_OK = 0
STATUS_SANDBOX_RECEIPT = 21007
STATUS_PRODUCTION_RECEIPT = 21008

_STATUS_ERRORS: dict[int, type[ReceiptVerificationError]] = {
    21000: MalformedRequestError,
    21002: MalformedReceiptError,
    21003: ReceiptAuthenticationError,
    21004: SharedSecretMismatchError,
    21005: ReceiptServiceUnavailableError,
    STATUS_SANDBOX_RECEIPT: SandboxReceiptError,
    STATUS_PRODUCTION_RECEIPT: ProductionReceiptError,
    21010: ReceiptUnauthorizedError,
}


class Environment(str, Enum):
    """verifyReceipt endpoint selection."""

    PRODUCTION = "production"
    SANDBOX = "sandbox"

    @property
    def url(self) -> str:
        """Fixed verifyReceipt URL for this environment."""
        if self is Environment.SANDBOX:
            return SANDBOX_URL
        return PRODUCTION_URL


def classify_status(status: int, retryable: bool = False) -> ReceiptVerificationError | None:
    """Map a receipt status to its error, or None for success."""
    if status == STATUS_OK:
        return None
    error_class = _STATUS_ERRORS.get(status)
    if error_class is None:
        if 21100 <= status <= 21199:
            error_class = InternalDataAccessError
        else:
            error_class = UnknownReceiptStatusError
    return error_class(status, retryable=retryable)


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise DecodeError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value if isinstance(value, str) else str(value)


def _integer(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise DecodeError(f"field {key!r} must be an integer, got bool")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"field {key!r} must be an integer, got {value!r}") from exc


def _objects(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise DecodeError(f"field {key!r} must be a list of objects")
    return value


@dataclass(frozen=True)
class PurchaseEntry:
    """One in-app purchase transaction (``in_app`` / ``latest_receipt_info`` item)."""

    quantity: str = ""
    product_id: str = ""
    transaction_id: str = ""
    original_transaction_id: str = ""
    web_order_line_item_id: str = ""
    is_trial_period: str = ""
    is_in_intro_offer_period: str = ""
    expires_date: str = ""
    expires_date_ms: str = ""
    expires_date_pst: str = ""
    expires_date_formatted: str = ""
    expires_date_formatted_pst: str = ""
    purchase_date: str = ""
    purchase_date_ms: str = ""
    purchase_date_pst: str = ""
    original_purchase_date: str = ""
    original_purchase_date_ms: str = ""
    original_purchase_date_pst: str = ""
    cancellation_date: str = ""
    cancellation_date_ms: str = ""
    cancellation_date_pst: str = ""
    cancellation_reason: str = ""

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "PurchaseEntry":
        """Build from one decoded JSON object."""
        return cls(**{name: _text(data, name) for name in cls.__dataclass_fields__})

    def is_canceled(self) -> bool:
        """Check if Apple customer support refunded or canceled this transaction."""
        return bool(self.cancellation_date or self.cancellation_date_ms)

    def is_trial(self) -> bool:
        """Check if this transaction is in a free trial period."""
        return self.is_trial_period == "true"


@dataclass(frozen=True)
class ReceiptSnapshot:
    """The decoded receipt that was sent for verification."""

    receipt_type: str = ""
    adam_id: int = 0
    app_item_id: str = ""
    bundle_id: str = ""
    application_version: str = ""
    download_id: int = 0
    version_external_identifier: str = ""
    in_app: tuple[PurchaseEntry, ...] = ()
    receipt_creation_date: str = ""
    receipt_creation_date_ms: str = ""
    receipt_creation_date_pst: str = ""
    request_date: str = ""
    request_date_ms: str = ""
    request_date_pst: str = ""
    original_purchase_date: str = ""
    original_purchase_date_ms: str = ""
    original_purchase_date_pst: str = ""
    original_application_version: str = ""

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "ReceiptSnapshot":
        """Build from the ``receipt`` object of a verifyReceipt response."""
        values: dict[str, Any] = {}
        for name in cls.__dataclass_fields__:
            if name == "in_app":
                values[name] = tuple(
                    PurchaseEntry.from_response(item) for item in _objects(data, name)
                )
            elif name in ("adam_id", "download_id"):
                values[name] = _integer(data, name)
            else:
                values[name] = _text(data, name)
        return cls(**values)


@dataclass(frozen=True)
class RenewalInfo:
    """Pending renewal state of one auto-renewable subscription."""

    expiration_intent: str = ""
    auto_renew_product_id: str = ""
    is_in_billing_retry_period: str = ""
    auto_renew_status: str = ""
    price_consent_status: str = ""
    product_id: str = ""
    original_transaction_id: str = ""

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "RenewalInfo":
        """Build from one ``pending_renewal_info`` item."""
        return cls(**{name: _text(data, name) for name in cls.__dataclass_fields__})

    def will_renew(self) -> bool:
        """Check if subscription will auto-renew."""
        return self.auto_renew_status == "1"

    def in_billing_retry(self) -> bool:
        """Check if Apple is still trying to renew after a billing failure."""
        return self.is_in_billing_retry_period == "1"


@dataclass(frozen=True)
class VerificationResult:
    """
    Decoded verifyReceipt response.

    ``status == 0`` means the receipt is valid. Any other status maps to
    exactly one ReceiptVerificationError subclass through ``classify()``.
    ``retryable`` is Apple's advisory ``is-retryable`` hint; it only means
    something when the status is nonzero.
    """

    status: int
    receipt: ReceiptSnapshot | None = None
    latest_receipt: str = ""
    latest_receipt_info: tuple[PurchaseEntry, ...] = ()
    pending_renewal_info: tuple[RenewalInfo, ...] = ()
    retryable: bool = False
    environment: Environment = Environment.PRODUCTION
    raw_environment: str = field(default="", compare=False)

    @classmethod
    def from_response(
        cls,
        data: dict[str, Any],
        environment: Environment = Environment.PRODUCTION,
    ) -> "VerificationResult":
        """
        Build from a decoded verifyReceipt body.

        Raises:
            DecodeError: If the body does not have the expected shape
        """
        if not isinstance(data, dict):
            raise DecodeError(f"expected a JSON object, got {type(data).__name__}")

        status = data.get("status")
        if isinstance(status, bool) or not isinstance(status, int):
            raise DecodeError(f"field 'status' must be an integer, got {status!r}")

        receipt_data = data.get("receipt")
        if receipt_data is not None and not isinstance(receipt_data, dict):
            raise DecodeError("field 'receipt' must be an object")
        receipt = ReceiptSnapshot.from_response(receipt_data) if receipt_data is not None else None

        retryable = data.get("is-retryable", False)
        if not isinstance(retryable, bool):
            raise DecodeError(f"field 'is-retryable' must be a boolean, got {retryable!r}")

        return cls(
            status=status,
            receipt=receipt,
            latest_receipt=_text(data, "latest_receipt"),
            latest_receipt_info=tuple(
                PurchaseEntry.from_response(item) for item in _objects(data, "latest_receipt_info")
            ),
            pending_renewal_info=tuple(
                RenewalInfo.from_response(item) for item in _objects(data, "pending_renewal_info")
            ),
            retryable=retryable,
            environment=environment,
            raw_environment=_text(data, "environment"),
        )

    def classify(self) -> ReceiptVerificationError | None:
        """Return the error for a nonzero status, None on success."""
        return classify_status(self.status, retryable=self.retryable)

    def raise_for_status(self) -> None:
        """
        Raise the classified error for a nonzero status.

        Raises:
            ReceiptVerificationError: If the status is not 0
        """
        error = self.classify()
        if error is not None:
            raise error

    def is_valid(self) -> bool:
        """Check if the receipt verified successfully."""
        return self.status == STATUS_OK

    @property
    def resubmit_environment(self) -> Environment | None:
        """Environment the receipt must be resubmitted to, if it went to the wrong one."""
        if self.status == STATUS_SANDBOX_RECEIPT:
            return Environment.SANDBOX
        if self.status == STATUS_PRODUCTION_RECEIPT:
            return Environment.PRODUCTION
        return None
