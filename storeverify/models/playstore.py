"""
Google Play domain models - Immutable dataclasses for purchase verification.

https://developers.google.com/android-publisher/api-ref/rest/v3/purchases.products
https://developers.google.com/android-publisher/api-ref/rest/v3/purchases.subscriptions

Google encodes int64 fields (millis, micros) as JSON strings; both strings
and numbers are accepted.

These enums are Google Play's encoding. Cafebazaar uses different numeric
values for the same states, see storeverify.models.cafebazaar.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, TypeVar

from storeverify.exceptions import DecodeError

E = TypeVar("E", bound=IntEnum)


class AcknowledgementState(IntEnum):
    NOT_ACKNOWLEDGED = 0
    ACKNOWLEDGED = 1


class CancelReason(IntEnum):
    USER_CANCELED = 0
    SYSTEM_CANCELED = 1
    REPLACED = 2
    DEVELOPER_CANCELED = 3


class CancelSurveyReason(IntEnum):
    OTHER = 0
    NO_USE = 1
    TECHNICAL_ISSUE = 2
    COST_RELATED = 3
    FOUND_BETTER = 4


class ConsumptionState(IntEnum):
    NOT_CONSUMED = 0
    CONSUMED = 1


class PaymentState(IntEnum):
    PENDING = 0
    RECEIVED = 1
    FREE_TRIAL = 2
    DEFERRED = 3


class PriceChangeState(IntEnum):
    OUTSTANDING = 0
    ACCEPTED = 1


class PurchaseState(IntEnum):
    PURCHASED = 0
    CANCELED = 1
    PENDING = 2


class PurchaseType(IntEnum):
    TEST = 0
    PROMO = 1
    REWARDED = 2


def _expect_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise DecodeError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


def _int64(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise DecodeError(f"field {key!r} must be an integer, got {value!r}")
    try:
        return int(value)
    except ValueError as exc:
        raise DecodeError(f"field {key!r} must be an integer, got {value!r}") from exc


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise DecodeError(f"field {key!r} must be a boolean, got {value!r}")
    return value


def _enum(data: dict[str, Any], key: str, enum_type: type[E]) -> E:
    raw = _int64(data, key)
    try:
        return enum_type(raw)
    except ValueError as exc:
        raise DecodeError(f"field {key!r} has unknown {enum_type.__name__} {raw}") from exc


def _optional_enum(data: dict[str, Any], key: str, enum_type: type[E]) -> E | None:
    if data.get(key) is None:
        return None
    return _enum(data, key, enum_type)


@dataclass(frozen=True)
class Product:
    """Purchase and consumption status of an in-app product."""

    kind: str
    purchase_time_millis: int
    purchase_state: PurchaseState
    consumption_state: ConsumptionState
    developer_payload: str
    order_id: str
    acknowledgement_state: AcknowledgementState
    purchase_type: PurchaseType | None = None  # None: real purchase

    @classmethod
    def from_response(cls, data: Any) -> "Product":
        """
        Build from a purchases.products resource.

        Raises:
            DecodeError: If the body does not have the expected shape
        """
        data = _expect_object(data, "product purchase")
        return cls(
            kind=_str(data, "kind"),
            purchase_time_millis=_int64(data, "purchaseTimeMillis"),
            purchase_state=_enum(data, "purchaseState", PurchaseState),
            consumption_state=_enum(data, "consumptionState", ConsumptionState),
            developer_payload=_str(data, "developerPayload"),
            order_id=_str(data, "orderId"),
            acknowledgement_state=_enum(data, "acknowledgementState", AcknowledgementState),
            purchase_type=_optional_enum(data, "purchaseType", PurchaseType),
        )

    def is_valid(self) -> bool:
        """Check if purchase is completed and can be credited."""
        return self.purchase_state == PurchaseState.PURCHASED

    def is_test_purchase(self) -> bool:
        """Check if this is a test purchase (license tester account)."""
        return self.purchase_type == PurchaseType.TEST

    def needs_acknowledgement(self) -> bool:
        """Check if purchase needs acknowledgement."""
        return self.acknowledgement_state == AcknowledgementState.NOT_ACKNOWLEDGED

    def is_consumed(self) -> bool:
        return self.consumption_state == ConsumptionState.CONSUMED


@dataclass(frozen=True)
class IntroductoryPriceInfo:
    """Introductory price of a subscription, when one applies."""

    currency_code: str
    amount_micros: int
    period: str
    cycles: int

    @classmethod
    def from_response(cls, data: Any) -> "IntroductoryPriceInfo":
        data = _expect_object(data, "introductoryPriceInfo")
        return cls(
            currency_code=_str(data, "introductoryPriceCurrencyCode"),
            amount_micros=_int64(data, "introductoryPriceAmountMicros"),
            period=_str(data, "introductoryPricePeriod"),
            cycles=_int64(data, "introductoryPriceCycles"),
        )


@dataclass(frozen=True)
class CancelSurveyResult:
    """What the user answered in the cancellation survey."""

    reason: CancelSurveyReason
    user_input: str

    @classmethod
    def from_response(cls, data: Any) -> "CancelSurveyResult":
        data = _expect_object(data, "cancelSurveyResult")
        return cls(
            reason=_enum(data, "cancelSurveyReason", CancelSurveyReason),
            user_input=_str(data, "userInputCancelReason"),
        )


@dataclass(frozen=True)
class NewPrice:
    price_micros: int
    currency: str

    @classmethod
    def from_response(cls, data: Any) -> "NewPrice":
        data = _expect_object(data, "newPrice")
        return cls(price_micros=_int64(data, "priceMicros"), currency=_str(data, "currency"))


@dataclass(frozen=True)
class PriceChange:
    """Latest price change of a subscription and whether the user accepted it."""

    new_price: NewPrice | None
    state: PriceChangeState

    @classmethod
    def from_response(cls, data: Any) -> "PriceChange":
        data = _expect_object(data, "priceChange")
        new_price = data.get("newPrice")
        return cls(
            new_price=NewPrice.from_response(new_price) if new_price is not None else None,
            state=_enum(data, "state", PriceChangeState),
        )


@dataclass(frozen=True)
class Subscription:
    """
    Status of a subscription purchase.

    ``linked_purchase_token`` points at the token this one replaced on an
    upgrade, downgrade or resubscribe; follow it to find the prior purchase.
    """

    kind: str
    start_time_millis: int
    expiry_time_millis: int
    auto_resume_time_millis: int
    auto_renewing: bool
    price_currency_code: str
    price_amount_micros: int
    introductory_price_info: IntroductoryPriceInfo | None
    country_code: str
    developer_payload: str
    payment_state: PaymentState | None
    cancel_reason: CancelReason | None
    user_cancellation_time_millis: int
    cancel_survey_result: CancelSurveyResult | None
    order_id: str
    linked_purchase_token: str
    purchase_type: PurchaseType | None
    price_change: PriceChange | None
    profile_name: str
    email_address: str
    given_name: str
    family_name: str
    profile_id: str
    acknowledgement_state: AcknowledgementState

    @classmethod
    def from_response(cls, data: Any) -> "Subscription":
        """
        Build from a purchases.subscriptions resource.

        Raises:
            DecodeError: If the body does not have the expected shape
        """
        data = _expect_object(data, "subscription purchase")
        intro = data.get("introductoryPriceInfo")
        survey = data.get("cancelSurveyResult")
        price_change = data.get("priceChange")
        return cls(
            kind=_str(data, "kind"),
            start_time_millis=_int64(data, "startTimeMillis"),
            expiry_time_millis=_int64(data, "expiryTimeMillis"),
            auto_resume_time_millis=_int64(data, "autoResumeTimeMillis"),
            auto_renewing=_bool(data, "autoRenewing"),
            price_currency_code=_str(data, "priceCurrencyCode"),
            price_amount_micros=_int64(data, "priceAmountMicros"),
            introductory_price_info=(
                IntroductoryPriceInfo.from_response(intro) if intro is not None else None
            ),
            country_code=_str(data, "countryCode"),
            developer_payload=_str(data, "developerPayload"),
            payment_state=_optional_enum(data, "paymentState", PaymentState),
            cancel_reason=_optional_enum(data, "cancelReason", CancelReason),
            user_cancellation_time_millis=_int64(data, "userCancellationTimeMillis"),
            cancel_survey_result=(
                CancelSurveyResult.from_response(survey) if survey is not None else None
            ),
            order_id=_str(data, "orderId"),
            linked_purchase_token=_str(data, "linkedPurchaseToken"),
            purchase_type=_optional_enum(data, "purchaseType", PurchaseType),
            price_change=PriceChange.from_response(price_change) if price_change else None,
            profile_name=_str(data, "profileName"),
            email_address=_str(data, "emailAddress"),
            given_name=_str(data, "givenName"),
            family_name=_str(data, "familyName"),
            profile_id=_str(data, "profileId"),
            acknowledgement_state=_enum(data, "acknowledgementState", AcknowledgementState),
        )

    def is_active(self, now_millis: int) -> bool:
        """Check if the subscription grants access at ``now_millis``."""
        return self.expiry_time_millis > now_millis

    def is_canceled(self) -> bool:
        return self.cancel_reason is not None

    def needs_acknowledgement(self) -> bool:
        """Check if subscription needs acknowledgement."""
        return self.acknowledgement_state == AcknowledgementState.NOT_ACKNOWLEDGED


@dataclass(frozen=True)
class DeferralInfo:
    """Requested new expiry for a subscription defer call."""

    expected_expiry_time_millis: int
    desired_expiry_time_millis: int

    def to_request(self) -> dict[str, Any]:
        """Request body for purchases.subscriptions.defer."""
        return {
            "deferralInfo": {
                "expectedExpiryTimeMillis": self.expected_expiry_time_millis,
                "desiredExpiryTimeMillis": self.desired_expiry_time_millis,
            }
        }


@dataclass(frozen=True)
class AcknowledgeOptions:
    """Optional arguments of the acknowledge calls."""

    developer_payload: str = ""

    def to_request(self) -> dict[str, Any]:
        return {"developerPayload": self.developer_payload}
