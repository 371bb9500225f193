"""
Cafebazaar domain models - Immutable dataclasses for purchase validation.

Cafebazaar's numeric encoding differs from Google Play's: here a consumed
product has consumptionState 0 and a refunded one has purchaseState 1.
Do not compare these enums with storeverify.models.playstore values.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from storeverify.exceptions import DecodeError


class ConsumptionState(IntEnum):
    CONSUMED = 0
    NOT_CONSUMED = 1


class PurchaseState(IntEnum):
    DONE = 0
    REFUNDED = 1


def _field(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    # bool is an int subclass; keep them apart
    if isinstance(value, bool) != (kind is bool) or not isinstance(value, kind):
        raise DecodeError(f"field {key!r} must be {kind.__name__}, got {value!r}")
    return value


@dataclass(frozen=True)
class Product:
    """Purchase and consumption status of an in-app product."""

    kind: str
    purchase_time_millis: int
    purchase_state: PurchaseState
    consumption_state: ConsumptionState
    developer_payload: str

    @classmethod
    def from_response(cls, data: Any) -> "Product":
        """
        Build from a validate/inapp response.

        Raises:
            DecodeError: If the body does not have the expected shape
        """
        if not isinstance(data, dict):
            raise DecodeError(f"product purchase must be a JSON object, got {type(data).__name__}")
        try:
            purchase_state = PurchaseState(_field(data, "purchaseState", int, 0))
            consumption_state = ConsumptionState(_field(data, "consumptionState", int, 0))
        except ValueError as exc:
            raise DecodeError(f"unknown product state: {exc}") from exc
        return cls(
            kind=_field(data, "kind", str, ""),
            purchase_time_millis=_field(data, "purchaseTime", int, 0),
            purchase_state=purchase_state,
            consumption_state=consumption_state,
            developer_payload=_field(data, "developerPayload", str, ""),
        )

    def is_valid(self) -> bool:
        """Check if purchase is completed and not refunded."""
        return self.purchase_state == PurchaseState.DONE

    def is_consumed(self) -> bool:
        return self.consumption_state == ConsumptionState.CONSUMED


@dataclass(frozen=True)
class Subscription:
    """Status of a subscription purchase."""

    kind: str
    initiation_time_millis: int
    valid_until_time_millis: int
    auto_renewing: bool

    @classmethod
    def from_response(cls, data: Any) -> "Subscription":
        """
        Build from a subscriptions/purchases response.

        Raises:
            DecodeError: If the body does not have the expected shape
        """
        if not isinstance(data, dict):
            raise DecodeError(
                f"subscription purchase must be a JSON object, got {type(data).__name__}"
            )
        return cls(
            kind=_field(data, "kind", str, ""),
            initiation_time_millis=_field(data, "initiationTimestampMsec", int, 0),
            valid_until_time_millis=_field(data, "validUntilTimestampMsec", int, 0),
            auto_renewing=_field(data, "autoRenewing", bool, False),
        )

    def is_active(self, now_millis: int) -> bool:
        """Check if the subscription grants access at ``now_millis``."""
        return self.valid_until_time_millis > now_millis
