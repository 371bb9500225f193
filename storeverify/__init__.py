"""
storeverify - Server-side verification of App Store, Google Play and
Cafebazaar in-app purchases.
"""

from storeverify.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DecodeError,
    ProtocolStatusError,
    ReceiptVerificationError,
    StoreStatusError,
    StoreVerifyError,
    TransportError,
)
from storeverify.models.appstore import Environment, VerificationResult
from storeverify.models.playstore import AcknowledgeOptions
from storeverify.services.appstore_provider import AppStoreClient
from storeverify.services.cafebazaar_provider import CafebazaarClient
from storeverify.services.playstore_provider import PlayStoreClient

__all__ = [
    "AcknowledgeOptions",
    "AppStoreClient",
    "AuthenticationError",
    "CafebazaarClient",
    "ConfigurationError",
    "DecodeError",
    "Environment",
    "PlayStoreClient",
    "ProtocolStatusError",
    "ReceiptVerificationError",
    "StoreStatusError",
    "StoreVerifyError",
    "TransportError",
    "VerificationResult",
]
