"""Package containing all supported transports."""

from .basetransport import BaseTransport
from .klaptransport import KlapEncryptionSession, KlapSession, KlapTransport
from .securepassthroughtransport import (
    AesEncryptionSession,
    KeyPair,
    SecurePassThroughSession,
    SecurePassThroughTransport,
)

__all__ = [
    "AesEncryptionSession",
    "BaseTransport",
    "KeyPair",
    "KlapEncryptionSession",
    "KlapSession",
    "KlapTransport",
    "SecurePassThroughSession",
    "SecurePassThroughTransport",
]
