"""Encryption-service side: key readiness, encrypted inputs and the relayer probe."""

from .encryption import EncryptionRetryEngine, EncryptionService, is_transient_error, validate_uint32
from .keys import KeyReadinessWaiter
from .relayer import RelayerKeyProbe

__all__ = [
    "EncryptionRetryEngine",
    "EncryptionService",
    "KeyReadinessWaiter",
    "RelayerKeyProbe",
    "is_transient_error",
    "validate_uint32",
]
