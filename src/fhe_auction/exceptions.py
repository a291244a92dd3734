"""Exception hierarchy for the FHE auction client."""

from typing import Any


class AuctionError(Exception):
    """Base exception for all auction client errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(AuctionError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class TransportUnavailable(AuctionError):
    """Raised when the read layer cannot be reached. Recoverable, retry later."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint


class AllEndpointsUnavailable(TransportUnavailable):
    """Raised when every configured RPC endpoint failed for one read."""

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message, details={"errors": dict(errors or {})})
        self.errors = dict(errors or {})


class IncompatibleContract(AuctionError):
    """Raised when an address answers but does not implement the auction read surface."""

    def __init__(self, message: str, address: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.address = address


class KeyNotReady(AuctionError):
    """Raised when the encryption service did not provision key material in time."""

    def __init__(
        self,
        message: str,
        contract: str | None = None,
        timeout_ms: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.contract = contract
        self.timeout_ms = timeout_ms


class EncryptionExhausted(AuctionError):
    """Raised when transient encryption failures persisted past the retry cap."""

    def __init__(self, message: str, attempts: int, details: dict | None = None):
        super().__init__(message, details)
        self.attempts = attempts


class PreflightFailed(AuctionError):
    """Raised when the simulated write kept failing after every attempt."""

    def __init__(
        self,
        message: str,
        attempts: int,
        reason: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.attempts = attempts
        self.reason = reason


class UnsupportedSettleSignature(AuctionError):
    """Raised when the contract's settle function has an unrecognised shape."""

    def __init__(self, message: str, inputs: list[str] | None = None):
        super().__init__(message, details={"inputs": list(inputs or [])})
        self.inputs = list(inputs or [])


class WalletRejected(AuctionError):
    """Raised when the user (or signer) declined a wallet request."""

    pass


class WrongChain(AuctionError):
    """Raised when the wallet is connected to a different chain than configured."""

    def __init__(self, message: str, expected: int, actual: int | None = None):
        super().__init__(message, details={"expected": expected, "actual": actual})
        self.expected = expected
        self.actual = actual


class TransactionReverted(AuctionError):
    """Raised when a submitted transaction failed on-chain."""

    def __init__(
        self,
        message: str,
        tx_hash: str | None = None,
        reason: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash
        self.reason = reason


class AuctionEnded(AuctionError):
    """Raised when a bid targets an auction whose bidding window has closed."""

    def __init__(self, message: str, address: str | None = None, end_time: int | None = None):
        super().__init__(message, details={"address": address, "end_time": end_time})
        self.address = address
        self.end_time = end_time


class OperationCancelled(AuctionError):
    """Raised inside a wait loop once its cancel token fires."""

    pass


class SessionError(AuctionError):
    """Raised when a session is used outside its ready state."""

    pass
