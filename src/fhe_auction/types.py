"""Type definitions and data models for the FHE auction client."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from eth_typing import HexStr
from web3 import Web3


class SettleSignature(Enum):
    """Accepted shapes of the contract's ``settle`` function."""

    NO_ARGS = "settle()"
    ADDRESS_LIST = "settle(address[])"


class KeyReadiness(Enum):
    """Per-contract key provisioning state as observed by the waiter."""

    UNKNOWN = "unknown"
    POLLING = "polling"
    READY = "ready"
    TIMED_OUT = "timed_out"


class SessionState(Enum):
    """Lifecycle of an :class:`~fhe_auction.client.AuctionSession`."""

    INIT = "init"
    READY = "ready"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class WalletSession:
    """Connected account and chain; replaced wholesale on every change."""

    address: str | None = None
    chain_id: int | None = None

    @property
    def connected(self) -> bool:
        return self.address is not None


@dataclass(frozen=True)
class ReadCall:
    """Read-only contract call descriptor."""

    function: str
    args: tuple[Any, ...] = ()


@dataclass(frozen=True)
class AuctionStatus:
    """Last known on-chain status of one auction."""

    item: str
    end_time: int
    settled: bool
    winning_bid_enc: str | None = None
    winning_index_enc: str | None = None

    def has_ended(self, now: float) -> bool:
        return self.end_time <= int(now)


@dataclass(frozen=True)
class Unloaded:
    """Status never fetched for this address."""


@dataclass(frozen=True)
class Incompatible:
    """Address answered but is not a compatible auction contract."""


@dataclass(frozen=True)
class Loaded:
    """Status fetched successfully."""

    status: AuctionStatus


StatusEntry = Unloaded | Incompatible | Loaded


@dataclass(frozen=True)
class EncryptedPayload:
    """Ciphertext handles plus the input proof attesting to them."""

    handles: tuple[bytes, ...]
    input_proof: bytes

    @property
    def handle(self) -> bytes:
        return self.handles[0]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EncryptedPayload":
        """Build a payload from the encryption service's ``{handles, inputProof}`` output."""

        raw_handles = data.get("handles")
        raw_proof = data.get("inputProof", data.get("input_proof"))
        handles = tuple(_ensure_bytes(item) for item in _iterable(raw_handles))
        if not handles:
            raise ValueError("Encrypted input returned no ciphertext handles")
        if raw_proof is None:
            raise ValueError("Encrypted input returned no input proof")
        return cls(handles=handles, input_proof=_ensure_bytes(raw_proof))


@dataclass
class Response:
    """Generic response for session operations."""

    success: bool
    transaction_hash: str | None = None
    error: str | None = None
    error_type: str | None = None
    raw_response: dict[str, Any] | None = None
    address: str | None = None
    amount: int | None = None
    bidders: list[str] = field(default_factory=list)
    status: AuctionStatus | None = None


def _ensure_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value

    if isinstance(value, bytearray):
        return bytes(value)

    if isinstance(value, str):
        lower = value.lower()
        if not lower.startswith("0x"):
            lower = "0x" + lower
        return Web3.to_bytes(hexstr=HexStr(lower))

    if isinstance(value, Iterable):
        return bytes(value)

    raise TypeError(f"Unsupported type for payload coercion: {type(value)!r}")


def _iterable(value: Any) -> Iterable:
    if isinstance(value, list | tuple):
        return value

    if value is None:
        return []

    return [value]
