"""Utility functions for the FHE auction client."""

import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from .constants import ADDRESS_PATTERN
from .exceptions import OperationCancelled, ValidationError

Sleeper = Callable[[float], None]


def is_auction_address(value: Any) -> bool:
    """Return True for a ``0x``-prefixed 20-byte hex string (any case)."""
    return isinstance(value, str) and ADDRESS_PATTERN.match(value.strip()) is not None


def normalise_address(value: Any, field: str = "address") -> str:
    """Validate an address and return its checksummed form."""
    if not is_auction_address(value):
        raise ValidationError("Invalid address format", field=field, value=value)
    return Web3.to_checksum_address(value.strip().lower())


def dedupe_addresses(values: Iterable[Any]) -> list[str]:
    """Checksum, drop malformed entries and deduplicate case-insensitively, keeping order."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if not is_auction_address(value):
            continue
        key = value.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(Web3.to_checksum_address(key))
    return out


def to_hex(value: Any) -> str:
    """Render bytes-like values as 0x-prefixed hex, pass strings through."""
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return HexBytes(value).to_0x_hex()


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt


class CancelToken:
    """Cooperative cancellation flag shared by the loops of one active auction."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")

    def wait(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        if self._event.wait(max(0.0, seconds)):
            raise OperationCancelled("Operation cancelled")


def pause(seconds: float, token: CancelToken | None = None, sleep: Sleeper | None = None) -> None:
    """Back off between attempts, honouring an optional cancel token.

    An injected ``sleep`` replaces the real wait (tests); the token is still checked.
    """
    if token is not None:
        token.raise_if_cancelled()
        if sleep is None:
            token.wait(seconds)
            return
    (sleep or time.sleep)(seconds)
    if token is not None:
        token.raise_if_cancelled()


def error_code(exc: BaseException) -> int | None:
    """Best-effort EIP-1193 / JSON-RPC error code of an exception."""
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, Mapping):
        err = rpc_response.get("error")
        if isinstance(err, Mapping) and isinstance(err.get("code"), int):
            return err["code"]
    if exc.args and isinstance(exc.args[0], Mapping):
        code = exc.args[0].get("code")
        if isinstance(code, int):
            return code
    return None
