"""Decode revert data carried by wallet/provider errors into readable custom errors."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from eth_abi import decode as abi_decode
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from ..abi import FHEAuction_abi, canonical_type

logger = logging.getLogger(__name__)

_BUILTIN_ERRORS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Error", ("string",)),
    ("Panic", ("uint256",)),
)

_NESTED_KEYS = ("error", "originalError", "info", "cause", "data")
_MAX_DEPTH = 8


class RevertClassifier:
    """Map raw revert data to ``Name(args...)`` using the contract's error ABI."""

    def __init__(self, abi: Sequence[Mapping[str, Any]] = FHEAuction_abi) -> None:
        self._errors: dict[bytes, tuple[str, tuple[str, ...]]] = {}
        for name, types in _BUILTIN_ERRORS:
            self._register(name, types)
        for entry in abi:
            if entry.get("type") != "error":
                continue
            types = tuple(canonical_type(p) for p in entry.get("inputs", []))
            self._register(str(entry["name"]), types)

    def _register(self, name: str, types: tuple[str, ...]) -> None:
        selector = keccak(text=f"{name}({','.join(types)})")[:4]
        self._errors[selector] = (name, types)

    def classify(self, error: BaseException | Any) -> str | None:
        """Return ``"ErrorName(args...)"`` or None when nothing decodable is attached."""

        raw = extract_revert_data(error)
        if raw is None:
            return None
        return self.decode(raw)

    def decode(self, raw: bytes) -> str | None:
        if len(raw) < 4:
            return None
        known = self._errors.get(raw[:4])
        if known is None:
            logger.debug("Unknown revert selector 0x%s", raw[:4].hex())
            return None
        name, types = known
        try:
            args = abi_decode(list(types), raw[4:]) if types else ()
        except Exception as exc:
            logger.debug("Failed to decode %s revert payload: %s", name, exc)
            return None
        rendered = ", ".join(_render(arg, kind) for arg, kind in zip(args, types))
        return f"{name}({rendered})"


def extract_revert_data(error: Any) -> bytes | None:
    """Find the innermost revert payload across the usual wallet/provider error shapes."""

    return _search(error, 0, set())


def _search(obj: Any, depth: int, seen: set[int]) -> bytes | None:
    if obj is None or depth > _MAX_DEPTH or id(obj) in seen:
        return None
    seen.add(id(obj))

    if isinstance(obj, str | bytes | bytearray):
        return _as_revert_bytes(obj)

    if isinstance(obj, Mapping):
        for key in _NESTED_KEYS:
            value = obj.get(key)
            if isinstance(value, Mapping | BaseException):
                found = _search(value, depth + 1, seen)
                if found is not None:
                    return found
        return _as_revert_bytes(obj.get("data"))

    if isinstance(obj, BaseException):
        nested: list[Any] = [getattr(obj, "rpc_response", None)]
        nested.extend(arg for arg in obj.args if isinstance(arg, Mapping))
        nested.extend(getattr(obj, key, None) for key in ("error", "info"))
        for candidate in nested:
            if isinstance(candidate, Mapping | BaseException):
                found = _search(candidate, depth + 1, seen)
                if found is not None:
                    return found

        own = getattr(obj, "data", None)
        if isinstance(own, Mapping):
            found = _search(own, depth + 1, seen)
        else:
            found = _as_revert_bytes(own)
        if found is not None:
            return found

        for chained in (obj.__cause__, obj.__context__):
            found = _search(chained, depth + 1, seen)
            if found is not None:
                return found
        # web3 ContractCustomError keeps the payload as its first positional argument
        for arg in obj.args:
            if isinstance(arg, str) and arg.startswith("0x"):
                found = _as_revert_bytes(arg)
                if found is not None:
                    return found
    return None


def _as_revert_bytes(value: Any) -> bytes | None:
    if isinstance(value, bytes | bytearray):
        data = bytes(value)
    elif isinstance(value, str) and value.startswith("0x") and len(value) % 2 == 0:
        try:
            data = bytes.fromhex(value[2:])
        except ValueError:
            return None
    else:
        return None
    return data if len(data) >= 4 else None


def _render(value: Any, kind: str = "") -> str:
    if kind == "address":
        return to_checksum_address(value)
    if isinstance(value, bytes | bytearray):
        return HexBytes(value).to_0x_hex()
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, list | tuple):
        return "[" + ", ".join(_render(item) for item in value) + "]"
    return str(value)
