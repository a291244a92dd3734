"""ABI definitions for the FHEAuction contract."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from eth_abi import encode as abi_encode
from eth_utils import keccak

FHEAuction_abi: list[dict[str, Any]] = [
    {
        "inputs": [
            {"internalType": "string", "name": "_item", "type": "string"},
            {"internalType": "uint256", "name": "_durationSeconds", "type": "uint256"},
        ],
        "stateMutability": "nonpayable",
        "type": "constructor",
    },
    {"inputs": [], "name": "AlreadySettled", "type": "error"},
    {"inputs": [], "name": "AuctionEnded", "type": "error"},
    {"inputs": [], "name": "AuctionNotEnded", "type": "error"},
    {"inputs": [], "name": "NoBids", "type": "error"},
    {
        "inputs": [{"internalType": "address", "name": "caller", "type": "address"}],
        "name": "NotSeller",
        "type": "error",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "bidder", "type": "address"}
        ],
        "name": "BidSubmitted",
        "type": "event",
    },
    {
        "inputs": [
            {"internalType": "externalEuint32", "name": "encBid", "type": "bytes32"},
            {"internalType": "bytes", "name": "inputProof", "type": "bytes"},
        ],
        "name": "bid",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getStatus",
        "outputs": [
            {"internalType": "string", "name": "item", "type": "string"},
            {"internalType": "uint256", "name": "endTime", "type": "uint256"},
            {"internalType": "bool", "name": "settled", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "seller",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address[]", "name": "bidders", "type": "address[]"}],
        "name": "settle",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "winningBidEnc",
        "outputs": [{"internalType": "euint32", "name": "", "type": "bytes32"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "winningIndexEnc",
        "outputs": [{"internalType": "euint32", "name": "", "type": "bytes32"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def load_artifact(path: str | Path) -> tuple[list[dict[str, Any]], str | None]:
    """Load ``(abi, bytecode)`` from a Hardhat/Foundry JSON artifact."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    abi = payload.get("abi")
    if not isinstance(abi, list):
        raise ValueError(f"Artifact {path} has no ABI list")
    bytecode = payload.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if isinstance(bytecode, str) and bytecode and not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode
    return abi, bytecode or None


def canonical_type(param: Mapping[str, Any]) -> str:
    """Canonical ABI type of a parameter, expanding tuples into ``(a,b)`` form."""

    kind = str(param.get("type", ""))
    if kind.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def encode_call(abi: Sequence[Mapping[str, Any]], name: str, args: Sequence[Any]) -> str:
    """Return 0x-prefixed calldata for ``name(*args)``, picking the overload by arity."""

    for entry in abi:
        if entry.get("type") != "function" or entry.get("name") != name:
            continue
        inputs = entry.get("inputs", [])
        if len(inputs) != len(args):
            continue
        types = [canonical_type(param) for param in inputs]
        selector = keccak(text=f"{name}({','.join(types)})")[:4]
        return "0x" + (selector + abi_encode(types, list(args))).hex()
    raise ValueError(f"ABI has no function {name} taking {len(args)} argument(s)")


__all__ = ["FHEAuction_abi", "canonical_type", "encode_call", "load_artifact"]
