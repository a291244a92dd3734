"""Settle-call shape detection and bidder-list reconciliation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from ..abi import FHEAuction_abi
from ..constants import BID_EVENT_SIGNATURE, DEFAULT_LOG_BLOCK_WINDOW
from ..exceptions import AuctionError, UnsupportedSettleSignature
from ..registry import KnownBidders
from ..types import SettleSignature
from ..utils import dedupe_addresses, normalise_address
from .endpoints import MultiEndpointReader

logger = logging.getLogger(__name__)

BID_EVENT_TOPIC = Web3.keccak(text=BID_EVENT_SIGNATURE).to_0x_hex()


def detect_signature(abi: Sequence[Mapping[str, Any]]) -> SettleSignature:
    """Classify the declared inputs of ``settle``; overloads and absence are unsupported."""

    entries = [
        entry for entry in abi if entry.get("type") == "function" and entry.get("name") == "settle"
    ]
    if len(entries) != 1:
        raise UnsupportedSettleSignature(
            f"Expected exactly one settle function, found {len(entries)}",
            inputs=[_signature(entry) for entry in entries],
        )

    types = [str(param.get("type")) for param in entries[0].get("inputs", [])]
    if not types:
        return SettleSignature.NO_ARGS
    if types == ["address[]"]:
        return SettleSignature.ADDRESS_LIST
    raise UnsupportedSettleSignature(f"Unsupported settle({','.join(types)})", inputs=types)


def _signature(entry: Mapping[str, Any]) -> str:
    return ",".join(str(param.get("type")) for param in entry.get("inputs", []))


class SettlementReconciler:
    """Pick the right settle call and rebuild the bidder list it needs.

    Bidders come from the local known-bidders set first, then from recent
    ``BidSubmitted`` logs, and finally fall back to the caller alone.
    """

    def __init__(
        self,
        reader: MultiEndpointReader,
        known_bidders: KnownBidders,
        *,
        abi: Sequence[Mapping[str, Any]] = FHEAuction_abi,
        log_block_window: int = DEFAULT_LOG_BLOCK_WINDOW,
    ) -> None:
        self._reader = reader
        self._known_bidders = known_bidders
        self._abi = list(abi)
        self._log_block_window = log_block_window

    @property
    def signature(self) -> SettleSignature:
        return detect_signature(self._abi)

    def resolve_bidders(self, contract: str, fallback_self: str) -> list[str] | None:
        """Return the ``settle`` argument list, or None when settle takes no arguments."""

        if self.signature is SettleSignature.NO_ARGS:
            return None

        known = self._known_bidders.get(contract)
        if known:
            logger.debug("Using %d locally known bidders for %s", len(known), contract)
            return dedupe_addresses(known)

        from_logs = self._bidders_from_logs(contract)
        if from_logs:
            logger.info("Recovered %d bidders for %s from logs", len(from_logs), contract)
            return from_logs

        logger.warning("No bidders found for %s, settling with caller only", contract)
        return [normalise_address(fallback_self, field="fallback_self")]

    def _bidders_from_logs(self, contract: str) -> list[str]:
        try:
            latest = self._reader.block_number()
            logs = self._reader.get_logs(
                {
                    "address": normalise_address(contract),
                    "fromBlock": max(0, latest - self._log_block_window),
                    "toBlock": latest,
                    "topics": [BID_EVENT_TOPIC],
                }
            )
        except AuctionError as exc:
            logger.warning("Bid log scan failed for %s: %s", contract, exc)
            return []

        bidders = []
        for log in logs:
            topics = log.get("topics") or []
            if len(topics) < 2:
                continue
            bidders.append(Web3.to_checksum_address(HexBytes(topics[1])[-20:]))
        return dedupe_addresses(bidders)
