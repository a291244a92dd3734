"""Transaction dispatch helpers for the auction client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests
from web3.exceptions import ContractLogicError, TimeExhausted

from ..exceptions import AuctionError, TransactionReverted, TransportUnavailable, WalletRejected
from ..utils import serialise_receipt
from .revert import RevertClassifier
from .wallet import Wallet, is_user_rejection

logger = logging.getLogger(__name__)


class TransactionDispatcher:
    """Encapsulate transaction submission and receipt handling."""

    def __init__(
        self,
        wallet: Wallet,
        classifier: RevertClassifier | None = None,
        *,
        wait_for_receipt: bool = True,
        receipt_timeout: float,
    ) -> None:
        self._wallet = wallet
        self._classifier = classifier or RevertClassifier()
        self._wait_for_receipt = wait_for_receipt
        self._receipt_timeout = receipt_timeout

    def send(
        self,
        tx: Mapping[str, Any],
        *,
        action: str,
        context: Mapping[str, Any],
    ) -> dict[str, Any]:
        logger.info("Dispatching %s to %s", action, tx.get("to"))

        try:
            tx_hex = self._wallet.send_transaction(dict(tx))
        except Exception as exc:
            raise self.classify_failure(exc, action) from exc

        logger.info("Transaction sent for action=%s hash=%s", action, tx_hex)

        if not self._wait_for_receipt:
            return {
                "tx_hash": tx_hex,
                "action": action,
                "context": dict(context),
                "receipt": None,
                "block_number": None,
            }

        try:
            receipt = self._wallet.wait_for_receipt(tx_hex, self._receipt_timeout)
        except TimeExhausted as exc:
            raise TransportUnavailable(
                f"Timed out waiting for {action} receipt",
                details={"tx_hash": tx_hex, "timeout": self._receipt_timeout},
            ) from exc

        block_number = receipt.get("blockNumber") if receipt else None
        if receipt and receipt.get("status") == 0:
            logger.warning("Transaction reverted for action=%s hash=%s", action, tx_hex)
            raise TransactionReverted(
                f"{action} reverted on-chain",
                tx_hash=tx_hex,
                details={"block_number": block_number},
            )

        logger.info(
            "Transaction confirmed for action=%s hash=%s block=%s", action, tx_hex, block_number
        )
        return {
            "tx_hash": tx_hex,
            "action": action,
            "context": dict(context),
            "receipt": serialise_receipt(receipt),
            "block_number": block_number,
        }

    def classify_failure(self, exc: BaseException, action: str) -> AuctionError:
        """Translate a wallet/provider failure into the client's error vocabulary."""

        if isinstance(exc, AuctionError):
            return exc
        if is_user_rejection(exc):
            return WalletRejected(f"{action} rejected in wallet", details={"error": str(exc)})
        reason = self._classifier.classify(exc)
        if reason is None and isinstance(exc, requests.RequestException | ConnectionError):
            return TransportUnavailable(
                f"Failed to submit {action}", details={"error": str(exc)}
            )
        if reason is None and isinstance(exc, ContractLogicError) and exc.message:
            reason = exc.message
        return TransactionReverted(
            f"{action} failed: {reason or exc}",
            reason=reason,
            details={"error": str(exc)},
        )
