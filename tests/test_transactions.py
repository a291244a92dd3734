from __future__ import annotations

from typing import Any, cast

import pytest
from eth_utils import keccak
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError, TimeExhausted

from fhe_auction.evm.transactions import TransactionDispatcher
from fhe_auction.evm.wallet import ProviderRpcError, Wallet
from fhe_auction.exceptions import TransactionReverted, TransportUnavailable, WalletRejected

TX_HASH = "0x" + "12" * 32
TX = {"from": "0x" + "bb" * 20, "to": "0x" + "aa" * 20, "data": "0x", "gas": 50_000}


class DummyWallet:
    def __init__(self, *, send_error: Exception | None = None, receipt: Any = None) -> None:
        self.send_error = send_error
        self.receipt = receipt
        self.sent: list[dict[str, Any]] = []

    def send_transaction(self, tx: dict[str, Any]) -> str:
        self.sent.append(tx)
        if self.send_error is not None:
            raise self.send_error
        return TX_HASH

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict[str, Any]:
        if isinstance(self.receipt, Exception):
            raise self.receipt
        return self.receipt


def _dispatcher(wallet: DummyWallet, **kwargs: Any) -> TransactionDispatcher:
    return TransactionDispatcher(cast(Wallet, wallet), receipt_timeout=5.0, **kwargs)


def test_send_serialises_receipt() -> None:
    receipt = {"status": 1, "blockNumber": 77, "transactionHash": HexBytes(TX_HASH)}
    wallet = DummyWallet(receipt=receipt)

    result = _dispatcher(wallet).send(TX, action="submit_bid", context={"auction": "a"})

    assert result["tx_hash"] == TX_HASH
    assert result["block_number"] == 77
    assert result["receipt"]["transactionHash"] == TX_HASH
    assert result["context"] == {"auction": "a"}
    assert wallet.sent == [TX]


def test_send_without_waiting() -> None:
    result = _dispatcher(DummyWallet(), wait_for_receipt=False).send(
        TX, action="settle", context={}
    )

    assert result["receipt"] is None
    assert result["block_number"] is None


def test_failed_receipt_raises_reverted() -> None:
    wallet = DummyWallet(receipt={"status": 0, "blockNumber": 9})

    with pytest.raises(TransactionReverted) as excinfo:
        _dispatcher(wallet).send(TX, action="settle", context={})

    assert excinfo.value.tx_hash == TX_HASH


def test_receipt_timeout_is_transport_error() -> None:
    wallet = DummyWallet(receipt=TimeExhausted("too slow"))

    with pytest.raises(TransportUnavailable):
        _dispatcher(wallet).send(TX, action="settle", context={})


def test_rejection_maps_to_wallet_rejected() -> None:
    wallet = DummyWallet(send_error=ProviderRpcError("User rejected the request.", code=4001))

    with pytest.raises(WalletRejected):
        _dispatcher(wallet).send(TX, action="submit_bid", context={})


def test_send_time_revert_carries_decoded_reason() -> None:
    data = "0x" + keccak(text="AlreadySettled()")[:4].hex()
    wallet = DummyWallet(send_error=ContractLogicError("execution reverted", data=data))

    with pytest.raises(TransactionReverted) as excinfo:
        _dispatcher(wallet).send(TX, action="settle", context={})

    assert excinfo.value.reason == "AlreadySettled()"
    assert "AlreadySettled()" in str(excinfo.value)
