"""Tests for utility functions."""

import pytest
from hexbytes import HexBytes

from fhe_auction.exceptions import OperationCancelled, ValidationError
from fhe_auction.utils import (
    CancelToken,
    dedupe_addresses,
    error_code,
    is_auction_address,
    normalise_address,
    pause,
    serialise_receipt,
    to_hex,
)

ADDRESS = "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class TestAddresses:
    """Test address helpers."""

    def test_is_auction_address(self):
        assert is_auction_address(ADDRESS)
        assert is_auction_address(CHECKSUMMED)
        assert not is_auction_address("0x1234")
        assert not is_auction_address(ADDRESS[2:])
        assert not is_auction_address(None)

    def test_normalise_address_checksums(self):
        assert normalise_address(ADDRESS) == CHECKSUMMED
        assert normalise_address(f"  {ADDRESS.upper().replace('0X', '0x')} ") == CHECKSUMMED

    def test_normalise_address_rejects_garbage(self):
        with pytest.raises(ValidationError) as excinfo:
            normalise_address("0xzz", field="auction")
        assert excinfo.value.field == "auction"

    def test_dedupe_keeps_first_occurrence(self):
        other = "0x" + "11" * 20
        assert dedupe_addresses([ADDRESS, other, CHECKSUMMED, "junk"]) == [
            CHECKSUMMED,
            normalise_address(other),
        ]


class TestConversions:
    """Test hex and receipt conversion."""

    def test_to_hex(self):
        assert to_hex(b"\x01\x02") == "0x0102"
        assert to_hex("abcd") == "0xabcd"
        assert to_hex("0xabcd") == "0xabcd"

    def test_serialise_receipt_nested(self):
        receipt = {
            "transactionHash": HexBytes("0x12"),
            "logs": [{"topics": [HexBytes("0x34")]}],
            "status": 1,
        }
        assert serialise_receipt(receipt) == {
            "transactionHash": "0x12",
            "logs": [{"topics": ["0x34"]}],
            "status": 1,
        }

    def test_serialise_receipt_none(self):
        assert serialise_receipt(None) is None


class TestCancellation:
    """Test cancel token and pause."""

    def test_pause_uses_injected_sleep(self):
        slept = []
        pause(2.5, sleep=slept.append)
        assert slept == [2.5]

    def test_pause_raises_if_already_cancelled(self):
        token = CancelToken()
        token.cancel()
        slept = []
        with pytest.raises(OperationCancelled):
            pause(1.0, token, slept.append)
        assert slept == []

    def test_token_wait_returns_when_not_cancelled(self):
        CancelToken().wait(0)

    def test_token_wait_raises_when_cancelled(self):
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            token.wait(10)


class TestErrorCode:
    """Test JSON-RPC error code extraction."""

    def test_code_attribute(self):
        error = RuntimeError("boom")
        error.code = 4001  # type: ignore[attr-defined]
        assert error_code(error) == 4001

    def test_rpc_response(self):
        error = RuntimeError("boom")
        error.rpc_response = {"error": {"code": 4902}}  # type: ignore[attr-defined]
        assert error_code(error) == 4902

    def test_dict_argument(self):
        assert error_code(ValueError({"code": -32000})) == -32000

    def test_missing(self):
        assert error_code(RuntimeError("boom")) is None
