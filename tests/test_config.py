from __future__ import annotations

import json
from pathlib import Path

import pytest

from fhe_auction.abi import FHEAuction_abi, encode_call, load_artifact
from fhe_auction.config import AuctionClientConfig, ChainConfig
from fhe_auction.constants import RELAYER_URL_TESTNET, SEPOLIA_CHAIN_ID, SEPOLIA_RPC_URLS


def test_defaults_target_sepolia() -> None:
    config = AuctionClientConfig().with_defaulted_urls()

    assert config.chain.chain_id == SEPOLIA_CHAIN_ID
    assert config.chain.rpc_urls == SEPOLIA_RPC_URLS
    assert config.relayer_url == RELAYER_URL_TESTNET


def test_with_defaulted_urls_fills_empty_rpc_list() -> None:
    config = AuctionClientConfig(chain=ChainConfig(rpc_urls=()), relayer_url="https://r/")

    filled = config.with_defaulted_urls()

    assert filled.chain.rpc_urls == SEPOLIA_RPC_URLS
    assert filled.relayer_url == "https://r"


def test_add_chain_params() -> None:
    params = ChainConfig().add_chain_params()

    assert params["chainId"] == "0xaa36a7"
    assert params["nativeCurrency"]["decimals"] == 18
    assert params["blockExplorerUrls"]


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FHE_AUCTION_CHAIN_ID", "31337")
    monkeypatch.setenv("FHE_AUCTION_RPC_URLS", "http://a, http://b ,")
    monkeypatch.setenv("FHE_AUCTION_STRICT_PREFLIGHT", "yes")
    monkeypatch.setenv("FHE_AUCTION_SEED_AUCTIONS", "0x" + "11" * 20)
    monkeypatch.setenv("FHE_AUCTION_STORE_PATH", "/tmp/auctions.sqlite")
    monkeypatch.delenv("FHE_AUCTION_RELAYER_URL", raising=False)

    config = AuctionClientConfig.from_env()

    assert config.chain.chain_id == 31337
    assert config.chain.rpc_urls == ("http://a", "http://b")
    assert config.preflight.strict is True
    assert config.seed_auctions == ("0x" + "11" * 20,)
    assert config.store_path == "/tmp/auctions.sqlite"
    assert config.relayer_url == RELAYER_URL_TESTNET


def test_load_artifact_normalises_bytecode(tmp_path: Path) -> None:
    artifact = tmp_path / "FHEAuction.json"
    artifact.write_text(
        json.dumps({"abi": FHEAuction_abi, "bytecode": {"object": "6080"}}), encoding="utf-8"
    )

    abi, bytecode = load_artifact(artifact)

    assert abi == FHEAuction_abi
    assert bytecode == "0x6080"


def test_encode_call_rejects_unknown_function() -> None:
    with pytest.raises(ValueError):
        encode_call(FHEAuction_abi, "withdraw", [])
