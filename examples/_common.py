"""Shared wiring for the example scripts."""

from __future__ import annotations

import importlib
import logging
import os
from typing import Any

from dotenv import load_dotenv

from fhe_auction import AuctionClientConfig, AuctionSession
from fhe_auction.abi import FHEAuction_abi, load_artifact
from fhe_auction.evm import Web3Wallet

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def load_encryption_service() -> Any:
    """Instantiate the encryption service named by ``FHE_ENCRYPTION_SERVICE`` (``module:factory``)."""

    target = os.getenv("FHE_ENCRYPTION_SERVICE")
    if not target or ":" not in target:
        raise ValueError("FHE_ENCRYPTION_SERVICE must be set to 'module:factory'")
    module_name, factory_name = target.split(":", 1)
    factory = getattr(importlib.import_module(module_name), factory_name)
    return factory()


def build_session() -> AuctionSession:
    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ValueError("PRIVATE_KEY not found in environment variables")

    config = AuctionClientConfig.from_env()
    wallet = Web3Wallet(
        os.getenv("WALLET_RPC_URL", config.chain.rpc_urls[0]),
        private_key=private_key,
        request_timeout=config.request_timeout,
    )

    abi, bytecode = FHEAuction_abi, None
    artifact = os.getenv("FHE_AUCTION_ARTIFACT")
    if artifact:
        abi, bytecode = load_artifact(artifact)

    return AuctionSession(
        wallet,
        load_encryption_service(),
        config=config,
        abi=abi,
        bytecode=bytecode,
    )
