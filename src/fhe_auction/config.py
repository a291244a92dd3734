"""Configuration containers for the FHE auction client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

from .constants import (
    DEFAULT_ENCRYPTION_ATTEMPTS,
    DEFAULT_ENCRYPTION_BASE_DELAY,
    DEFAULT_GAS_FALLBACK,
    DEFAULT_GAS_MARGIN_DIVISOR,
    DEFAULT_KEY_POLL_ATTEMPTS,
    DEFAULT_KEY_POLL_STEP,
    DEFAULT_KEY_WAIT_TIMEOUT_MS,
    DEFAULT_LOG_BLOCK_WINDOW,
    DEFAULT_PREFLIGHT_ATTEMPTS,
    DEFAULT_PREFLIGHT_BACKOFF,
    DEFAULT_RECEIPT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STATUS_POLL_ATTEMPTS,
    DEFAULT_STATUS_POLL_INTERVAL,
    DEFAULT_STATUS_WATCH_INTERVAL,
    RELAYER_URL_TESTNET,
    SEED_AUCTIONS,
    SEPOLIA_CHAIN_ID,
    SEPOLIA_EXPLORER_URL,
    SEPOLIA_RPC_URLS,
)


@dataclass(frozen=True)
class ChainConfig:
    """Target chain, including what a wallet needs to add it."""

    chain_id: int = SEPOLIA_CHAIN_ID
    name: str = "Sepolia"
    rpc_urls: tuple[str, ...] = SEPOLIA_RPC_URLS
    explorer_url: str | None = SEPOLIA_EXPLORER_URL
    currency_name: str = "SepoliaETH"
    currency_symbol: str = "SEP"
    currency_decimals: int = 18

    @property
    def hex_chain_id(self) -> str:
        return hex(self.chain_id)

    def add_chain_params(self) -> dict[str, Any]:
        """Return the ``wallet_addEthereumChain`` parameter object."""

        params: dict[str, Any] = {
            "chainId": self.hex_chain_id,
            "chainName": self.name,
            "nativeCurrency": {
                "name": self.currency_name,
                "symbol": self.currency_symbol,
                "decimals": self.currency_decimals,
            },
            "rpcUrls": list(self.rpc_urls),
        }
        if self.explorer_url:
            params["blockExplorerUrls"] = [self.explorer_url]
        return params


@dataclass(frozen=True)
class KeyWaitConfig:
    """Key-readiness waiting bounds."""

    timeout_ms: int = DEFAULT_KEY_WAIT_TIMEOUT_MS
    poll_step: float = DEFAULT_KEY_POLL_STEP
    max_attempts: int = DEFAULT_KEY_POLL_ATTEMPTS


@dataclass(frozen=True)
class EncryptionConfig:
    """Bounded retry settings for building encrypted inputs."""

    max_attempts: int = DEFAULT_ENCRYPTION_ATTEMPTS
    base_delay: float = DEFAULT_ENCRYPTION_BASE_DELAY
    wait_for_key: bool = True


@dataclass(frozen=True)
class PreflightConfig:
    """Simulation schedule before asking the wallet to sign.

    ``strict`` turns the advisory gate into a blocking one.
    """

    enabled: bool = True
    max_attempts: int = DEFAULT_PREFLIGHT_ATTEMPTS
    backoff: float = DEFAULT_PREFLIGHT_BACKOFF
    strict: bool = False


@dataclass(frozen=True)
class GasConfig:
    margin_divisor: int = DEFAULT_GAS_MARGIN_DIVISOR
    fallback_limit: int = DEFAULT_GAS_FALLBACK


@dataclass(frozen=True)
class StatusPollConfig:
    interval: float = DEFAULT_STATUS_POLL_INTERVAL
    max_attempts: int = DEFAULT_STATUS_POLL_ATTEMPTS
    watch_interval: float = DEFAULT_STATUS_WATCH_INTERVAL


@dataclass(frozen=True)
class SettlementConfig:
    log_block_window: int = DEFAULT_LOG_BLOCK_WINDOW


@dataclass(frozen=True)
class AuctionClientConfig:
    """Aggregated configuration used to construct an auction session."""

    chain: ChainConfig = ChainConfig()
    relayer_url: str | None = None
    seed_auctions: tuple[str, ...] = SEED_AUCTIONS
    store_path: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    key_wait: KeyWaitConfig = KeyWaitConfig()
    encryption: EncryptionConfig = EncryptionConfig()
    preflight: PreflightConfig = PreflightConfig()
    gas: GasConfig = GasConfig()
    status_poll: StatusPollConfig = StatusPollConfig()
    settlement: SettlementConfig = SettlementConfig()
    auction_titles: dict[str, str] = field(default_factory=dict)

    def with_defaulted_urls(self) -> AuctionClientConfig:
        """Return a copy with default RPC and relayer URLs filled in."""

        chain = self.chain
        if not chain.rpc_urls:
            chain = replace(chain, rpc_urls=SEPOLIA_RPC_URLS)

        relayer_url = self.relayer_url
        if relayer_url is None:
            relayer_url = RELAYER_URL_TESTNET

        return replace(self, chain=chain, relayer_url=relayer_url.rstrip("/"))

    @classmethod
    def from_env(cls, prefix: str = "FHE_AUCTION_") -> AuctionClientConfig:
        """Build a configuration from ``FHE_AUCTION_*`` environment variables."""

        def _get(name: str) -> str | None:
            value = os.getenv(prefix + name)
            return value.strip() if value and value.strip() else None

        def _csv(name: str) -> tuple[str, ...] | None:
            raw = _get(name)
            if raw is None:
                return None
            return tuple(part.strip() for part in raw.split(",") if part.strip())

        chain = ChainConfig()
        chain_id = _get("CHAIN_ID")
        if chain_id is not None:
            chain = replace(chain, chain_id=int(chain_id))
        rpc_urls = _csv("RPC_URLS")
        if rpc_urls:
            chain = replace(chain, rpc_urls=rpc_urls)

        preflight = PreflightConfig()
        strict = _get("STRICT_PREFLIGHT")
        if strict is not None:
            preflight = replace(preflight, strict=strict.lower() in {"1", "true", "yes", "on"})

        return cls(
            chain=chain,
            relayer_url=_get("RELAYER_URL"),
            seed_auctions=_csv("SEED_AUCTIONS") or SEED_AUCTIONS,
            store_path=_get("STORE_PATH"),
            preflight=preflight,
        ).with_defaulted_urls()
