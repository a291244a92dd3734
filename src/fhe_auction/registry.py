"""Auction registry and per-auction known-bidder sets."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .constants import KNOWN_BIDDERS_PREFIX, REGISTRY_KEY
from .storage import KeyValueStore
from .utils import dedupe_addresses, is_auction_address

logger = logging.getLogger(__name__)


class AuctionRegistry:
    """Deduplicated union of seed auctions and auctions persisted at runtime."""

    def __init__(
        self,
        store: KeyValueStore,
        seed: Iterable[str] = (),
        *,
        key: str = REGISTRY_KEY,
    ) -> None:
        self._store = store
        self._seed = tuple(seed)
        self._key = key

    @staticmethod
    def merge(seed: Iterable[str], persisted: Iterable[str]) -> list[str]:
        """Union of persisted and seed addresses; malformed entries are dropped."""
        return dedupe_addresses([*persisted, *seed])

    def addresses(self) -> list[str]:
        return self.merge(self._seed, self._store.get_list(self._key))

    def add(self, address: str) -> list[str]:
        """Validate and persist ``address``; malformed input leaves the set unchanged."""
        current = self.addresses()
        if not is_auction_address(address):
            logger.warning("Ignoring malformed auction address %r", address)
            return current

        persisted = dedupe_addresses(self._store.get_list(self._key))
        if any(existing.lower() == address.strip().lower() for existing in persisted):
            return current

        # Newest first, as in the list view
        updated = dedupe_addresses([address, *persisted])
        self._store.set_list(self._key, updated)
        logger.info("Registered auction %s", updated[0])
        return self.merge(self._seed, updated)

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        return any(existing.lower() == address.strip().lower() for existing in self.addresses())


class KnownBidders:
    """Append-only record of addresses that bid on an auction from this client."""

    def __init__(self, store: KeyValueStore, *, prefix: str = KNOWN_BIDDERS_PREFIX) -> None:
        self._store = store
        self._prefix = prefix

    def _key(self, auction: str) -> str:
        return f"{self._prefix}:{auction.strip().lower()}"

    def get(self, auction: str) -> list[str]:
        return dedupe_addresses(self._store.get_list(self._key(auction)))

    def add(self, auction: str, bidder: str) -> list[str]:
        current = self.get(auction)
        if not is_auction_address(bidder):
            logger.warning("Ignoring malformed bidder address %r for %s", bidder, auction)
            return current
        updated = dedupe_addresses([*current, bidder])
        if len(updated) != len(current):
            self._store.set_list(self._key(auction), updated)
        return updated
