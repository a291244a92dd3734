"""Per-address auction status cache and post-deploy polling."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from ..constants import (
    DEFAULT_STATUS_POLL_ATTEMPTS,
    DEFAULT_STATUS_POLL_INTERVAL,
    DEFAULT_STATUS_WATCH_INTERVAL,
)
from ..exceptions import IncompatibleContract, OperationCancelled, TransportUnavailable
from ..types import AuctionStatus, Incompatible, Loaded, ReadCall, StatusEntry, Unloaded
from ..utils import CancelToken, Sleeper, pause, to_hex
from .endpoints import MultiEndpointReader

logger = logging.getLogger(__name__)


class StatusCache:
    """Tri-state cache of auction statuses keyed by lowercase address.

    Entries are replaced, never mutated. Transport failures leave the prior entry in place.
    """

    def __init__(self, reader: MultiEndpointReader, *, sleep: Sleeper | None = None) -> None:
        self._reader = reader
        self._sleep = sleep
        self._entries: dict[str, StatusEntry] = {}

    def entry(self, address: str) -> StatusEntry:
        return self._entries.get(address.lower(), Unloaded())

    def status(self, address: str) -> AuctionStatus | None:
        entry = self.entry(address)
        return entry.status if isinstance(entry, Loaded) else None

    def refresh(self, address: str) -> AuctionStatus | None:
        """Fetch a fresh status; ``None`` means the address is not a compatible auction."""

        key = address.lower()
        try:
            status = self._fetch(address)
        except IncompatibleContract as exc:
            logger.info("Address %s is not a compatible auction: %s", address, exc.message)
            self._entries[key] = Incompatible()
            return None

        self._entries[key] = Loaded(status)
        return status

    def refresh_many(self, addresses: Iterable[str]) -> dict[str, StatusEntry]:
        """Refresh each address independently; transport failures keep prior entries."""

        result: dict[str, StatusEntry] = {}
        for address in addresses:
            try:
                self.refresh(address)
            except TransportUnavailable as exc:
                logger.warning("Status for %s unavailable, keeping cached entry: %s", address, exc)
            result[address] = self.entry(address)
        return result

    def poll_until_visible(
        self,
        address: str,
        *,
        interval: float = DEFAULT_STATUS_POLL_INTERVAL,
        max_attempts: int = DEFAULT_STATUS_POLL_ATTEMPTS,
        token: CancelToken | None = None,
    ) -> AuctionStatus | None:
        """Poll a freshly deployed auction until every read path can see it."""

        last_transport_error: TransportUnavailable | None = None
        for attempt in range(1, max_attempts + 1):
            if token is not None:
                token.raise_if_cancelled()
            try:
                status = self.refresh(address)
            except TransportUnavailable as exc:
                last_transport_error = exc
                status = None
            else:
                last_transport_error = None

            if status is not None:
                logger.debug("Status for %s visible after %d attempt(s)", address, attempt)
                return status

            logger.debug(
                "Status for %s not visible yet (attempt %d/%d)", address, attempt, max_attempts
            )
            if attempt < max_attempts:
                pause(interval, token, self._sleep)

        if last_transport_error is not None:
            raise last_transport_error
        logger.warning("Status for %s still not visible after %d attempts", address, max_attempts)
        return None

    def watch(
        self,
        address: str,
        *,
        token: CancelToken,
        interval: float = DEFAULT_STATUS_WATCH_INTERVAL,
        on_update: Callable[[StatusEntry], None] | None = None,
        max_polls: int | None = None,
    ) -> int:
        """Refresh ``address`` every ``interval`` seconds until ``token`` is cancelled.

        Transport failures keep the cached entry and the loop keeps going. Returns the
        number of refreshes performed.
        """

        polls = 0
        try:
            while max_polls is None or polls < max_polls:
                token.raise_if_cancelled()
                try:
                    self.refresh(address)
                except TransportUnavailable as exc:
                    logger.warning(
                        "Status for %s unavailable, keeping cached entry: %s", address, exc
                    )
                polls += 1
                if on_update is not None:
                    on_update(self.entry(address))
                if max_polls is None or polls < max_polls:
                    pause(interval, token, self._sleep)
        except OperationCancelled:
            logger.debug("Stopped watching %s after %d refresh(es)", address, polls)
        return polls

    def _fetch(self, address: str) -> AuctionStatus:
        raw = self._reader.read(address, ReadCall("getStatus"))
        item, end_time, settled = _unpack_status(address, raw)

        if not settled:
            return AuctionStatus(item=item, end_time=end_time, settled=False)

        winning_bid = self._reader.read(address, ReadCall("winningBidEnc"))
        winning_index = self._reader.read(address, ReadCall("winningIndexEnc"))
        return AuctionStatus(
            item=item,
            end_time=end_time,
            settled=True,
            winning_bid_enc=_handle(address, winning_bid, "winningBidEnc"),
            winning_index_enc=_handle(address, winning_index, "winningIndexEnc"),
        )


def _unpack_status(address: str, raw: Any) -> tuple[str, int, bool]:
    if not isinstance(raw, Sequence) or isinstance(raw, str | bytes) or len(raw) != 3:
        raise IncompatibleContract(
            "getStatus returned an unexpected shape", address=address, details={"value": raw}
        )
    item, end_time, settled = raw
    if not isinstance(item, str) or not isinstance(settled, bool) or isinstance(end_time, bool):
        raise IncompatibleContract(
            "getStatus returned unexpected field types", address=address, details={"value": raw}
        )
    try:
        end_time_int = int(end_time)
    except (TypeError, ValueError) as exc:
        raise IncompatibleContract(
            "getStatus returned a non-integer end time", address=address, details={"value": raw}
        ) from exc
    return item, end_time_int, settled


def _handle(address: str, value: Any, field: str) -> str:
    if isinstance(value, bytes | bytearray | str) and value:
        return to_hex(value)
    raise IncompatibleContract(
        f"{field} returned an unexpected value", address=address, details={"value": value}
    )
