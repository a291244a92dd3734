"""Auction session: registry, status, bid submission and settlement against FHEAuction contracts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import requests

from .abi import FHEAuction_abi, encode_call
from .config import AuctionClientConfig
from .constants import KEY_PROOF_ERROR_PATTERN, KEY_PROOF_HINT, MIN_AUCTION_DURATION_SECONDS
from .evm.endpoints import MultiEndpointReader
from .evm.gas import GasEstimator
from .evm.preflight import PreflightGate
from .evm.revert import RevertClassifier
from .evm.settlement import SettlementReconciler
from .evm.status import StatusCache
from .evm.transactions import TransactionDispatcher
from .evm.wallet import Wallet, connect_wallet, ensure_chain
from .exceptions import (
    AuctionEnded,
    AuctionError,
    EncryptionExhausted,
    IncompatibleContract,
    KeyNotReady,
    PreflightFailed,
    SessionError,
    TransactionReverted,
    TransportUnavailable,
    ValidationError,
)
from .fhe.encryption import EncryptionRetryEngine, EncryptionService, validate_uint32
from .fhe.keys import KeyReadinessWaiter
from .fhe.relayer import RelayerKeyProbe
from .registry import AuctionRegistry, KnownBidders
from .storage import DEFAULT_STORE_PATH, KeyValueStore, SqliteKeyValueStore
from .types import (
    AuctionStatus,
    Incompatible,
    ReadCall,
    Response,
    SessionState,
    StatusEntry,
    WalletSession,
)
from .utils import CancelToken, Sleeper, is_auction_address, normalise_address

logger = logging.getLogger(__name__)


@dataclass
class ActiveAuction:
    """The auction currently opened in detail, with the token that stops its loops."""

    address: str
    token: CancelToken = field(default_factory=CancelToken)


class AuctionSession:
    """Explicitly constructed owner of every piece of client state.

    Holds the read client, the registry, the status cache, the submission engines
    and a single active-auction slot. Public operations return :class:`Response`
    objects instead of raising, except for lifecycle calls (``connect``,
    ``start``) which raise like the wallet does.
    """

    def __init__(
        self,
        wallet: Wallet,
        encryption_service: EncryptionService,
        *,
        config: AuctionClientConfig | None = None,
        store: KeyValueStore | None = None,
        reader: MultiEndpointReader | None = None,
        http_session: requests.Session | None = None,
        abi: Sequence[dict[str, Any]] = FHEAuction_abi,
        bytecode: str | None = None,
        sleep: Sleeper | None = None,
        now: Callable[[], float] = time.time,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config = (config or AuctionClientConfig()).with_defaulted_urls()
        self._config = config
        self._wallet = wallet
        self._abi = list(abi)
        self._bytecode = bytecode
        self._now = now
        self._owns_http = http_session is None
        self._http = http_session or requests.Session()

        if store is None:
            store = SqliteKeyValueStore(config.store_path or DEFAULT_STORE_PATH)
        self._store = store
        self._reader = reader or MultiEndpointReader(
            config.chain.rpc_urls, abi=self._abi, request_timeout=config.request_timeout
        )
        self._registry = AuctionRegistry(store, seed=config.seed_auctions)
        self._known_bidders = KnownBidders(store)
        self._status_cache = StatusCache(self._reader, sleep=sleep)
        self._classifier = RevertClassifier(self._abi)

        waiter = None
        if config.encryption.wait_for_key:
            waiter = KeyReadinessWaiter(
                self._key_source(encryption_service),
                poll_step=config.key_wait.poll_step,
                max_attempts=config.key_wait.max_attempts,
                sleep=sleep,
                clock=clock,
            )
        self._encryption = EncryptionRetryEngine(
            encryption_service,
            waiter=waiter,
            max_attempts=config.encryption.max_attempts,
            base_delay=config.encryption.base_delay,
            key_timeout_ms=config.key_wait.timeout_ms,
            sleep=sleep,
        )
        self._preflight_gate = PreflightGate(
            self._classifier,
            max_attempts=config.preflight.max_attempts,
            backoff=config.preflight.backoff,
            sleep=sleep,
        )
        self._gas = GasEstimator(
            margin_divisor=config.gas.margin_divisor,
            fallback_limit=config.gas.fallback_limit,
        )
        self._settlement = SettlementReconciler(
            self._reader,
            self._known_bidders,
            abi=self._abi,
            log_block_window=config.settlement.log_block_window,
        )
        self._dispatcher = TransactionDispatcher(
            wallet,
            self._classifier,
            receipt_timeout=config.receipt_timeout,
        )

        self._state = SessionState.INIT
        self._wallet_session = WalletSession()
        self._active: ActiveAuction | None = None

    def _key_source(self, encryption_service: EncryptionService) -> Any:
        if hasattr(encryption_service, "wait_for_public_key") or hasattr(
            encryption_service, "get_public_key"
        ):
            return encryption_service
        if self._config.relayer_url:
            return RelayerKeyProbe(
                self._http,
                self._config.relayer_url,
                request_timeout=self._config.request_timeout,
            )
        return encryption_service

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> AuctionClientConfig:
        return self._config

    @property
    def wallet_session(self) -> WalletSession:
        return self._wallet_session

    @property
    def active_address(self) -> str | None:
        return self._active.address if self._active else None

    def start(self) -> None:
        """Load the registry and the initial statuses."""

        if self._state is SessionState.DISPOSED:
            raise SessionError("Session has been disposed")
        if self._state is SessionState.READY:
            return
        self._state = SessionState.READY
        addresses = self._registry.addresses()
        logger.info("Auction session ready with %d registered auction(s)", len(addresses))
        self._status_cache.refresh_many(addresses)

    def dispose(self) -> None:
        if self._state is SessionState.DISPOSED:
            return
        if self._active is not None:
            self._active.token.cancel()
        self._active = None
        self._wallet_session = WalletSession()
        self._state = SessionState.DISPOSED
        if self._owns_http:
            self._http.close()
        logger.info("Auction session disposed")

    def __enter__(self) -> AuctionSession:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    def _ensure_ready(self) -> None:
        if self._state is SessionState.DISPOSED:
            raise SessionError("Session has been disposed")
        if self._state is SessionState.INIT:
            self.start()

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------
    def connect(self) -> WalletSession:
        self._ensure_ready()
        self._wallet_session = connect_wallet(self._wallet, self._config.chain)
        return self._wallet_session

    def handle_wallet_change(self, address: str | None, chain_id: int | None) -> WalletSession:
        """Replace the wallet session after an account or chain change event."""

        self._ensure_ready()
        checksum = normalise_address(address, field="account") if address else None
        self._wallet_session = WalletSession(address=checksum, chain_id=chain_id)
        logger.info("Wallet changed to %s on chain %s", checksum, chain_id)
        return self._wallet_session

    def disconnect(self) -> None:
        self._wallet_session = WalletSession()
        logger.info("Wallet disconnected")

    def _require_wallet(self) -> str:
        session = self._wallet_session
        if not session.connected or session.address is None:
            raise SessionError("Connect a wallet first")
        return session.address

    def _guard_chain(self) -> None:
        chain_id = ensure_chain(self._wallet, self._config.chain)
        if self._wallet_session.chain_id != chain_id:
            self._wallet_session = WalletSession(
                address=self._wallet_session.address, chain_id=chain_id
            )

    # ------------------------------------------------------------------
    # Registry and status
    # ------------------------------------------------------------------
    def auctions(self) -> list[str]:
        self._ensure_ready()
        return self._registry.addresses()

    def status_entry(self, address: str) -> StatusEntry:
        return self._status_cache.entry(address)

    def display_title(self, address: str) -> str:
        title = self._config.auction_titles.get(address.lower())
        if title:
            return title
        status = self._status_cache.status(address)
        if status is not None and status.item:
            return status.item
        return f"{address[:6]}...{address[-4:]}"

    def add_auction(self, address: str) -> Response:
        return self._execute("add_auction", self._add_auction, address)

    def _add_auction(self, address: str, notes: list[str]) -> Response:
        if not is_auction_address(address):
            raise ValidationError("Invalid auction address", field="address", value=address)
        checksum = normalise_address(address)
        self._registry.add(checksum)
        status = self._refresh_quietly(checksum)
        return Response(success=True, address=checksum, status=status)

    def refresh_all(self) -> dict[str, StatusEntry]:
        self._ensure_ready()
        return self._status_cache.refresh_many(self._registry.addresses())

    def open_auction(self, address: str) -> Response:
        """Make ``address`` the active auction, stopping loops that belonged to the previous one."""

        return self._execute("open_auction", self._open_auction, address)

    def _open_auction(self, address: str, notes: list[str]) -> Response:
        checksum = normalise_address(address)
        self._switch_active(checksum)
        status = self._status_cache.refresh(checksum)
        if status is None:
            raise IncompatibleContract(
                f"{checksum} is not a compatible auction contract", address=checksum
            )
        return Response(success=True, address=checksum, status=status)

    def _switch_active(self, address: str) -> ActiveAuction:
        if self._active is not None:
            self._active.token.cancel()
        self._active = ActiveAuction(address=address)
        logger.debug("Active auction is now %s", address)
        return self._active

    def refresh_active(self, poll: bool = False) -> AuctionStatus | None:
        self._ensure_ready()
        active = self._require_active()
        if poll:
            return self._status_cache.poll_until_visible(
                active.address,
                interval=self._config.status_poll.interval,
                max_attempts=self._config.status_poll.max_attempts,
                token=active.token,
            )
        return self._status_cache.refresh(active.address)

    def watch_active(
        self,
        on_update: Callable[[StatusEntry], None] | None = None,
        *,
        max_polls: int | None = None,
    ) -> int:
        """Keep the open auction's status fresh until another auction is opened or disposed."""

        self._ensure_ready()
        active = self._require_active()
        return self._status_cache.watch(
            active.address,
            token=active.token,
            interval=self._config.status_poll.watch_interval,
            on_update=on_update,
            max_polls=max_polls,
        )

    def _require_active(self) -> ActiveAuction:
        if self._active is None:
            raise SessionError("Open an auction first")
        return self._active

    def _require_loaded(self, active: ActiveAuction) -> AuctionStatus:
        entry = self._status_cache.entry(active.address)
        if isinstance(entry, Incompatible):
            raise IncompatibleContract(
                f"{active.address} is not a compatible auction contract", address=active.address
            )
        status = self._status_cache.status(active.address)
        if status is None:
            raise SessionError(f"Status of {active.address} is not loaded yet")
        return status

    def _refresh_quietly(self, address: str) -> AuctionStatus | None:
        try:
            return self._status_cache.refresh(address)
        except TransportUnavailable as exc:
            logger.warning("Could not refresh %s: %s", address, exc)
            return self._status_cache.status(address)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create_auction(self, item: str, duration_minutes: float) -> Response:
        return self._execute("create_auction", self._create_auction, item, duration_minutes)

    def _create_auction(self, item: str, duration_minutes: float, notes: list[str]) -> Response:
        item = (item or "").strip()
        if not item:
            raise ValidationError("Item name is required", field="item", value=item)
        if not self._bytecode:
            raise ValidationError("Contract bytecode is not configured", field="bytecode")
        duration = max(MIN_AUCTION_DURATION_SECONDS, int(duration_minutes * 60))

        sender = self._require_wallet()
        self._guard_chain()

        logger.info("Deploying auction %r for %d seconds", item, duration)
        try:
            tx_hash = self._wallet.deploy(self._abi, self._bytecode, [item, duration], sender)
        except Exception as exc:
            raise self._dispatcher.classify_failure(exc, "create_auction") from exc
        receipt = self._wallet.wait_for_receipt(tx_hash, self._config.receipt_timeout)
        if receipt.get("status") == 0 or not receipt.get("contractAddress"):
            raise TransactionReverted("Auction deployment failed", tx_hash=tx_hash)

        address = normalise_address(receipt["contractAddress"])
        logger.info("Auction deployed at %s (tx=%s)", address, tx_hash)
        self._registry.add(address)
        active = self._switch_active(address)
        try:
            status = self._status_cache.poll_until_visible(
                address,
                interval=self._config.status_poll.interval,
                max_attempts=self._config.status_poll.max_attempts,
                token=active.token,
            )
        except TransportUnavailable as exc:
            logger.warning("Auction %s deployed but its status is unreachable: %s", address, exc)
            status = self._status_cache.status(address)
        return Response(success=True, transaction_hash=tx_hash, address=address, status=status)

    def submit_bid(self, value: int) -> Response:
        return self._execute("submit_bid", self._submit_bid, value)

    def _submit_bid(self, value: int, notes: list[str]) -> Response:
        active = self._require_active()
        status = self._require_loaded(active)
        value = validate_uint32(value)
        if status.has_ended(self._now()):
            raise AuctionEnded(
                f"Auction {active.address} has ended", address=active.address, end_time=status.end_time
            )
        sender = self._require_wallet()
        self._guard_chain()

        payload = self._encryption.encrypt(active.address, sender, value, token=active.token)
        tx: dict[str, Any] = {
            "from": sender,
            "to": active.address,
            "data": encode_call(self._abi, "bid", [payload.handle, payload.input_proof]),
        }
        self._preflight(tx, active.token, notes)
        tx["gas"] = self._gas.estimate(self._wallet, tx)

        result = self._dispatcher.send(
            tx,
            action="submit_bid",
            context={"auction": active.address, "encryption_attempts": self._encryption.last_attempts},
        )
        self._known_bidders.add(active.address, sender)
        status = self._refresh_quietly(active.address)
        return Response(
            success=True,
            transaction_hash=result["tx_hash"],
            raw_response=result,
            address=active.address,
            amount=value,
            status=status,
        )

    def settle(self) -> Response:
        return self._execute("settle", self._settle)

    def _settle(self, notes: list[str]) -> Response:
        active = self._require_active()
        status = self._require_loaded(active)
        if not status.has_ended(self._now()):
            raise ValidationError("Auction has not ended yet", field="end_time", value=status.end_time)
        if status.settled:
            raise ValidationError("Auction is already settled", field="settled", value=True)
        sender = self._require_wallet()
        self._guard_chain()

        self._warn_if_not_seller(active.address, sender)
        signature = self._settlement.signature
        bidders = self._settlement.resolve_bidders(active.address, sender)
        args: list[Any] = [] if bidders is None else [bidders]
        logger.info("Settling %s via %s", active.address, signature.value)

        tx: dict[str, Any] = {
            "from": sender,
            "to": active.address,
            "data": encode_call(self._abi, "settle", args),
        }
        self._preflight(tx, active.token, notes)
        tx["gas"] = self._gas.estimate(self._wallet, tx)

        result = self._dispatcher.send(
            tx,
            action="settle",
            context={"auction": active.address, "bidders": list(bidders or [])},
        )
        status = self._refresh_quietly(active.address)
        return Response(
            success=True,
            transaction_hash=result["tx_hash"],
            raw_response=result,
            address=active.address,
            bidders=list(bidders or []),
            status=status,
        )

    def _warn_if_not_seller(self, address: str, sender: str) -> None:
        try:
            seller = self._reader.read(address, ReadCall("seller"))
        except AuctionError as exc:
            logger.warning("Could not read seller of %s: %s", address, exc)
            return
        if str(seller).lower() != sender.lower():
            logger.warning(
                "Caller %s is not the seller %s of %s; settle will likely revert",
                sender,
                seller,
                address,
            )

    def _preflight(self, tx: dict[str, Any], token: CancelToken, notes: list[str]) -> None:
        settings = self._config.preflight
        if not settings.enabled:
            return
        try:
            self._preflight_gate.preflight(self._wallet, tx, token=token)
        except PreflightFailed as exc:
            if settings.strict:
                raise
            note = f"Preflight failed after {exc.attempts} attempts ({exc.reason}); sent anyway"
            logger.warning("%s for %s", note, tx.get("to"))
            notes.append(note)

    # ------------------------------------------------------------------
    # Failure reporting
    # ------------------------------------------------------------------
    def _execute(self, action: str, operation: Callable[..., Response], *args: Any) -> Response:
        notes: list[str] = []
        try:
            self._ensure_ready()
            return operation(*args, notes)
        except AuctionError as exc:
            logger.error("%s failed: %s", action, exc)
            return Response(
                success=False,
                error=self._failure_message(exc, notes),
                error_type=type(exc).__name__,
            )
        except Exception as exc:
            logger.exception(f"Unexpected {action} failure")
            return Response(
                success=False,
                error=self._failure_message(exc, notes),
                error_type=type(exc).__name__,
            )

    def _failure_message(self, exc: BaseException, notes: Sequence[str]) -> str:
        message = str(exc) or type(exc).__name__
        parts = [message]

        reason = getattr(exc, "reason", None) or self._classifier.classify(exc)
        if reason and reason not in message:
            parts.append(f"Reason: {reason}")
        parts.extend(notes)

        key_related = isinstance(exc, KeyNotReady | EncryptionExhausted)
        if key_related or KEY_PROOF_ERROR_PATTERN.search(" ".join(parts[:2])):
            parts.append(KEY_PROOF_HINT)
        return " | ".join(parts)
