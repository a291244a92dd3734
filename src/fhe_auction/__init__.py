"""FHE sealed-bid auction client.

Tracks FHEAuction contracts, submits encrypted bids through an off-chain
encryption service, and settles auctions once bidding has closed.
"""

from .client import ActiveAuction, AuctionSession
from .config import (
    AuctionClientConfig,
    ChainConfig,
    EncryptionConfig,
    GasConfig,
    KeyWaitConfig,
    PreflightConfig,
    SettlementConfig,
    StatusPollConfig,
)
from .exceptions import (
    AllEndpointsUnavailable,
    AuctionEnded,
    AuctionError,
    EncryptionExhausted,
    IncompatibleContract,
    KeyNotReady,
    OperationCancelled,
    PreflightFailed,
    SessionError,
    TransactionReverted,
    TransportUnavailable,
    UnsupportedSettleSignature,
    ValidationError,
    WalletRejected,
    WrongChain,
)
from .registry import AuctionRegistry, KnownBidders
from .storage import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from .types import (
    AuctionStatus,
    EncryptedPayload,
    Incompatible,
    KeyReadiness,
    Loaded,
    ReadCall,
    Response,
    SessionState,
    SettleSignature,
    StatusEntry,
    Unloaded,
    WalletSession,
)
from .utils import CancelToken

__version__ = "0.1.0"

__all__ = [
    # Session
    "AuctionSession",
    "ActiveAuction",
    "CancelToken",
    # Configuration
    "AuctionClientConfig",
    "ChainConfig",
    "KeyWaitConfig",
    "EncryptionConfig",
    "PreflightConfig",
    "GasConfig",
    "StatusPollConfig",
    "SettlementConfig",
    # Storage
    "AuctionRegistry",
    "KnownBidders",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    # Types
    "AuctionStatus",
    "EncryptedPayload",
    "Incompatible",
    "KeyReadiness",
    "Loaded",
    "ReadCall",
    "Response",
    "SessionState",
    "SettleSignature",
    "StatusEntry",
    "Unloaded",
    "WalletSession",
    # Exceptions
    "AuctionError",
    "ValidationError",
    "TransportUnavailable",
    "AllEndpointsUnavailable",
    "IncompatibleContract",
    "KeyNotReady",
    "EncryptionExhausted",
    "PreflightFailed",
    "UnsupportedSettleSignature",
    "WalletRejected",
    "WrongChain",
    "TransactionReverted",
    "AuctionEnded",
    "OperationCancelled",
    "SessionError",
]
