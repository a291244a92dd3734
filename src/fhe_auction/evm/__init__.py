"""Chain-facing components: reads, status, wallet, simulation and settlement."""

from .endpoints import MultiEndpointReader
from .gas import GasEstimator
from .preflight import PreflightGate
from .revert import RevertClassifier, extract_revert_data
from .settlement import SettlementReconciler, detect_signature
from .status import StatusCache
from .transactions import TransactionDispatcher
from .wallet import ProviderRpcError, Wallet, Web3Wallet, connect_wallet, ensure_chain

__all__ = [
    "MultiEndpointReader",
    "StatusCache",
    "GasEstimator",
    "PreflightGate",
    "RevertClassifier",
    "extract_revert_data",
    "SettlementReconciler",
    "detect_signature",
    "TransactionDispatcher",
    "ProviderRpcError",
    "Wallet",
    "Web3Wallet",
    "connect_wallet",
    "ensure_chain",
]
