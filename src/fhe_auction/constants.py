"""Constants for the FHE auction client."""

import re

SEPOLIA_CHAIN_ID = 11155111

SEPOLIA_RPC_URLS = (
    "https://eth-sepolia.public.blastapi.io",
    "https://ethereum-sepolia.publicnode.com",
    "https://endpoints.omniatech.io/v1/eth/sepolia/public",
)

SEPOLIA_EXPLORER_URL = "https://sepolia.etherscan.io"

# Zama testnet relayer serving key material and input proofs for Sepolia
RELAYER_URL_TESTNET = "https://relayer.testnet.zama.cloud"

# Auctions always listed, whether or not the user ever added them
SEED_AUCTIONS: tuple[str, ...] = ()

REGISTRY_KEY = "fhe_auctions"
KNOWN_BIDDERS_PREFIX = "fhe_auctions:bidders"

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

UINT32_MAX = 2**32 - 1
MIN_AUCTION_DURATION_SECONDS = 60

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_RECEIPT_TIMEOUT = 180.0

DEFAULT_KEY_WAIT_TIMEOUT_MS = 120_000
DEFAULT_KEY_POLL_STEP = 1.5
DEFAULT_KEY_POLL_ATTEMPTS = 8

DEFAULT_ENCRYPTION_ATTEMPTS = 8
DEFAULT_ENCRYPTION_BASE_DELAY = 1.0

DEFAULT_PREFLIGHT_ATTEMPTS = 6
DEFAULT_PREFLIGHT_BACKOFF = 2.0

DEFAULT_GAS_MARGIN_DIVISOR = 5  # +20%
DEFAULT_GAS_FALLBACK = 1_000_000

DEFAULT_STATUS_POLL_INTERVAL = 1.5
DEFAULT_STATUS_POLL_ATTEMPTS = 12
DEFAULT_STATUS_WATCH_INTERVAL = 10.0

# Public endpoints cap eth_getLogs ranges at roughly 10k blocks
DEFAULT_LOG_BLOCK_WINDOW = 9_000

BID_EVENT_SIGNATURE = "BidSubmitted(address)"

TRANSIENT_ERROR_PATTERN = re.compile(
    r"timeout|timed out|fetch|overload|too many requests|\b(?:429|500|502|503|504)\b"
    r"|gateway|public key|network|connection",
    re.IGNORECASE,
)

# Failures worth a standing "wait and retry" hint for the user
KEY_PROOF_ERROR_PATTERN = re.compile(
    r"kms|public key|input|proof|relayer|encrypt", re.IGNORECASE
)

KEY_PROOF_HINT = "Tip: wait 20-60s for the FHE key/proof to become ready, then retry."

# EIP-1193 provider error codes
USER_REJECTED_CODE = 4001
UNKNOWN_CHAIN_CODE = 4902
