"""Best-effort gas limit estimation."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import DEFAULT_GAS_FALLBACK, DEFAULT_GAS_MARGIN_DIVISOR
from .wallet import Wallet

logger = logging.getLogger(__name__)


class GasEstimator:
    """Provider estimate plus a safety margin, or a generous fixed ceiling.

    Never raises: gas estimation must not stop a transaction from being attempted.
    """

    def __init__(
        self,
        *,
        margin_divisor: int = DEFAULT_GAS_MARGIN_DIVISOR,
        fallback_limit: int = DEFAULT_GAS_FALLBACK,
    ) -> None:
        self._margin_divisor = margin_divisor
        self._fallback_limit = fallback_limit

    def estimate(self, wallet: Wallet, tx: dict[str, Any]) -> int:
        try:
            estimate = int(wallet.estimate_gas(tx))
        except Exception as exc:
            logger.warning(
                "Gas estimation failed, using fallback limit %d: %s", self._fallback_limit, exc
            )
            return self._fallback_limit

        if estimate <= 0:
            logger.warning("Gas estimate %d is not positive, using fallback", estimate)
            return self._fallback_limit

        limit = estimate + estimate // self._margin_divisor
        logger.debug("Gas estimate %d -> limit %d", estimate, limit)
        return limit
