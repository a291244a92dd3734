"""Simulate write calls before asking the wallet to sign them."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import DEFAULT_PREFLIGHT_ATTEMPTS, DEFAULT_PREFLIGHT_BACKOFF
from ..exceptions import PreflightFailed
from ..utils import CancelToken, Sleeper, pause
from .revert import RevertClassifier
from .wallet import Wallet

logger = logging.getLogger(__name__)


class PreflightGate:
    """Retry an ``eth_call`` simulation on a fixed schedule.

    Absorbs the window where the relayer has issued a proof that the on-chain
    verifier does not accept yet. Exhaustion raises :class:`PreflightFailed`;
    whether to send anyway is the caller's decision.
    """

    def __init__(
        self,
        classifier: RevertClassifier | None = None,
        *,
        max_attempts: int = DEFAULT_PREFLIGHT_ATTEMPTS,
        backoff: float = DEFAULT_PREFLIGHT_BACKOFF,
        sleep: Sleeper | None = None,
    ) -> None:
        self._classifier = classifier or RevertClassifier()
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._sleep = sleep

    def preflight(
        self,
        wallet: Wallet,
        tx: dict[str, Any],
        *,
        max_attempts: int | None = None,
        backoff: float | None = None,
        token: CancelToken | None = None,
    ) -> int:
        """Return the attempt number on which the simulation passed."""

        attempts = max_attempts if max_attempts is not None else self._max_attempts
        delay = backoff if backoff is not None else self._backoff
        call = {key: tx[key] for key in ("from", "to", "data", "value") if key in tx}

        last_error: Exception | None = None
        reason: str | None = None
        for attempt in range(1, attempts + 1):
            if token is not None:
                token.raise_if_cancelled()
            try:
                wallet.call(call)
            except Exception as exc:
                last_error = exc
                reason = self._classifier.classify(exc) or str(exc)
                logger.debug(
                    "Preflight for %s failed (attempt %d/%d): %s",
                    call.get("to"),
                    attempt,
                    attempts,
                    reason,
                )
                if attempt < attempts:
                    pause(delay, token, self._sleep)
                continue
            if attempt > 1:
                logger.info("Preflight for %s passed on attempt %d", call.get("to"), attempt)
            return attempt

        raise PreflightFailed(
            f"Simulation kept failing after {attempts} attempts: {reason}",
            attempts=attempts,
            reason=reason,
            details={"error": str(last_error)},
        ) from last_error
