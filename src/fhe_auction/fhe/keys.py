"""Wait for the encryption service to provision per-contract key material."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from ..constants import DEFAULT_KEY_POLL_ATTEMPTS, DEFAULT_KEY_POLL_STEP, DEFAULT_KEY_WAIT_TIMEOUT_MS
from ..exceptions import KeyNotReady, OperationCancelled
from ..types import KeyReadiness
from ..utils import CancelToken, Sleeper, pause

logger = logging.getLogger(__name__)


class KeyReadinessWaiter:
    """Turn "encryption service not warm yet" into a bounded wait.

    Readiness is scoped per contract and re-checked on every call.
    """

    def __init__(
        self,
        service: Any,
        *,
        poll_step: float = DEFAULT_KEY_POLL_STEP,
        max_attempts: int = DEFAULT_KEY_POLL_ATTEMPTS,
        sleep: Sleeper | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._service = service
        self._poll_step = poll_step
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._clock = clock
        self._states: dict[str, KeyReadiness] = {}

    def state(self, contract: str) -> KeyReadiness:
        return self._states.get(contract.lower(), KeyReadiness.UNKNOWN)

    def await_ready(
        self,
        contract: str,
        timeout_ms: int = DEFAULT_KEY_WAIT_TIMEOUT_MS,
        *,
        token: CancelToken | None = None,
    ) -> None:
        key = contract.lower()
        self._states[key] = KeyReadiness.POLLING

        native_wait = getattr(self._service, "wait_for_public_key", None)
        if callable(native_wait):
            self._await_native(native_wait, contract, timeout_ms)
            return

        get_public_key = getattr(self._service, "get_public_key", None)
        if not callable(get_public_key):
            logger.debug("Encryption service exposes no key probe; assuming %s is ready", contract)
            self._states[key] = KeyReadiness.READY
            return

        self._poll(get_public_key, contract, timeout_ms, token)

    def _await_native(self, native_wait: Callable[..., Any], contract: str, timeout_ms: int) -> None:
        key = contract.lower()
        logger.debug("Waiting for public key of %s (native, timeout=%dms)", contract, timeout_ms)
        try:
            native_wait(contract, timeout_ms=timeout_ms)
        except Exception as exc:
            self._states[key] = KeyReadiness.TIMED_OUT
            raise KeyNotReady(
                f"Public key for {contract} not ready within {timeout_ms}ms",
                contract=contract,
                timeout_ms=timeout_ms,
                details={"error": str(exc)},
            ) from exc
        self._states[key] = KeyReadiness.READY
        logger.info("Public key ready for %s", contract)

    def _poll(
        self,
        get_public_key: Callable[[str], Any],
        contract: str,
        timeout_ms: int,
        token: CancelToken | None,
    ) -> None:
        key = contract.lower()
        deadline = self._clock() + timeout_ms / 1000.0
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                get_public_key(contract)
            except Exception as exc:
                last_error = exc
                logger.debug(
                    "Public key for %s not ready (attempt %d/%d): %s",
                    contract,
                    attempt,
                    self._max_attempts,
                    exc,
                )
            else:
                self._states[key] = KeyReadiness.READY
                logger.info("Public key ready for %s after %d attempt(s)", contract, attempt)
                return

            remaining = deadline - self._clock()
            if attempt == self._max_attempts or remaining <= 0:
                break
            try:
                pause(min(self._poll_step * attempt, remaining), token, self._sleep)
            except OperationCancelled:
                self._states[key] = KeyReadiness.UNKNOWN
                raise

        self._states[key] = KeyReadiness.TIMED_OUT
        raise KeyNotReady(
            f"Public key for {contract} not ready after {attempt} attempt(s)",
            contract=contract,
            timeout_ms=timeout_ms,
            details={"error": str(last_error) if last_error else None},
        )
