"""Bounded-retry construction of encrypted bid inputs."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import requests

from ..constants import (
    DEFAULT_ENCRYPTION_ATTEMPTS,
    DEFAULT_ENCRYPTION_BASE_DELAY,
    DEFAULT_KEY_WAIT_TIMEOUT_MS,
    TRANSIENT_ERROR_PATTERN,
    UINT32_MAX,
)
from ..exceptions import EncryptionExhausted, ValidationError
from ..types import EncryptedPayload
from ..utils import CancelToken, Sleeper, pause
from .keys import KeyReadinessWaiter

logger = logging.getLogger(__name__)


class EncryptedInputBuilder(Protocol):
    def add32(self, value: int) -> Any: ...

    def encrypt(self) -> Mapping[str, Any]: ...


class EncryptionService(Protocol):
    """Off-chain key-and-proof co-processor client.

    ``wait_for_public_key(contract, timeout_ms=...)`` and ``get_public_key(contract)``
    are optional and discovered at runtime.
    """

    def create_encrypted_input(self, contract: str, signer: str) -> EncryptedInputBuilder: ...


def is_transient_error(exc: BaseException) -> bool:
    """Return True for overload, missing-key and gateway/network failures."""

    if isinstance(exc, TimeoutError | ConnectionError):
        return True
    if isinstance(exc, requests.Timeout | requests.ConnectionError):
        return True
    return TRANSIENT_ERROR_PATTERN.search(str(exc)) is not None


def validate_uint32(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Bid must be a non-negative integer", field="value", value=value)
    if value < 0 or value > UINT32_MAX:
        raise ValidationError("Bid must fit in uint32", field="value", value=value)
    return value


class EncryptionRetryEngine:
    """Build an encrypted ``uint32`` payload, retrying only transient failures.

    Every attempt starts from a fresh builder; nothing from a failed attempt is reused.
    """

    def __init__(
        self,
        service: EncryptionService,
        *,
        waiter: KeyReadinessWaiter | None = None,
        max_attempts: int = DEFAULT_ENCRYPTION_ATTEMPTS,
        base_delay: float = DEFAULT_ENCRYPTION_BASE_DELAY,
        key_timeout_ms: int = DEFAULT_KEY_WAIT_TIMEOUT_MS,
        sleep: Sleeper | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValidationError("max_attempts must be positive", field="max_attempts")
        self._service = service
        self._waiter = waiter
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._key_timeout_ms = key_timeout_ms
        self._sleep = sleep
        self.last_attempts = 0

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def encrypt(
        self,
        contract: str,
        signer: str,
        value: int,
        *,
        token: CancelToken | None = None,
    ) -> EncryptedPayload:
        value = validate_uint32(value)
        self.last_attempts = 0

        if self._waiter is not None:
            self._waiter.await_ready(contract, self._key_timeout_ms, token=token)

        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            if token is not None:
                token.raise_if_cancelled()
            self.last_attempts = attempt
            try:
                payload = self._attempt(contract, signer, value)
            except ValidationError:
                raise
            except Exception as exc:
                if not is_transient_error(exc):
                    logger.error("Encryption for %s failed with a fatal error: %s", contract, exc)
                    raise
                last_error = exc
                logger.debug(
                    "Transient encryption failure for %s (attempt %d/%d): %s",
                    contract,
                    attempt,
                    self._max_attempts,
                    exc,
                )
                if attempt < self._max_attempts:
                    pause(self._base_delay * attempt, token, self._sleep)
                continue

            logger.info("Encrypted input ready for %s after %d attempt(s)", contract, attempt)
            return payload

        raise EncryptionExhausted(
            f"Encryption failed after {self._max_attempts} attempts: {last_error}",
            attempts=self._max_attempts,
            details={"error": str(last_error)},
        ) from last_error

    def _attempt(self, contract: str, signer: str, value: int) -> EncryptedPayload:
        builder = self._service.create_encrypted_input(contract, signer)
        builder.add32(value)
        raw = builder.encrypt()
        if not isinstance(raw, Mapping):
            raise ValidationError(
                "Encryption service returned an unexpected payload", field="payload", value=raw
            )
        try:
            return EncryptedPayload.from_dict(raw)
        except (ValueError, TypeError) as exc:
            raise ValidationError(
                "Encryption service returned an incomplete payload",
                field="payload",
                details={"error": str(exc)},
            ) from exc
