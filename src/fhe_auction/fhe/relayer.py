"""HTTP probe for the relayer's published FHE key material."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests

from ..exceptions import KeyNotReady, TransportUnavailable

logger = logging.getLogger(__name__)


class RelayerKeyProbe:
    """Check whether the relayer advertises a public key; usable as a waiter key source."""

    def __init__(self, session: requests.Session, base_url: str, *, request_timeout: float) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout

    @property
    def key_url(self) -> str:
        return f"{self._base_url}/v1/keyurl"

    def get_public_key(self, contract: str) -> dict[str, Any]:
        """Return the advertised key descriptor or raise if none is published yet."""

        logger.debug("Probing relayer key material for %s at %s", contract, self.key_url)
        try:
            response = self._session.get(self.key_url, timeout=self._request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise TransportUnavailable(
                f"Failed to reach relayer at {self.key_url}",
                endpoint=self.key_url,
                details={
                    "error": str(exc),
                    "status": getattr(exc.response, "status_code", None),
                },
            ) from exc

        payload = response.json()
        key_info = _extract_public_key(payload)
        if key_info is None:
            raise KeyNotReady(
                "Relayer has not published a public key yet",
                contract=contract,
                details={"url": self.key_url},
            )
        return key_info


def _extract_public_key(payload: Any) -> dict[str, Any] | None:
    if not isinstance(payload, Mapping):
        return None
    body = payload.get("response", payload)
    if not isinstance(body, Mapping):
        return None
    entries = body.get("fhe_key_info") or body.get("fheKeyInfo")
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        public_key = entry.get("fhe_public_key") or entry.get("fhePublicKey")
        if isinstance(public_key, Mapping) and public_key.get("urls"):
            return dict(public_key)
    return None
