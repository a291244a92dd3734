from __future__ import annotations

from typing import Any, cast

import pytest
import requests

from fhe_auction.exceptions import KeyNotReady, TransportUnavailable
from fhe_auction.fhe.keys import KeyReadinessWaiter
from fhe_auction.fhe.relayer import RelayerKeyProbe
from fhe_auction.types import KeyReadiness

CONTRACT = "0x00000000000000000000000000000000000000aa"

KEY_PAYLOAD = {
    "response": {
        "fhe_key_info": [
            {
                "fhe_public_key": {
                    "data_id": "fhe-public-key",
                    "urls": ["https://keys.example/public"],
                }
            }
        ]
    }
}


class DummyResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=cast(Any, self))

    def json(self) -> Any:
        return self._payload


class DummySession:
    def __init__(self, responses: list[DummyResponse | Exception]) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, float]] = []

    def get(self, url: str, timeout: float) -> DummyResponse:
        self.calls.append((url, timeout))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _probe(session: DummySession) -> RelayerKeyProbe:
    return RelayerKeyProbe(
        cast(requests.Session, session), "https://relayer.example/", request_timeout=3.0
    )


def test_returns_public_key_descriptor() -> None:
    session = DummySession([DummyResponse(KEY_PAYLOAD)])

    key = _probe(session).get_public_key(CONTRACT)

    assert key["urls"] == ["https://keys.example/public"]
    assert session.calls == [("https://relayer.example/v1/keyurl", 3.0)]


def test_missing_key_raises_key_not_ready() -> None:
    session = DummySession([DummyResponse({"response": {"fhe_key_info": []}})])

    with pytest.raises(KeyNotReady):
        _probe(session).get_public_key(CONTRACT)


def test_http_error_is_transport_unavailable() -> None:
    session = DummySession([DummyResponse({}, status_code=503)])

    with pytest.raises(TransportUnavailable) as excinfo:
        _probe(session).get_public_key(CONTRACT)

    assert excinfo.value.details["status"] == 503


def test_connection_error_is_transport_unavailable() -> None:
    session = DummySession([requests.ConnectionError("reset by peer")])

    with pytest.raises(TransportUnavailable):
        _probe(session).get_public_key(CONTRACT)


def test_probe_drives_key_waiter() -> None:
    session = DummySession(
        [DummyResponse({"response": {"fhe_key_info": []}}), DummyResponse(KEY_PAYLOAD)]
    )
    sleeps: list[float] = []
    waiter = KeyReadinessWaiter(_probe(session), poll_step=1.0, sleep=sleeps.append)

    waiter.await_ready(CONTRACT, 30_000)

    assert waiter.state(CONTRACT) is KeyReadiness.READY
    assert sleeps == [1.0]
