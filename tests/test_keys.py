from __future__ import annotations

from typing import Any

import pytest

from fhe_auction.exceptions import KeyNotReady, OperationCancelled
from fhe_auction.fhe.keys import KeyReadinessWaiter
from fhe_auction.types import KeyReadiness
from fhe_auction.utils import CancelToken

CONTRACT = "0x00000000000000000000000000000000000000aa"


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def monotonic(self) -> float:
        return self.now


class NativeWaitService:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, int]] = []

    def wait_for_public_key(self, contract: str, timeout_ms: int) -> None:
        self.calls.append((contract, timeout_ms))
        if self.error is not None:
            raise self.error


class PollingService:
    def __init__(self, ready_after: int) -> None:
        self.ready_after = ready_after
        self.calls = 0

    def get_public_key(self, contract: str) -> dict[str, Any]:
        self.calls += 1
        if self.calls <= self.ready_after:
            raise RuntimeError("public key not available")
        return {"urls": ["https://keys/1"]}


def test_native_wait_is_preferred() -> None:
    service = NativeWaitService()
    waiter = KeyReadinessWaiter(service)

    waiter.await_ready(CONTRACT, 5_000)

    assert service.calls == [(CONTRACT, 5_000)]
    assert waiter.state(CONTRACT) is KeyReadiness.READY


def test_native_wait_failure_becomes_key_not_ready() -> None:
    waiter = KeyReadinessWaiter(NativeWaitService(error=TimeoutError("kms slow")))

    with pytest.raises(KeyNotReady) as excinfo:
        waiter.await_ready(CONTRACT, 1_000)

    assert excinfo.value.timeout_ms == 1_000
    assert waiter.state(CONTRACT.upper().replace("0X", "0x")) is KeyReadiness.TIMED_OUT


def test_polls_with_growing_backoff_until_ready() -> None:
    clock = FakeClock()
    service = PollingService(ready_after=2)
    waiter = KeyReadinessWaiter(
        service, poll_step=1.5, max_attempts=8, sleep=clock.sleep, clock=clock.monotonic
    )

    waiter.await_ready(CONTRACT, 60_000)

    assert service.calls == 3
    assert clock.sleeps == [1.5, 3.0]
    assert waiter.state(CONTRACT) is KeyReadiness.READY


def test_poll_exhaustion_raises_key_not_ready() -> None:
    clock = FakeClock()
    service = PollingService(ready_after=100)
    waiter = KeyReadinessWaiter(
        service, poll_step=1.0, max_attempts=3, sleep=clock.sleep, clock=clock.monotonic
    )

    with pytest.raises(KeyNotReady):
        waiter.await_ready(CONTRACT, 60_000)

    assert service.calls == 3
    assert waiter.state(CONTRACT) is KeyReadiness.TIMED_OUT


def test_poll_respects_overall_timeout() -> None:
    clock = FakeClock()
    service = PollingService(ready_after=100)
    waiter = KeyReadinessWaiter(
        service, poll_step=2.0, max_attempts=50, sleep=clock.sleep, clock=clock.monotonic
    )

    with pytest.raises(KeyNotReady):
        waiter.await_ready(CONTRACT, 5_000)

    assert sum(clock.sleeps) == pytest.approx(5.0)


def test_service_without_probe_is_assumed_ready() -> None:
    waiter = KeyReadinessWaiter(object())

    waiter.await_ready(CONTRACT)

    assert waiter.state(CONTRACT) is KeyReadiness.READY


def test_cancel_during_poll() -> None:
    token = CancelToken()
    clock = FakeClock()

    def sleep(seconds: float) -> None:
        token.cancel()

    waiter = KeyReadinessWaiter(
        PollingService(ready_after=100), sleep=sleep, clock=clock.monotonic
    )

    with pytest.raises(OperationCancelled):
        waiter.await_ready(CONTRACT, 60_000, token=token)
    assert waiter.state(CONTRACT) is KeyReadiness.UNKNOWN


def test_unknown_before_first_wait() -> None:
    assert KeyReadinessWaiter(object()).state(CONTRACT) is KeyReadiness.UNKNOWN
