from __future__ import annotations

from typing import Any, cast

import pytest

from fhe_auction.evm.endpoints import MultiEndpointReader
from fhe_auction.evm.status import StatusCache
from fhe_auction.exceptions import (
    AllEndpointsUnavailable,
    IncompatibleContract,
    OperationCancelled,
)
from fhe_auction.types import Incompatible, Loaded, ReadCall, Unloaded
from fhe_auction.utils import CancelToken

AUCTION = "0x00000000000000000000000000000000000000aa"
BID_HANDLE = b"\x01" * 32
INDEX_HANDLE = b"\x02" * 32


class FakeReader:
    """Answers reads from a table; callables run per call so tests can script failures."""

    def __init__(self, answers: dict[str, Any]) -> None:
        self.answers = answers
        self.calls: list[str] = []

    def read(self, address: str, call: ReadCall) -> Any:
        self.calls.append(call.function)
        answer = self.answers[call.function]
        if callable(answer):
            answer = answer()
        if isinstance(answer, BaseException):
            raise answer
        return answer


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _cache(reader: FakeReader, clock: FakeClock | None = None) -> StatusCache:
    return StatusCache(cast(MultiEndpointReader, reader), sleep=clock.sleep if clock else None)


def test_unsettled_status_has_no_winner_handles() -> None:
    reader = FakeReader({"getStatus": ["Lamp", 1_700_000_000, False]})
    cache = _cache(reader)

    status = cache.refresh(AUCTION)

    assert status is not None
    assert (status.item, status.end_time, status.settled) == ("Lamp", 1_700_000_000, False)
    assert status.winning_bid_enc is None
    assert status.winning_index_enc is None
    assert reader.calls == ["getStatus"]


def test_settled_status_carries_both_handles() -> None:
    reader = FakeReader(
        {
            "getStatus": ("Lamp", 1_700_000_000, True),
            "winningBidEnc": BID_HANDLE,
            "winningIndexEnc": INDEX_HANDLE,
        }
    )
    cache = _cache(reader)

    status = cache.refresh(AUCTION)

    assert status is not None
    assert status.settled is True
    assert status.winning_bid_enc == "0x" + "01" * 32
    assert status.winning_index_enc == "0x" + "02" * 32
    assert isinstance(cache.entry(AUCTION.upper().replace("0X", "0x")), Loaded)


@pytest.mark.parametrize(
    "raw",
    [
        ["Lamp", 1],
        "not a tuple",
        [1, 2, False],
        ["Lamp", 1, "yes"],
    ],
)
def test_shape_mismatch_marks_incompatible(raw: Any) -> None:
    cache = _cache(FakeReader({"getStatus": raw}))

    assert cache.refresh(AUCTION) is None
    assert isinstance(cache.entry(AUCTION), Incompatible)


def test_contract_error_marks_incompatible() -> None:
    cache = _cache(FakeReader({"getStatus": IncompatibleContract("revert", address=AUCTION)}))

    assert cache.refresh(AUCTION) is None
    assert isinstance(cache.entry(AUCTION), Incompatible)


def test_transport_failure_propagates_and_keeps_prior_entry() -> None:
    answers: dict[str, Any] = {"getStatus": ["Lamp", 10, False]}
    reader = FakeReader(answers)
    cache = _cache(reader)
    cache.refresh(AUCTION)

    answers["getStatus"] = AllEndpointsUnavailable("down")
    with pytest.raises(AllEndpointsUnavailable):
        cache.refresh(AUCTION)

    previous = cache.status(AUCTION)
    assert previous is not None and previous.item == "Lamp"


def test_refresh_many_isolates_failures() -> None:
    cache = _cache(FakeReader({"getStatus": AllEndpointsUnavailable("down")}))

    entries = cache.refresh_many([AUCTION])

    assert isinstance(entries[AUCTION], Unloaded)


def test_poll_sees_status_after_propagation_delay() -> None:
    clock = FakeClock()

    def visible_after_three_seconds() -> Any:
        if clock.now < 3.0:
            return IncompatibleContract("not deployed yet")
        return ["Lamp", 1_700_000_000, False]

    cache = _cache(FakeReader({"getStatus": visible_after_three_seconds}), clock)

    status = cache.poll_until_visible(AUCTION, interval=1.5, max_attempts=12)

    assert status is not None and status.item == "Lamp"
    assert clock.sleeps == [1.5, 1.5]


def test_poll_gives_up_after_cap() -> None:
    clock = FakeClock()
    cache = _cache(FakeReader({"getStatus": IncompatibleContract("no code")}), clock)

    assert cache.poll_until_visible(AUCTION, interval=1.5, max_attempts=4) is None
    assert len(clock.sleeps) == 3


def test_poll_reraises_persistent_transport_error() -> None:
    clock = FakeClock()
    cache = _cache(FakeReader({"getStatus": AllEndpointsUnavailable("down")}), clock)

    with pytest.raises(AllEndpointsUnavailable):
        cache.poll_until_visible(AUCTION, interval=1.0, max_attempts=3)


def test_cancelled_token_stops_poll() -> None:
    token = CancelToken()
    reader = FakeReader({"getStatus": IncompatibleContract("no code")})

    def sleep(seconds: float) -> None:
        token.cancel()

    cache = StatusCache(cast(MultiEndpointReader, reader), sleep=sleep)

    with pytest.raises(OperationCancelled):
        cache.poll_until_visible(AUCTION, interval=1.0, max_attempts=10, token=token)
    assert reader.calls == ["getStatus"]


def test_back_to_back_refreshes_agree() -> None:
    cache = _cache(
        FakeReader(
            {
                "getStatus": ("Lamp", 1_700_000_000, True),
                "winningBidEnc": BID_HANDLE,
                "winningIndexEnc": INDEX_HANDLE,
            }
        )
    )

    first = cache.refresh(AUCTION)
    second = cache.refresh(AUCTION)

    assert first is not None
    assert first == second
    assert cache.entry(AUCTION) == Loaded(first)


def test_watch_refreshes_on_cadence_until_cancelled() -> None:
    token = CancelToken()
    answers: dict[str, Any] = {"getStatus": ["Lamp", 10, False]}
    seen: list[Any] = []
    sleeps: list[float] = []

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) == 1:
            answers["getStatus"] = AllEndpointsUnavailable("down")
        if len(sleeps) == 3:
            token.cancel()

    cache = StatusCache(cast(MultiEndpointReader, FakeReader(answers)), sleep=sleep)

    polls = cache.watch(AUCTION, token=token, interval=10.0, on_update=seen.append)

    assert polls == 3
    assert sleeps == [10.0, 10.0, 10.0]
    assert all(isinstance(entry, Loaded) and entry.status.item == "Lamp" for entry in seen)


def test_watch_honours_poll_limit() -> None:
    clock = FakeClock()
    cache = _cache(FakeReader({"getStatus": ["Lamp", 10, False]}), clock)

    assert cache.watch(AUCTION, token=CancelToken(), interval=5.0, max_polls=2) == 2
    assert clock.sleeps == [5.0]


def test_watch_on_cancelled_token_does_nothing() -> None:
    token = CancelToken()
    token.cancel()
    reader = FakeReader({"getStatus": ["Lamp", 10, False]})

    assert _cache(reader).watch(AUCTION, token=token) == 0
    assert reader.calls == []
