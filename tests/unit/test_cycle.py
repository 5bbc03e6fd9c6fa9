"""Tests for ReadCycle using a fake clock."""

from __future__ import annotations

from collections import deque
from decimal import Decimal
from typing import Callable

import pytest

from hwscale.cycle import SETTLE_TIME, STABLE_TIMEOUT, ReadCycle
from hwscale.errors import ScaleFormatError, TransportError
from hwscale.protocols import FilizolaCodec, ToledoCodec
from hwscale.reading import READ_FAILED, UNSTABLE


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class MockTransport:
    """Transport whose replies come from a callable or a queue."""

    def __init__(self, reply: Callable[[], bytes] | list[bytes]) -> None:
        if callable(reply):
            self._reply = reply
        else:
            queue = deque(reply)
            self._reply = queue.popleft
        self.log: list[str] = []

    @property
    def is_connected(self) -> bool:
        return True

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def clear_input_buffer(self) -> None:
        self.log.append("clear")

    def write(self, data: bytes) -> None:
        self.log.append(f"write:{data.hex()}")

    def read(self) -> bytes:
        self.log.append("read")
        return self._reply()


def _cycle(transport: MockTransport, codec: ToledoCodec | FilizolaCodec, clock: FakeClock) -> ReadCycle:
    return ReadCycle(transport, codec, sleep=clock.sleep, clock=clock.time)


# ---------------------------------------------------------------------------
# read_response
# ---------------------------------------------------------------------------


class TestReadResponse:
    """Tests for ReadCycle.read_response."""

    def test_initial_state(self) -> None:
        cycle = _cycle(MockTransport([]), ToledoCodec(), FakeClock())
        assert cycle.last_response == ""
        assert cycle.last_weight == Decimal(0)

    def test_stores_response_and_weight(self) -> None:
        cycle = _cycle(MockTransport([b"\x0201250\x03"]), ToledoCodec(), FakeClock())
        assert cycle.read_response() == Decimal("1.250")
        assert cycle.last_response == "\x0201250\x03"
        assert cycle.last_weight == Decimal("1.250")

    def test_does_not_request(self) -> None:
        transport = MockTransport([b"\x0200100\x03"])
        _cycle(transport, ToledoCodec(), FakeClock()).read_response()
        assert transport.log == ["read"]

    def test_empty_read_is_zero(self) -> None:
        cycle = _cycle(MockTransport([b""]), ToledoCodec(), FakeClock())
        assert cycle.read_response() == Decimal(0)
        assert cycle.last_response == ""

    def test_decode_failure_keeps_raw_and_forces_read_failed(self) -> None:
        cycle = _cycle(MockTransport([b"\x02ab?de\x03"]), ToledoCodec(), FakeClock())
        with pytest.raises(ScaleFormatError):
            cycle.read_response()
        assert cycle.last_response == "\x02ab?de\x03"
        assert cycle.last_weight == READ_FAILED

    def test_transport_failure_forces_read_failed(self) -> None:
        def fail() -> bytes:
            raise TransportError("link lost")

        cycle = _cycle(MockTransport(fail), ToledoCodec(), FakeClock())
        with pytest.raises(TransportError):
            cycle.read_response()
        assert cycle.last_response == ""
        assert cycle.last_weight == READ_FAILED

    def test_invalid_utf8_is_replaced(self) -> None:
        cycle = _cycle(MockTransport([b"\xff\x0200500\x03"]), ToledoCodec(), FakeClock())
        assert cycle.read_response() == Decimal("0.500")
        assert cycle.last_response.startswith("�")


# ---------------------------------------------------------------------------
# read_weight (simple cycle)
# ---------------------------------------------------------------------------


class TestReadWeight:
    """Tests for the request/settle/read cycle."""

    def test_request_settle_read(self) -> None:
        clock = FakeClock()
        transport = MockTransport([b"\x0200150\x03"])
        weight = _cycle(transport, ToledoCodec(), clock).read_weight()
        assert weight == Decimal("0.150")
        assert transport.log == ["clear", "write:05", "read"]
        assert clock.sleeps == [SETTLE_TIME]

    def test_returns_sentinel_without_retry(self) -> None:
        clock = FakeClock()
        transport = MockTransport([b"\x02IIIII\x03"])
        assert _cycle(transport, ToledoCodec(), clock).read_weight() == UNSTABLE
        assert transport.log.count("read") == 1

    def test_toledo_top_level_read_is_single_shot(self) -> None:
        transport = MockTransport([b"\x02IIIII\x03"])
        assert _cycle(transport, ToledoCodec(), FakeClock()).read() == UNSTABLE
        assert transport.log.count("write:05") == 1


# ---------------------------------------------------------------------------
# await_stable_weight (bounded retry)
# ---------------------------------------------------------------------------


class TestAwaitStableWeight:
    """Tests for the bounded wait on a stable weight."""

    def test_returns_numeric_once_settled(self) -> None:
        clock = FakeClock()

        def reply() -> bytes:
            return b"\x02IIIII" if clock.now < 2.0 else b"\x0201250"

        cycle = _cycle(MockTransport(reply), FilizolaCodec(), clock)
        assert cycle.await_stable_weight(resend=True) == Decimal("1.250")
        assert 2.0 <= clock.now < STABLE_TIMEOUT

    def test_always_unstable_times_out_after_ceiling(self) -> None:
        clock = FakeClock()
        cycle = _cycle(MockTransport(lambda: b"\x02IIIII"), FilizolaCodec(), clock)
        assert cycle.await_stable_weight(resend=True) == UNSTABLE
        assert STABLE_TIMEOUT - 1e-9 <= clock.now <= STABLE_TIMEOUT + SETTLE_TIME + 1e-9

    def test_timeout_and_unstable_are_indistinguishable(self) -> None:
        # A timed-out wait and a final "unstable" reading both return -1.
        clock = FakeClock()
        cycle = _cycle(MockTransport(lambda: b"\x02IIIII"), FilizolaCodec(), clock)
        result = cycle.await_stable_weight(resend=True)
        assert result == UNSTABLE
        assert cycle.last_weight == UNSTABLE

    def test_resend_requests_every_iteration(self) -> None:
        clock = FakeClock()
        transport = MockTransport([b"IIIII", b"IIIII", b"00300"])
        result = _cycle(transport, FilizolaCodec(), clock).await_stable_weight(resend=True)
        assert result == Decimal("0.300")
        assert transport.log.count("write:05") == 3
        assert transport.log.count("read") == 3

    def test_without_resend_only_reads(self) -> None:
        clock = FakeClock()
        transport = MockTransport([b"IIIII", b"00300"])

        def tick() -> float:
            clock.now += 0.1
            return clock.now

        cycle = ReadCycle(transport, FilizolaCodec(), sleep=clock.sleep, clock=tick)
        assert cycle.await_stable_weight(resend=False) == Decimal("0.300")
        assert transport.log == ["read", "read"]
        assert clock.sleeps == []

    def test_other_sentinels_stop_the_wait(self) -> None:
        clock = FakeClock()
        transport = MockTransport([b"IIIII", b"SSSSS", b"00300"])
        result = _cycle(transport, FilizolaCodec(), clock).await_stable_weight(resend=True)
        assert result == Decimal(-10)

    def test_decode_error_propagates(self) -> None:
        clock = FakeClock()
        cycle = _cycle(MockTransport([b"IIIII", b"ab?de"]), FilizolaCodec(), clock)
        with pytest.raises(ScaleFormatError):
            cycle.await_stable_weight(resend=True)
        assert cycle.last_weight == READ_FAILED

    def test_filizola_top_level_read_waits_for_stable(self) -> None:
        clock = FakeClock()
        transport = MockTransport([b"IIIII", b"00750"])
        assert _cycle(transport, FilizolaCodec(), clock).read() == Decimal("0.750")
        assert transport.log.count("write:05") == 2
