"""Tests for TcpTransport and EmulatorServer over a loopback socket."""

from __future__ import annotations

import socket
import time
from collections.abc import Iterator
from decimal import Decimal

import pytest

from hwscale.emulator import ScaleEmulator
from hwscale.errors import TransportError
from hwscale.protocols import ScaleProtocol
from hwscale.reading import Reading
from hwscale.server import EmulatorServer
from hwscale.session import create_tcp_session
from hwscale.tcp import TcpTransport


@pytest.fixture
def toledo_server() -> Iterator[tuple[ScaleEmulator, EmulatorServer]]:
    emulator = ScaleEmulator(ScaleProtocol.TOLEDO, "1.250")
    server = EmulatorServer(emulator, port=0)
    server.start()
    try:
        yield emulator, server
    finally:
        server.stop()


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


class TestTcpTransport:
    """Tests for TcpTransport against the emulator server."""

    def test_request_round_trip(self, toledo_server: tuple[ScaleEmulator, EmulatorServer]) -> None:
        _, server = toledo_server
        host, port = server.address
        transport = TcpTransport(host, port, timeout=2.0)
        transport.open()
        try:
            assert transport.is_connected
            transport.clear_input_buffer()
            transport.write(b"\x05")
            assert transport.read() == b"\x0201250\x03"
        finally:
            transport.close()
        assert not transport.is_connected

    def test_read_timeout_returns_empty(
        self, toledo_server: tuple[ScaleEmulator, EmulatorServer]
    ) -> None:
        _, server = toledo_server
        transport = TcpTransport(*server.address, timeout=0.1)
        transport.open()
        try:
            assert transport.read() == b""
        finally:
            transport.close()

    def test_clear_input_buffer_discards_pending(
        self, toledo_server: tuple[ScaleEmulator, EmulatorServer]
    ) -> None:
        _, server = toledo_server
        transport = TcpTransport(*server.address, timeout=0.2)
        transport.open()
        try:
            transport.write(b"\x05")
            time.sleep(0.1)
            transport.clear_input_buffer()
            assert transport.read() == b""
        finally:
            transport.close()

    def test_open_idempotent(self, toledo_server: tuple[ScaleEmulator, EmulatorServer]) -> None:
        _, server = toledo_server
        transport = TcpTransport(*server.address)
        transport.open()
        transport.open()
        transport.close()
        transport.close()

    def test_connection_refused(self) -> None:
        transport = TcpTransport("127.0.0.1", _unused_port(), timeout=0.5)
        with pytest.raises(TransportError, match="Failed to connect"):
            transport.open()
        assert not transport.is_connected

    def test_operations_require_open(self) -> None:
        transport = TcpTransport("127.0.0.1", 9100)
        with pytest.raises(TransportError, match="not open"):
            transport.write(b"\x05")
        with pytest.raises(TransportError, match="not open"):
            transport.read()


class TestEmulatorServer:
    """Tests for EmulatorServer lifecycle."""

    def test_address_is_ephemeral_port(
        self, toledo_server: tuple[ScaleEmulator, EmulatorServer]
    ) -> None:
        _, server = toledo_server
        host, port = server.address
        assert host == "127.0.0.1"
        assert port > 0

    def test_opens_emulator(self, toledo_server: tuple[ScaleEmulator, EmulatorServer]) -> None:
        emulator, _ = toledo_server
        assert emulator.is_connected


class TestSessionOverTcp:
    """End-to-end session reads through the emulator server."""

    def test_read_once(self, toledo_server: tuple[ScaleEmulator, EmulatorServer]) -> None:
        emulator, server = toledo_server
        host, port = server.address
        readings: list[Reading] = []
        session = create_tcp_session(ScaleProtocol.TOLEDO, host, port, timeout=2.0)
        session.subscribe(readings.append)
        session.connect()
        try:
            assert session.read_once() == Decimal("1.250")
            emulator.set_overload()
            assert session.read_once() == Decimal(-10)
        finally:
            session.disconnect()
        assert [r.weight for r in readings] == [Decimal("1.250"), Decimal(-10)]
        assert emulator.requests == 2

    def test_filizola_waits_for_stable(self) -> None:
        emulator = ScaleEmulator(ScaleProtocol.FILIZOLA, "0.750")
        emulator.set_unstable(frames=1)
        server = EmulatorServer(emulator, port=0)
        server.start()
        try:
            session = create_tcp_session(ScaleProtocol.FILIZOLA, *server.address, timeout=2.0)
            session.connect()
            try:
                assert session.read_once() == Decimal("0.750")
            finally:
                session.disconnect()
        finally:
            server.stop()
