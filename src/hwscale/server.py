"""TCP server exposing a scale emulator.

Wraps any ``ScaleTransport`` (typically a :class:`ScaleEmulator`) and serves
it over TCP, so a :class:`TcpTransport`, netcat, or a real POS application can
talk to an emulated scale as if it sat behind a serial-to-Ethernet converter.

Example:
    Start an emulator server on an ephemeral port::

        from hwscale import EmulatorServer, ScaleEmulator, ScaleProtocol

        emulator = ScaleEmulator(ScaleProtocol.TOLEDO, weight="1.250")
        server = EmulatorServer(emulator, port=0)
        server.start()

        host, port = server.address
        session = create_tcp_session(ScaleProtocol.TOLEDO, host, port)

        server.stop()
"""

from __future__ import annotations

import logging
import socketserver
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hwscale.transport import ScaleTransport

logger = logging.getLogger(__name__)

_RECV_SIZE = 1024


class _ScaleRequestHandler(socketserver.BaseRequestHandler):
    """Handle one TCP connection, forwarding bytes to the emulator.

    Every chunk received is written to the transport; whatever the transport
    produces in response is sent back to the client.
    """

    server: _ScaleTcpServer

    def handle(self) -> None:
        logger.debug("Client connected: %s", self.client_address)
        while True:
            data = self.request.recv(_RECV_SIZE)
            if not data:
                break
            transport = self.server.transport
            with self.server.lock:
                transport.write(data)
                response = transport.read()
            if response:
                self.request.sendall(response)
        logger.debug("Client disconnected: %s", self.client_address)


class _ScaleTcpServer(socketserver.TCPServer):
    """TCPServer subclass that holds a reference to the transport."""

    allow_reuse_address = True

    def __init__(
        self,
        server_address: tuple[str, int],
        transport: ScaleTransport,
        **kwargs: Any,
    ) -> None:
        self.transport = transport
        self.lock = threading.Lock()
        super().__init__(server_address, _ScaleRequestHandler, **kwargs)


class EmulatorServer:
    """TCP server wrapping any ``ScaleTransport`` for external access.

    Runs in a background daemon thread and handles one client connection at
    a time.

    Args:
        transport: The transport (typically an emulator) to serve. It is
            opened by :meth:`start` and closed by :meth:`stop`.
        host: Bind address (default ``"127.0.0.1"``).
        port: Bind port (default ``9100``). Use ``0`` for an OS-assigned
            ephemeral port.
    """

    def __init__(
        self,
        transport: ScaleTransport,
        host: str = "127.0.0.1",
        port: int = 9100,
    ) -> None:
        self._transport = transport
        self._server = _ScaleTcpServer((host, port), transport)
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Open the transport and start serving in a daemon thread."""
        self._transport.open()
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("Scale emulator listening on %s:%d", *self.address)

    def stop(self) -> None:
        """Shut down the server, wait for its thread, and close the transport."""
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join()
        self._server.server_close()
        self._transport.close()

    def serve_forever(self) -> None:
        """Open the transport and serve on the calling thread until interrupted."""
        self._transport.open()
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()
            self._transport.close()

    @property
    def address(self) -> tuple[str, int]:
        """Return the actual bound ``(host, port)`` address."""
        addr = self._server.server_address
        return (str(addr[0]), int(addr[1]))
