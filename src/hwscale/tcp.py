"""TCP transport for scales behind serial-to-Ethernet converters."""

from __future__ import annotations

import logging
import socket

from hwscale.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TCP_PORT = 9100

_RECV_SIZE = 4096


class TcpTransport:
    """Scale transport over a TCP socket.

    Implements the :class:`ScaleTransport` protocol. ``read()`` returns the
    bytes available within ``timeout`` seconds, or ``b""`` if none arrived.

    Args:
        host: Hostname or IP address of the converter.
        port: TCP port. Defaults to 9100.
        timeout: Connect and read timeout in seconds. Defaults to 1.0.
    """

    def __init__(self, host: str, port: int = DEFAULT_TCP_PORT, *, timeout: float = 1.0) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._sock: socket.socket | None = None

    @property
    def address(self) -> tuple[str, int]:
        """The remote ``(host, port)``."""
        return (self._host, self._port)

    @property
    def is_connected(self) -> bool:
        """Return True if the socket is open."""
        return self._sock is not None

    def open(self) -> None:
        """Connect to the remote endpoint.

        Raises:
            TransportError: If the connection cannot be established.
        """
        if self._sock is not None:
            return
        try:
            sock = socket.create_connection((self._host, self._port), timeout=self._timeout)
        except OSError as exc:
            raise TransportError(f"Failed to connect to {self._host}:{self._port}: {exc}") from exc
        sock.settimeout(self._timeout)
        self._sock = sock
        logger.debug("Connected to %s:%d", self._host, self._port)

    def close(self) -> None:
        """Close the socket. Safe to call multiple times."""
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError:
            logger.debug("Error closing socket %s:%d", self._host, self._port, exc_info=True)
        self._sock = None

    def clear_input_buffer(self) -> None:
        """Drain bytes already received without blocking."""
        sock = self._require_open()
        sock.setblocking(False)
        try:
            while True:
                chunk = sock.recv(_RECV_SIZE)
                if not chunk:
                    break
        except (BlockingIOError, InterruptedError):
            pass
        except OSError as exc:
            raise TransportError(f"Failed to clear input from {self._host}:{self._port}: {exc}") from exc
        finally:
            sock.settimeout(self._timeout)

    def write(self, data: bytes) -> None:
        """Send bytes to the scale.

        Raises:
            TransportError: If the socket is not open or the send fails.
        """
        sock = self._require_open()
        try:
            sock.sendall(data)
        except OSError as exc:
            raise TransportError(f"Write to {self._host}:{self._port} failed: {exc}") from exc

    def read(self) -> bytes:
        """Read available bytes.

        Returns:
            Received bytes, or ``b""`` on timeout.

        Raises:
            TransportError: If the socket is not open, the peer closed the
                connection, or the receive fails.
        """
        sock = self._require_open()
        try:
            data = sock.recv(_RECV_SIZE)
        except socket.timeout:
            return b""
        except OSError as exc:
            raise TransportError(f"Read from {self._host}:{self._port} failed: {exc}") from exc
        if not data:
            raise TransportError(f"Connection to {self._host}:{self._port} closed by peer")
        return data

    def _require_open(self) -> socket.socket:
        if self._sock is None:
            raise TransportError(f"Socket to {self._host}:{self._port} is not open")
        return self._sock
