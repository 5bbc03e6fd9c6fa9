"""Scale transport protocol definition.

This module defines the :class:`ScaleTransport` protocol, which specifies the
interface that all byte-stream transports must provide. Transports handle the
physical link to the scale; the session and codecs only ever see raw bytes.

Implementations include:
- :class:`hwscale.SerialTransport`: pyserial-backed serial port
- :class:`hwscale.TcpTransport`: TCP socket (serial-over-Ethernet converters)
- :class:`hwscale.ScaleEmulator`: in-process emulated scale
"""

from __future__ import annotations

from typing import Protocol


class ScaleTransport(Protocol):
    """Protocol for scale byte-stream transports.

    This is a structural subtyping protocol (duck typing). Any class that
    implements the methods below with the correct signatures is a valid
    transport.

    Example:
        >>> class MyTransport:
        ...     is_connected = True
        ...     def open(self) -> None: ...
        ...     def close(self) -> None: ...
        ...     def clear_input_buffer(self) -> None: ...
        ...     def write(self, data: bytes) -> None: ...
        ...     def read(self) -> bytes:
        ...         return b"\\x0200150\\x03"
        ...
        >>> transport: ScaleTransport = MyTransport()  # Type checks OK
    """

    @property
    def is_connected(self) -> bool:
        """Return True while the link is open."""
        ...

    def open(self) -> None:
        """Open the link. Safe to call on an already open transport."""
        ...

    def close(self) -> None:
        """Close the link and release resources. Safe to call multiple times."""
        ...

    def clear_input_buffer(self) -> None:
        """Discard any bytes received but not yet read."""
        ...

    def write(self, data: bytes) -> None:
        """Send raw bytes to the scale.

        Args:
            data: Bytes to send.
        """
        ...

    def read(self) -> bytes:
        """Read whatever the scale has sent.

        Returns:
            Received bytes. May be partial, or empty if nothing arrived
            within the transport timeout.
        """
        ...
