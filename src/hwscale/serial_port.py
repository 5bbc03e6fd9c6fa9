"""Serial port transport for scales.

This module provides a pyserial-backed transport implementation. The
``serial`` package is lazily imported on :meth:`SerialTransport.open` so the
rest of hwscale (codecs, emulator, TCP transport) works without it.

Scale links are always free-running: hardware and software flow control are
off by default, and :class:`hwscale.ScaleSession` forces them off on connect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from hwscale.errors import TransportError

logger = logging.getLogger(__name__)


def _import_serial() -> Any:
    try:
        import serial  # type: ignore[import-untyped]  # pylint: disable=import-outside-toplevel
    except ImportError as exc:
        raise TransportError(
            "pyserial library is not installed. Install with: pip install pyserial"
        ) from exc
    return serial


@dataclass(frozen=True)
class SerialPortInfo:
    """A serial port found on the host.

    Attributes:
        device: Device path or name (e.g. ``/dev/ttyUSB0``, ``COM3``).
        description: Human-readable description reported by the OS.
        hwid: Hardware ID string (USB VID:PID etc.).
    """

    device: str
    description: str
    hwid: str


def list_serial_ports() -> list[SerialPortInfo]:
    """Enumerate the serial ports available on this host.

    Returns:
        Ports sorted by device name.

    Raises:
        TransportError: If pyserial is not installed.
    """
    _import_serial()
    from serial.tools import list_ports  # type: ignore[import-untyped]  # pylint: disable=import-outside-toplevel

    ports = [
        SerialPortInfo(device=p.device, description=p.description or "", hwid=p.hwid or "")
        for p in list_ports.comports()
    ]
    return sorted(ports, key=lambda p: p.device)


class SerialTransport:
    """Scale transport over a local serial port.

    Implements the :class:`ScaleTransport` protocol.

    Args:
        port: Serial device (e.g. ``"/dev/ttyUSB0"`` or ``"COM3"``).
        baudrate: Line speed. Defaults to 9600.
        timeout: Read timeout in seconds. Defaults to 1.0.
        bytesize: Data bits. Defaults to 8.
        parity: Parity, one of ``"N"``, ``"E"``, ``"O"``, ``"M"``, ``"S"``.
        stopbits: Stop bits (1, 1.5 or 2).
        rtscts: Enable RTS/CTS hardware flow control.
        dsrdtr: Enable DSR/DTR hardware flow control.
        xonxoff: Enable XON/XOFF software flow control.

    Example:
        >>> transport = SerialTransport("/dev/ttyUSB0", baudrate=9600)
        >>> transport.open()
        >>> transport.write(b"\\x05")
        >>> frame = transport.read()
        >>> transport.close()
    """

    def __init__(
        self,
        port: str,
        *,
        baudrate: int = 9600,
        timeout: float = 1.0,
        bytesize: int = 8,
        parity: str = "N",
        stopbits: float = 1,
        rtscts: bool = False,
        dsrdtr: bool = False,
        xonxoff: bool = False,
    ) -> None:
        self._port_name = port
        self._baudrate = baudrate
        self._timeout = timeout
        self._bytesize = bytesize
        self._parity = parity
        self._stopbits = stopbits
        self._rtscts = rtscts
        self._dsrdtr = dsrdtr
        self._xonxoff = xonxoff
        self._serial: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def port(self) -> str:
        """The serial device name."""
        return self._port_name

    @property
    def is_connected(self) -> bool:
        """Return True if the port is currently open."""
        return self._serial is not None and bool(self._serial.is_open)

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the serial port.

        Raises:
            TransportError: If pyserial is not installed or the port cannot
                be opened.
        """
        if self._serial is not None:
            return

        serial = _import_serial()
        try:
            self._serial = serial.Serial(
                port=self._port_name,
                baudrate=self._baudrate,
                bytesize=self._bytesize,
                parity=self._parity,
                stopbits=self._stopbits,
                timeout=self._timeout,
                rtscts=self._rtscts,
                dsrdtr=self._dsrdtr,
                xonxoff=self._xonxoff,
            )
        except (serial.SerialException, ValueError) as exc:
            self._serial = None
            raise TransportError(f"Failed to open serial port {self._port_name!r}: {exc}") from exc
        logger.debug("Opened serial port %s at %d baud", self._port_name, self._baudrate)

    def close(self) -> None:
        """Close the serial port. Safe to call multiple times."""
        if self._serial is None:
            return
        try:
            self._serial.close()
        except Exception:  # pylint: disable=broad-except
            logger.debug("Error closing serial port %s", self._port_name, exc_info=True)
        self._serial = None

    # -- Transport interface -------------------------------------------------

    def clear_input_buffer(self) -> None:
        """Discard unread input.

        Raises:
            TransportError: If the port is not open or the driver fails.
        """
        port = self._require_open()
        try:
            port.reset_input_buffer()
        except Exception as exc:
            raise TransportError(f"Failed to clear input on {self._port_name!r}: {exc}") from exc

    def write(self, data: bytes) -> None:
        """Send bytes to the scale.

        Raises:
            TransportError: If the port is not open or the write fails.
        """
        port = self._require_open()
        try:
            port.write(data)
            port.flush()
        except Exception as exc:
            raise TransportError(f"Write to {self._port_name!r} failed: {exc}") from exc

    def read(self) -> bytes:
        """Read the bytes waiting on the port.

        Blocks for at most the port timeout waiting for the first byte, then
        collects everything already buffered.

        Returns:
            Received bytes, empty if the scale sent nothing.

        Raises:
            TransportError: If the port is not open or the read fails.
        """
        port = self._require_open()
        try:
            data = bytes(port.read(1))
            if data:
                waiting = port.in_waiting
                if waiting:
                    data += bytes(port.read(waiting))
        except Exception as exc:
            raise TransportError(f"Read from {self._port_name!r} failed: {exc}") from exc
        return data

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> Any:
        if self._serial is None:
            raise TransportError(f"Serial port {self._port_name!r} is not open")
        return self._serial
