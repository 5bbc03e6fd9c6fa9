"""Connection configuration and YAML loading.

A :class:`ConnectionConfig` combines a transport configuration (serial or
TCP) with the scale's vendor protocol and the background monitoring options.

Example YAML configuration:
    scale:
      protocol: filizola
      monitor: true
      monitor_delay_ms: 200
      transport:
        kind: serial
        port: /dev/ttyUSB0
        baudrate: 9600
        timeout: 1.0

    # or, through a serial-to-Ethernet converter:
    scale:
      protocol: toledo
      transport:
        kind: tcp
        host: 192.168.1.50
        port: 9100
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, Union

import yaml

from hwscale.errors import ConfigError, ProtocolLockedError, UnsupportedProtocolError
from hwscale.protocols import ScaleProtocol, parse_protocol
from hwscale.serial_port import SerialTransport
from hwscale.tcp import DEFAULT_TCP_PORT, TcpTransport

if TYPE_CHECKING:
    from hwscale.transport import ScaleTransport

DEFAULT_MONITOR_DELAY_MS = 500


@dataclass(frozen=True)
class SerialConfig:
    """Serial port settings.

    Attributes:
        port: Serial device (e.g. ``/dev/ttyUSB0`` or ``COM3``).
        baudrate: Line speed.
        timeout: Read timeout in seconds.
        bytesize: Data bits.
        parity: Parity letter (``N``, ``E``, ``O``, ``M``, ``S``).
        stopbits: Stop bits.
        rtscts: RTS/CTS hardware flow control.
        dsrdtr: DSR/DTR hardware flow control.
        xonxoff: XON/XOFF software flow control.
    """

    port: str
    baudrate: int = 9600
    timeout: float = 1.0
    bytesize: int = 8
    parity: str = "N"
    stopbits: float = 1
    rtscts: bool = False
    dsrdtr: bool = False
    xonxoff: bool = False

    def __post_init__(self) -> None:
        if not self.port:
            raise ConfigError("serial port must be non-empty")
        if self.baudrate <= 0:
            raise ConfigError("baudrate must be > 0")
        if self.timeout < 0:
            raise ConfigError("timeout must be >= 0")


@dataclass(frozen=True)
class TcpConfig:
    """TCP endpoint settings.

    Attributes:
        host: Hostname or IP address.
        port: TCP port.
        timeout: Connect/read timeout in seconds.
    """

    host: str
    port: int = DEFAULT_TCP_PORT
    timeout: float = 1.0

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigError("tcp host must be non-empty")
        if not 0 < self.port < 65536:
            raise ConfigError(f"tcp port out of range: {self.port}")
        if self.timeout < 0:
            raise ConfigError("timeout must be >= 0")


TransportConfig = Union[SerialConfig, TcpConfig]


class _ConnectionOwner(Protocol):
    @property
    def is_connected(self) -> bool: ...


class ConnectionConfig:
    """Complete configuration for a scale session.

    All fields may be changed freely, except :attr:`protocol`, which cannot
    change while the owning session is connected.

    Args:
        transport: Serial or TCP settings.
        protocol: Vendor protocol. Defaults to Toledo.
        monitor: Whether background monitoring is enabled.
        monitor_delay_ms: Delay between monitoring reads in milliseconds.
    """

    def __init__(
        self,
        transport: TransportConfig,
        protocol: ScaleProtocol = ScaleProtocol.TOLEDO,
        *,
        monitor: bool = False,
        monitor_delay_ms: int = DEFAULT_MONITOR_DELAY_MS,
    ) -> None:
        self.transport = transport
        self._protocol = protocol
        self.monitor = monitor
        self.monitor_delay_ms = monitor_delay_ms
        self._owner: _ConnectionOwner | None = None

    @property
    def protocol(self) -> ScaleProtocol:
        """The vendor protocol used on the next connect."""
        return self._protocol

    @protocol.setter
    def protocol(self, value: ScaleProtocol) -> None:
        if self._owner is not None and self._owner.is_connected:
            raise ProtocolLockedError("Cannot change the scale protocol while connected")
        self._protocol = value

    def bind(self, owner: _ConnectionOwner | None) -> None:
        """Attach the session whose connection state locks the protocol."""
        self._owner = owner

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(transport={self.transport!r}, protocol={self._protocol!r}, "
            f"monitor={self.monitor!r}, monitor_delay_ms={self.monitor_delay_ms!r})"
        )


def without_flow_control(transport: TransportConfig) -> TransportConfig:
    """Return *transport* with any flow control disabled.

    Scale links are free-running; TCP settings are returned unchanged.
    """
    if isinstance(transport, SerialConfig):
        return replace(transport, rtscts=False, dsrdtr=False, xonxoff=False)
    return transport


def create_transport(transport: TransportConfig) -> ScaleTransport:
    """Build an unopened transport for a transport configuration.

    Raises:
        ConfigError: If the configuration type is not recognized.
    """
    if isinstance(transport, SerialConfig):
        return SerialTransport(
            transport.port,
            baudrate=transport.baudrate,
            timeout=transport.timeout,
            bytesize=transport.bytesize,
            parity=transport.parity,
            stopbits=transport.stopbits,
            rtscts=transport.rtscts,
            dsrdtr=transport.dsrdtr,
            xonxoff=transport.xonxoff,
        )
    if isinstance(transport, TcpConfig):
        return TcpTransport(transport.host, transport.port, timeout=transport.timeout)
    raise ConfigError(f"Unknown transport configuration: {transport!r}")


def _parse_transport(data: Any) -> TransportConfig:
    if not isinstance(data, dict):
        raise ConfigError("'transport' section must be a mapping")
    kind = str(data.get("kind", "serial")).lower()
    fields = {k: v for k, v in data.items() if k != "kind"}
    try:
        if kind == "serial":
            return SerialConfig(**fields)
        if kind == "tcp":
            return TcpConfig(**fields)
    except TypeError as exc:
        raise ConfigError(f"Invalid {kind} transport settings: {exc}") from exc
    raise ConfigError(f"Unknown transport kind {kind!r} (expected 'serial' or 'tcp')")


def parse_config(data: dict[str, Any]) -> ConnectionConfig:
    """Parse a configuration dictionary (as loaded from YAML).

    Accepts either the top-level document (with a ``scale`` key) or the
    ``scale`` section itself.

    Raises:
        ConfigError: If the configuration is invalid.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    section = data.get("scale", data)
    if not isinstance(section, dict):
        raise ConfigError("'scale' section must be a mapping")
    if "transport" not in section:
        raise ConfigError("Missing required 'transport' section")

    transport = _parse_transport(section["transport"])
    try:
        protocol = parse_protocol(section.get("protocol", ScaleProtocol.TOLEDO.value))
    except UnsupportedProtocolError as exc:
        raise ConfigError(str(exc)) from exc

    delay = section.get("monitor_delay_ms", DEFAULT_MONITOR_DELAY_MS)
    if not isinstance(delay, int) or delay < 0:
        raise ConfigError(f"monitor_delay_ms must be a non-negative integer, got {delay!r}")

    return ConnectionConfig(
        transport,
        protocol,
        monitor=bool(section.get("monitor", False)),
        monitor_delay_ms=delay,
    )


def load_config(path: str | Path) -> ConnectionConfig:
    """Load a connection configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the file is not valid YAML or the configuration is
            invalid.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    return parse_config(data or {})
