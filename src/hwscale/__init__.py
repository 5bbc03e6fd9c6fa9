"""Weighing scale driver for serial and TCP links.

This package talks to Toledo and Filizola weighing scales over a byte-stream
transport and exposes a normalized current weight. It includes:

- Transport abstraction with serial (pyserial) and TCP implementations
- Vendor codecs decoding weight frames and sentinel states
- Read cycles, including a bounded wait for a stable weight
- A session with on-demand reads and background monitoring
- An in-process scale emulator and a TCP server exposing it

Typical usage::

    from hwscale import ScaleProtocol, create_serial_session

    session = create_serial_session(ScaleProtocol.FILIZOLA, "/dev/ttyUSB0")
    session.subscribe(print)
    session.connect()
    weight = session.read_once()
    session.disconnect()
"""

from hwscale.config import (
    ConnectionConfig,
    SerialConfig,
    TcpConfig,
    create_transport,
    load_config,
    parse_config,
)
from hwscale.cycle import SETTLE_TIME, STABLE_TIMEOUT, ReadCycle
from hwscale.emulator import ScaleEmulator
from hwscale.errors import (
    AlreadyConnectedError,
    ConfigError,
    HwscaleError,
    NotConnectedError,
    ProtocolLockedError,
    ScaleFormatError,
    SessionStateError,
    TransportError,
    UnsupportedProtocolError,
)
from hwscale.protocols import (
    FilizolaCodec,
    ScaleCodec,
    ScaleProtocol,
    ToledoCodec,
    create_codec,
    parse_protocol,
)
from hwscale.reading import NEGATIVE, OVERLOAD, READ_FAILED, UNSTABLE, Reading, describe_weight
from hwscale.serial_port import SerialPortInfo, SerialTransport, list_serial_ports
from hwscale.server import EmulatorServer
from hwscale.session import ScaleSession, create_serial_session, create_tcp_session
from hwscale.tcp import TcpTransport
from hwscale.transport import ScaleTransport

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Session
    "ScaleSession",
    "create_serial_session",
    "create_tcp_session",
    # Configuration
    "ConnectionConfig",
    "SerialConfig",
    "TcpConfig",
    "create_transport",
    "load_config",
    "parse_config",
    # Protocols
    "FilizolaCodec",
    "ScaleCodec",
    "ScaleProtocol",
    "ToledoCodec",
    "create_codec",
    "parse_protocol",
    # Read cycles
    "ReadCycle",
    "SETTLE_TIME",
    "STABLE_TIMEOUT",
    # Readings
    "NEGATIVE",
    "OVERLOAD",
    "READ_FAILED",
    "UNSTABLE",
    "Reading",
    "describe_weight",
    # Transports
    "ScaleTransport",
    "SerialPortInfo",
    "SerialTransport",
    "TcpTransport",
    "list_serial_ports",
    # Emulation
    "EmulatorServer",
    "ScaleEmulator",
    # Errors
    "AlreadyConnectedError",
    "ConfigError",
    "HwscaleError",
    "NotConnectedError",
    "ProtocolLockedError",
    "ScaleFormatError",
    "SessionStateError",
    "TransportError",
    "UnsupportedProtocolError",
]
