"""Command-line interface for hwscale.

Usage:
    # Read the weight once from a Toledo scale on a serial port
    hwscale read --serial /dev/ttyUSB0 --protocol toledo

    # Print readings for 10 seconds from a scale behind a TCP converter
    hwscale monitor --tcp 192.168.1.50:9100 --protocol filizola --duration 10

    # Use a YAML connection configuration
    hwscale read --config scale.yaml

    # List serial ports
    hwscale ports

    # Serve an emulated scale over TCP
    hwscale emulate --protocol toledo --weight 1.250 --port 9100
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from decimal import Decimal, InvalidOperation

from hwscale.config import ConnectionConfig, SerialConfig, TcpConfig, load_config
from hwscale.emulator import ScaleEmulator
from hwscale.errors import HwscaleError
from hwscale.protocols import ScaleProtocol, parse_protocol
from hwscale.reading import Reading, describe_weight
from hwscale.serial_port import list_serial_ports
from hwscale.server import EmulatorServer
from hwscale.session import ScaleSession
from hwscale.tcp import DEFAULT_TCP_PORT


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _parse_tcp_address(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep:
        return value, DEFAULT_TCP_PORT
    try:
        return host, int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid TCP port in {value!r}") from None


def build_config(args: argparse.Namespace) -> ConnectionConfig:
    """Build a connection configuration from command-line arguments.

    Raises:
        HwscaleError: If no connection source was given or it is invalid.
    """
    if args.config:
        config = load_config(args.config)
    elif args.serial:
        config = ConnectionConfig(
            SerialConfig(port=args.serial, baudrate=args.baudrate, timeout=args.timeout)
        )
    elif args.tcp:
        host, port = args.tcp
        config = ConnectionConfig(TcpConfig(host=host, port=port, timeout=args.timeout))
    else:
        raise HwscaleError("One of --config, --serial or --tcp is required")

    if args.protocol:
        config.protocol = parse_protocol(args.protocol)
    if args.delay is not None:
        config.monitor_delay_ms = args.delay
    return config


def _format_reading(reading: Reading) -> str:
    if reading.error is not None:
        return f"ERROR {reading.error} [{reading.raw!r}]"
    assert reading.weight is not None
    return f"{describe_weight(reading.weight)} [{reading.raw!r}]"


def cmd_read(args: argparse.Namespace) -> int:
    """Read the weight once."""
    config = build_config(args)
    config.monitor = False
    readings: list[Reading] = []

    with ScaleSession(config) as session:
        session.subscribe(readings.append)
        session.connect()
        session.read_once()

    for reading in readings:
        print(_format_reading(reading))
    return 1 if any(r.is_error for r in readings) else 0


def cmd_monitor(args: argparse.Namespace) -> int:
    """Print readings from the background poller."""
    config = build_config(args)
    config.monitor = True

    with ScaleSession(config) as session:
        session.subscribe(lambda reading: print(_format_reading(reading), flush=True))
        session.connect()
        try:
            if args.duration is None:
                while True:
                    time.sleep(1.0)
            else:
                time.sleep(args.duration)
        except KeyboardInterrupt:
            print()
    return 0


def cmd_ports(args: argparse.Namespace) -> int:
    """List serial ports."""
    ports = list_serial_ports()
    if not ports:
        print("No serial ports found")
        return 0
    for port in ports:
        line = f"{port.device}\t{port.description}"
        if args.verbose:
            line += f"\t{port.hwid}"
        print(line)
    return 0


def cmd_emulate(args: argparse.Namespace) -> int:
    """Serve an emulated scale over TCP."""
    try:
        weight = Decimal(args.weight)
    except InvalidOperation:
        print(f"Error: invalid weight {args.weight!r}", file=sys.stderr)
        return 1

    try:
        emulator = ScaleEmulator(parse_protocol(args.protocol), weight)
        server = EmulatorServer(emulator, host=args.host, port=args.port)
    except (ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    host, port = server.address
    print(f"Emulating {args.protocol} scale ({weight} kg) on {host}:{port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print()
    return 0


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--config", help="YAML connection configuration file")
    source.add_argument("--serial", metavar="PORT", help="Serial port (e.g. /dev/ttyUSB0, COM3)")
    source.add_argument(
        "--tcp",
        metavar="HOST[:PORT]",
        type=_parse_tcp_address,
        help=f"TCP converter address (default port {DEFAULT_TCP_PORT})",
    )
    parser.add_argument(
        "--protocol",
        choices=[p.value for p in ScaleProtocol],
        help="Scale protocol (overrides the configuration file)",
    )
    parser.add_argument("--baudrate", type=int, default=9600, help="Serial baud rate")
    parser.add_argument("--timeout", type=float, default=1.0, help="Read timeout in seconds")
    parser.add_argument("--delay", type=int, help="Monitoring delay in milliseconds")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hwscale",
        description="Read weighing scales over serial or TCP",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    read_parser = subparsers.add_parser("read", help="Read the weight once")
    _add_connection_arguments(read_parser)
    read_parser.set_defaults(func=cmd_read)

    monitor_parser = subparsers.add_parser("monitor", help="Print readings continuously")
    _add_connection_arguments(monitor_parser)
    monitor_parser.add_argument(
        "--duration", type=float, help="Seconds to monitor (default: until interrupted)"
    )
    monitor_parser.set_defaults(func=cmd_monitor)

    ports_parser = subparsers.add_parser("ports", help="List serial ports")
    ports_parser.add_argument("-v", "--verbose", action="store_true", help="Show hardware IDs")
    ports_parser.set_defaults(func=cmd_ports)

    emulate_parser = subparsers.add_parser("emulate", help="Serve an emulated scale over TCP")
    emulate_parser.add_argument(
        "--protocol", choices=[p.value for p in ScaleProtocol], default="toledo"
    )
    emulate_parser.add_argument("--weight", default="0", help="Weight in kilograms")
    emulate_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    emulate_parser.add_argument("--port", type=int, default=DEFAULT_TCP_PORT, help="Bind port")
    emulate_parser.set_defaults(func=cmd_emulate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug)

    try:
        return int(args.func(args))
    except HwscaleError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
