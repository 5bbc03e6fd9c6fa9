"""Scale session: connection lifecycle, manual reads and background polling.

A :class:`ScaleSession` owns at most one open transport and one codec, both
created by :meth:`~ScaleSession.connect` and released together by
:meth:`~ScaleSession.disconnect`. While connected, a daemon thread polls the
scale whenever monitoring is enabled. Every completed read, manual or polled,
is delivered to the subscribers as a :class:`~hwscale.reading.Reading`.

Manual reads and the poller share the transport without a lock: a manual
read switches monitoring off for its duration so the poller yields the link,
then restores the previous setting. All session operations are expected to
come from a single controlling thread.

Typical usage::

    from hwscale import ScaleProtocol, create_serial_session

    session = create_serial_session(ScaleProtocol.TOLEDO, "/dev/ttyUSB0")
    session.subscribe(lambda reading: print(reading))
    with session:
        session.connect()
        weight = session.read_once()
"""

from __future__ import annotations

import logging
import threading
import time
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

from hwscale.config import (
    ConnectionConfig,
    SerialConfig,
    TcpConfig,
    TransportConfig,
    create_transport,
    without_flow_control,
)
from hwscale.cycle import ReadCycle
from hwscale.errors import AlreadyConnectedError, NotConnectedError
from hwscale.protocols import ScaleProtocol, create_codec
from hwscale.reading import Reading
from hwscale.tcp import DEFAULT_TCP_PORT

if TYPE_CHECKING:
    from hwscale.transport import ScaleTransport

logger = logging.getLogger(__name__)

ReadingCallback = Callable[[Reading], None]
TransportFactory = Callable[[TransportConfig], "ScaleTransport"]


class ScaleSession:
    """Connection to one scale.

    Args:
        config: Connection configuration. The session binds itself to it so
            the protocol cannot change while connected.
        transport_factory: Builds the transport from the transport settings.
            Defaults to :func:`hwscale.config.create_transport`.
        sleep: Blocking sleep used by read cycles (injectable for tests).
        clock: Monotonic clock used by read cycles (injectable for tests).
    """

    def __init__(
        self,
        config: ConnectionConfig,
        *,
        transport_factory: TransportFactory = create_transport,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._config.bind(self)
        self._transport_factory = transport_factory
        self._sleep = sleep
        self._clock = clock
        self._transport: ScaleTransport | None = None
        self._cycle: ReadCycle | None = None
        self._cancel: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._subscribers: list[ReadingCallback] = []
        self._subscribers_lock = threading.Lock()

    # -- Properties ----------------------------------------------------------

    @property
    def config(self) -> ConnectionConfig:
        """The connection configuration."""
        return self._config

    @property
    def is_connected(self) -> bool:
        """Return True if a transport is open and reports itself connected."""
        return self._transport is not None and self._transport.is_connected

    @property
    def protocol(self) -> ScaleProtocol:
        """Vendor protocol. Raises ``ProtocolLockedError`` if set while connected."""
        return self._config.protocol

    @protocol.setter
    def protocol(self, value: ScaleProtocol) -> None:
        self._config.protocol = value

    @property
    def monitoring(self) -> bool:
        """Whether the background poller reads the scale."""
        return self._config.monitor

    @monitoring.setter
    def monitoring(self, value: bool) -> None:
        self._config.monitor = value

    @property
    def monitor_delay_ms(self) -> int:
        """Delay between background reads in milliseconds."""
        return self._config.monitor_delay_ms

    @monitor_delay_ms.setter
    def monitor_delay_ms(self, value: int) -> None:
        self._config.monitor_delay_ms = value

    @property
    def last_response(self) -> str:
        """Raw text of the most recent read, ``""`` if not connected."""
        return self._cycle.last_response if self._cycle is not None else ""

    @property
    def last_weight(self) -> Decimal:
        """Decoded weight of the most recent read, ``0`` if not connected."""
        return self._cycle.last_weight if self._cycle is not None else Decimal(0)

    # -- Subscribers ---------------------------------------------------------

    def subscribe(self, callback: ReadingCallback) -> Callable[[], None]:
        """Register a callback for every completed read.

        Callbacks run synchronously on the thread that performed the read
        (the caller for manual reads, the poll thread otherwise) and must
        not block for long.

        Returns:
            A function that removes the subscription.
        """
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, reading: Reading) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(reading)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Reading subscriber %r failed", callback)

    # -- Lifecycle -----------------------------------------------------------

    def connect(self, config: ConnectionConfig | None = None) -> None:
        """Open the transport and start the background poller.

        Args:
            config: Optional replacement configuration.

        Raises:
            AlreadyConnectedError: If a transport is already open.
            UnsupportedProtocolError: If the configured protocol is unknown.
            TransportError: If the transport cannot be opened.
        """
        if self._transport is not None:
            raise AlreadyConnectedError("Scale session is already connected")
        codec = create_codec((config or self._config).protocol)
        if config is not None and config is not self._config:
            self._config.bind(None)
            self._config = config
            self._config.bind(self)

        self._config.transport = without_flow_control(self._config.transport)

        transport = self._transport_factory(self._config.transport)
        transport.open()

        self._cycle = ReadCycle(transport, codec, sleep=self._sleep, clock=self._clock)
        self._transport = transport
        self._cancel = threading.Event()
        self._thread = threading.Thread(
            target=self._poll,
            args=(self._cycle, self._cancel),
            name="hwscale-poll",
            daemon=True,
        )
        self._thread.start()
        logger.info("Connected to %s scale via %r", codec.name, self._config.transport)

    def disconnect(self) -> None:
        """Stop the poller and close the transport.

        The poller observes the stop request at its next iteration, so this
        may return while a final poll read is still draining.

        Raises:
            NotConnectedError: If no transport is open.
        """
        if self._transport is None:
            raise NotConnectedError("Scale session is not connected")

        if self._cancel is not None:
            self._cancel.set()
        transport = self._transport
        self._transport = None
        self._cycle = None
        transport.close()
        logger.info("Disconnected from scale")

    def close(self) -> None:
        """Disconnect if connected. Safe to call in any state."""
        try:
            self.disconnect()
        except NotConnectedError:
            pass

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the most recent poll thread to exit.

        Returns:
            True if no poll thread is running.
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __enter__(self) -> ScaleSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- Reads ---------------------------------------------------------------

    def read_once(self) -> Decimal:
        """Read the weight now, pausing the background poller meanwhile.

        Failures are reported to subscribers as error readings, not raised.

        Returns:
            The last decoded weight, which may be a sentinel (``-9`` when the
            read failed).

        Raises:
            NotConnectedError: If no transport is open.
        """
        cycle = self._cycle
        if self._transport is None or cycle is None:
            raise NotConnectedError("Scale session is not connected")

        monitoring = self.monitoring
        try:
            self.monitoring = False
            cycle.read()
            self._emit(Reading.of_weight(cycle.last_response, cycle.last_weight))
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Weight read failed: %s", exc)
            self._emit(Reading.of_error(cycle.last_response, exc))
        finally:
            self.monitoring = monitoring

        return cycle.last_weight

    def _poll(self, cycle: ReadCycle, cancel: threading.Event) -> None:
        logger.debug("Poll loop started")
        while not cancel.is_set():
            # Monitoring may be off only for the span of a manual read; keep
            # spinning so polling resumes as soon as it is restored.
            if not self.monitoring:
                time.sleep(0)
                continue

            try:
                cycle.read_response()
            except Exception as exc:  # pylint: disable=broad-except
                if cancel.is_set():
                    break
                logger.debug("Monitoring read failed: %s", exc)
                self._emit(Reading.of_error(cycle.last_response, exc))
            else:
                self._emit(Reading.of_weight(cycle.last_response, cycle.last_weight))

            time.sleep(max(self.monitor_delay_ms, 0) / 1000)
        logger.debug("Poll loop stopped")


def create_serial_session(
    protocol: ScaleProtocol,
    port: str,
    *,
    baudrate: int = 9600,
    timeout: float = 1.0,
    monitor: bool = False,
    monitor_delay_ms: int = 500,
    **serial_options: Any,
) -> ScaleSession:
    """Create a disconnected session for a scale on a serial port.

    Args:
        protocol: Vendor protocol.
        port: Serial device name.
        baudrate: Line speed.
        timeout: Read timeout in seconds.
        monitor: Enable background monitoring once connected.
        monitor_delay_ms: Delay between background reads.
        **serial_options: Extra :class:`SerialConfig` fields (``parity`` etc.).
    """
    transport = SerialConfig(port=port, baudrate=baudrate, timeout=timeout, **serial_options)
    config = ConnectionConfig(
        transport, protocol, monitor=monitor, monitor_delay_ms=monitor_delay_ms
    )
    return ScaleSession(config)


def create_tcp_session(
    protocol: ScaleProtocol,
    host: str,
    port: int = DEFAULT_TCP_PORT,
    *,
    timeout: float = 1.0,
    monitor: bool = False,
    monitor_delay_ms: int = 500,
) -> ScaleSession:
    """Create a disconnected session for a scale behind a TCP converter.

    Args:
        protocol: Vendor protocol.
        host: Converter hostname or IP address.
        port: TCP port. Defaults to 9100.
        timeout: Connect/read timeout in seconds.
        monitor: Enable background monitoring once connected.
        monitor_delay_ms: Delay between background reads.
    """
    config = ConnectionConfig(
        TcpConfig(host=host, port=port, timeout=timeout),
        protocol,
        monitor=monitor,
        monitor_delay_ms=monitor_delay_ms,
    )
    return ScaleSession(config)
