"""Request/settle/read cycles against a scale.

:class:`ReadCycle` binds a transport to a codec and keeps the most recent raw
response and decoded weight, which the session reports in its events.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

from hwscale.reading import READ_FAILED, UNSTABLE

if TYPE_CHECKING:
    from hwscale.protocols import ScaleCodec
    from hwscale.transport import ScaleTransport

logger = logging.getLogger(__name__)

# Scale firmware latency between a request and its reply, in seconds.
SETTLE_TIME = 0.2

# Ceiling for waiting on a stable weight, in seconds.
STABLE_TIMEOUT = 3.0


class ReadCycle:
    """Read cycles for one transport/codec pair.

    Args:
        transport: An open transport.
        codec: Codec for the scale's vendor protocol.
        sleep: Blocking sleep function (injectable for tests).
        clock: Monotonic clock in seconds (injectable for tests).

    Attributes:
        last_response: Raw text of the most recent read, ``""`` before any.
        last_weight: Decoded weight of the most recent read. ``-9`` if the
            read or decode failed.
    """

    def __init__(
        self,
        transport: ScaleTransport,
        codec: ScaleCodec,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._codec = codec
        self._sleep = sleep
        self._clock = clock
        self.last_response = ""
        self.last_weight = Decimal(0)

    @property
    def codec(self) -> ScaleCodec:
        """The codec used to decode responses."""
        return self._codec

    def read_response(self) -> Decimal:
        """Read the waiting response and decode it.

        ``last_response`` and ``last_weight`` are updated even on failure:
        the raw text is whatever was captured and the weight is forced to the
        read-failed sentinel before the exception propagates.

        Returns:
            The decoded weight or sentinel.
        """
        self.last_weight = Decimal(0)
        self.last_response = ""
        try:
            self.last_response = self._transport.read().decode("utf-8", errors="replace")
            logger.debug("%s - RX: [%s]", self._codec.name, self.last_response)
            self.last_weight = self._codec.decode(self.last_response)
        except Exception:
            self.last_weight = READ_FAILED
            raise
        logger.debug(
            "%s - weight: %s - response: [%s]",
            self._codec.name,
            self.last_weight,
            self.last_response,
        )
        return self.last_weight

    def request(self) -> None:
        """Send a weight request and wait for the scale to answer."""
        self._codec.request_weight(self._transport)
        self._sleep(SETTLE_TIME)

    def read_weight(self) -> Decimal:
        """Request, settle, read and decode once.

        Returns:
            The decoded weight, possibly a negative sentinel.
        """
        self.request()
        return self.read_response()

    def await_stable_weight(self, resend: bool) -> Decimal:
        """Read until the scale stops reporting "unstable" or time runs out.

        Gives up after :data:`STABLE_TIMEOUT` seconds. A return value of
        :data:`~hwscale.reading.UNSTABLE` means either that the timeout
        elapsed or that the last reading was unstable; the two cases are not
        distinguished.

        Args:
            resend: Re-send the weight request (and settle) before each read.

        Returns:
            The last decoded weight.
        """
        result = UNSTABLE
        deadline = self._clock() + STABLE_TIMEOUT
        while result == UNSTABLE and self._clock() < deadline:
            if resend:
                self.request()
            result = self.read_response()
        if result == UNSTABLE:
            logger.debug("%s - no stable weight within %.1fs", self._codec.name, STABLE_TIMEOUT)
        return result

    def read(self) -> Decimal:
        """Top-level read for the codec's vendor.

        Vendors that report transient instability wait for a stable weight
        with re-requests; the others use a single request/read.
        """
        if self._codec.wait_for_stable:
            return self.await_stable_weight(resend=True)
        return self.read_weight()
