"""In-process scale emulator implementing ``ScaleTransport``.

The emulator answers the ENQ weight request (``0x05``) with a frame in the
configured vendor's layout:

- Toledo: ``STX + field + ETX``
- Filizola: ``STX + field``

where ``field`` is a zero-padded 5-digit weight in grams or one of the
sentinel words ``IIIII``, ``NNNNN``, ``SSSSS``.

In *continuous* mode the emulator behaves like a scale that streams frames on
its own: every ``read()`` returns a fresh frame without a prior request.
"""

from __future__ import annotations

from decimal import Decimal

from hwscale.errors import TransportError
from hwscale.protocols import ENQ, FIELD_WIDTH, ScaleProtocol

STX = "\x02"
ETX = "\x03"

_MAX_GRAMS = 10**FIELD_WIDTH - 1


class ScaleEmulator:
    """Emulated Toledo or Filizola scale.

    Args:
        protocol: Vendor frame layout to produce.
        weight: Initial weight in kilograms.
        continuous: If True, ``read()`` always returns a frame, as if the
            scale were streaming.

    Attributes:
        requests: Number of weight requests received.
    """

    def __init__(
        self,
        protocol: ScaleProtocol = ScaleProtocol.TOLEDO,
        weight: Decimal | float | str = 0,
        *,
        continuous: bool = False,
    ) -> None:
        self._protocol = protocol
        self._continuous = continuous
        self._field = ""
        self._unstable_frames = 0
        self._buffer = b""
        self._open = False
        self.requests = 0
        self.set_weight(weight)

    # -- Transport interface -------------------------------------------------

    @property
    def is_connected(self) -> bool:
        """Return True between ``open()`` and ``close()``."""
        return self._open

    def open(self) -> None:
        """Open the emulated link."""
        self._open = True

    def close(self) -> None:
        """Close the emulated link and drop buffered output."""
        self._open = False
        self._buffer = b""

    def clear_input_buffer(self) -> None:
        """Drop any frame not yet read."""
        self._require_open()
        self._buffer = b""

    def write(self, data: bytes) -> None:
        """Queue one frame per ENQ byte received."""
        self._require_open()
        for _ in range(data.count(ENQ)):
            self.requests += 1
            self._buffer += self._next_frame()

    def read(self) -> bytes:
        """Return buffered frames, or a fresh frame in continuous mode."""
        self._require_open()
        if self._continuous and not self._buffer:
            return self._next_frame()
        data = self._buffer
        self._buffer = b""
        return data

    # -- Scale state ---------------------------------------------------------

    def set_weight(self, weight: Decimal | float | str) -> None:
        """Report a stable weight in kilograms (0 to 99.999)."""
        grams = int((Decimal(str(weight)) * 1000).to_integral_value())
        if not 0 <= grams <= _MAX_GRAMS:
            raise ValueError(f"Weight {weight} kg out of range for a {FIELD_WIDTH}-digit field")
        self._field = f"{grams:0{FIELD_WIDTH}d}"
        self._unstable_frames = 0

    def set_unstable(self, frames: int | None = None) -> None:
        """Report "unstable".

        Args:
            frames: Number of unstable frames before the scale settles back
                on its current weight. ``None`` keeps it unstable.
        """
        if frames is None:
            self._field = "I" * FIELD_WIDTH
            self._unstable_frames = 0
        else:
            self._unstable_frames = frames

    def set_negative(self) -> None:
        """Report a negative load."""
        self._field = "N" * FIELD_WIDTH
        self._unstable_frames = 0

    def set_overload(self) -> None:
        """Report an overload."""
        self._field = "S" * FIELD_WIDTH
        self._unstable_frames = 0

    def set_raw(self, field: str) -> None:
        """Report an arbitrary weight field (for malformed-frame tests)."""
        self._field = field
        self._unstable_frames = 0

    # -- Private helpers -----------------------------------------------------

    def _next_frame(self) -> bytes:
        field = self._field
        if self._unstable_frames > 0:
            self._unstable_frames -= 1
            field = "I" * FIELD_WIDTH
        if self._protocol is ScaleProtocol.TOLEDO:
            frame = STX + field + ETX
        else:
            frame = STX + field
        return frame.encode("ascii")

    def _require_open(self) -> None:
        if not self._open:
            raise TransportError("Scale emulator is not open")
