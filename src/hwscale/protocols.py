"""Vendor wire protocols for weighing scales.

Both supported vendors answer a single ENQ byte (``0x05``) with a short
ASCII frame carrying a 5-character weight field in grams. They differ only in
where that field sits at the end of the frame:

- Toledo: the 6 trailing characters with the last one (the ETX terminator)
  dropped, i.e. ``frame[-6:-1]``.
- Filizola: exactly the 5 trailing characters, i.e. ``frame[-5:]``.

The field is either a zero-padded integer number of grams or one of the
shared sentinel words ``IIIII`` (unstable), ``NNNNN`` (negative) and
``SSSSS`` (overload).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from hwscale.errors import ScaleFormatError, UnsupportedProtocolError
from hwscale.reading import NEGATIVE, OVERLOAD, UNSTABLE, WEIGHT_QUANTUM

if TYPE_CHECKING:
    from hwscale.transport import ScaleTransport

logger = logging.getLogger(__name__)

ENQ = b"\x05"
FIELD_WIDTH = 5

_SENTINEL_WORDS: dict[str, Decimal] = {
    "I" * FIELD_WIDTH: UNSTABLE,
    "N" * FIELD_WIDTH: NEGATIVE,
    "S" * FIELD_WIDTH: OVERLOAD,
}


class ScaleProtocol(Enum):
    """Supported vendor protocols."""

    TOLEDO = "toledo"
    FILIZOLA = "filizola"


def parse_protocol(value: str | ScaleProtocol) -> ScaleProtocol:
    """Parse a protocol name (case-insensitive) into a :class:`ScaleProtocol`.

    Raises:
        UnsupportedProtocolError: If the name is not a known protocol.
    """
    if isinstance(value, ScaleProtocol):
        return value
    try:
        return ScaleProtocol(str(value).strip().lower())
    except ValueError:
        known = ", ".join(p.value for p in ScaleProtocol)
        raise UnsupportedProtocolError(
            f"Unsupported scale protocol {value!r} (expected one of: {known})"
        ) from None


def decode_field(field: str, response: str) -> Decimal:
    """Decode a 5-character weight field.

    Args:
        field: The extracted weight field.
        response: The full response, for error reporting.

    Returns:
        Weight in kilograms, or a sentinel value.

    Raises:
        ScaleFormatError: If the field is neither a sentinel nor plain ASCII digits.
    """
    sentinel = _SENTINEL_WORDS.get(field)
    if sentinel is not None:
        return sentinel
    # Plain ASCII digits only; int() also accepts signs, underscores and spaces.
    if not (field.isascii() and field.isdigit()):
        raise ScaleFormatError(response, f"weight field {field!r} is not numeric")
    return (Decimal(int(field)) / 1000).quantize(WEIGHT_QUANTUM)


class ScaleCodec(ABC):
    """Request framing and response decoding shared by both vendors.

    Subclasses only choose where the weight field sits in the frame.

    Attributes:
        name: Short vendor name used in log messages.
        wait_for_stable: If True, a top-level read keeps re-requesting until
            the scale stops reporting "unstable" (bounded in time).
    """

    name = "scale"
    wait_for_stable = False

    def request_weight(self, transport: ScaleTransport) -> None:
        """Ask the scale for its current weight.

        Stale input is discarded immediately before the request is sent.
        """
        logger.debug("%s - TX: [0x05]", self.name)
        transport.clear_input_buffer()
        transport.write(ENQ)

    def decode(self, response: str) -> Decimal:
        """Decode a raw response into a weight or sentinel.

        An empty response means the scale produced no frame in time and
        decodes to zero.

        Raises:
            ScaleFormatError: If the response is too short or not numeric.
        """
        if not response:
            return Decimal(0)
        return decode_field(self.extract_field(response), response)

    @abstractmethod
    def extract_field(self, response: str) -> str:
        """Return the weight field of a non-empty response."""


class ToledoCodec(ScaleCodec):
    """Toledo protocol: weight field precedes a one-character terminator."""

    name = "toledo"

    def extract_field(self, response: str) -> str:
        if len(response) < FIELD_WIDTH + 1:
            raise ScaleFormatError(response, "frame too short")
        return response[-(FIELD_WIDTH + 1) : -1]


class FilizolaCodec(ScaleCodec):
    """Filizola protocol: weight field is the end of the frame.

    Filizola scales may answer "unstable" for a moment before settling, so
    top-level reads wait for a stable value.
    """

    name = "filizola"
    wait_for_stable = True

    def extract_field(self, response: str) -> str:
        if len(response) < FIELD_WIDTH:
            raise ScaleFormatError(response, "frame too short")
        return response[-FIELD_WIDTH:]


_CODECS: dict[ScaleProtocol, type[ScaleCodec]] = {
    ScaleProtocol.TOLEDO: ToledoCodec,
    ScaleProtocol.FILIZOLA: FilizolaCodec,
}


def create_codec(protocol: ScaleProtocol) -> ScaleCodec:
    """Instantiate the codec for a vendor protocol.

    Raises:
        UnsupportedProtocolError: If *protocol* is not a known protocol.
    """
    codec_class = _CODECS.get(protocol) if isinstance(protocol, ScaleProtocol) else None
    if codec_class is None:
        raise UnsupportedProtocolError(f"Unsupported scale protocol: {protocol!r}")
    return codec_class()
