"""Exception types for hwscale.

All hwscale exceptions inherit from :class:`HwscaleError`, allowing callers to
catch every driver-specific error with a single except clause.

Exception hierarchy:
    HwscaleError (base)
    +-- SessionStateError: Session lifecycle misuse
    |   +-- AlreadyConnectedError: connect() on an open session
    |   +-- NotConnectedError: operation requires an open session
    +-- UnsupportedProtocolError: Unknown vendor protocol at connect time
    +-- ProtocolLockedError: Protocol change while connected
    +-- TransportError: Serial/TCP transport failures
    +-- ScaleFormatError: Response could not be decoded as a weight
    +-- ConfigError: Invalid configuration data
"""

from __future__ import annotations


class HwscaleError(Exception):
    """Base exception for all hwscale errors."""


class SessionStateError(HwscaleError):
    """Raised when a session operation is invalid for the current state.

    The session state is left unchanged when this is raised.
    """


class AlreadyConnectedError(SessionStateError):
    """Raised by ``connect()`` when a transport is already open."""


class NotConnectedError(SessionStateError):
    """Raised when an operation requires an open transport."""


class UnsupportedProtocolError(HwscaleError):
    """Raised when the configured vendor protocol is not a known one."""


class ProtocolLockedError(HwscaleError):
    """Raised when changing the vendor protocol of a connected session."""


class TransportError(HwscaleError):
    """Raised when the underlying serial or TCP link fails.

    This may occur while opening the link, or during a read or write on a
    link that was lost.
    """


class ScaleFormatError(HwscaleError, ValueError):
    """Raised when a scale response is neither a sentinel nor a number.

    Attributes:
        response: The raw response text that failed to decode.
    """

    def __init__(self, response: str, reason: str = "not a valid weight") -> None:
        """Initialize the format error.

        Args:
            response: The raw response text.
            reason: Short description of why decoding failed.
        """
        self.response = response
        super().__init__(f"Invalid scale response {response!r}: {reason}")


class ConfigError(HwscaleError):
    """Raised for invalid or incomplete connection configuration."""
