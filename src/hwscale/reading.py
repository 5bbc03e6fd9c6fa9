"""Weight reading record and sentinel weight values.

A scale reports either a measured weight or one of a small vocabulary of
non-numeric states (unstable, negative, overload). Those states are encoded
as negative *sentinel* weights rather than measurements:

===========  =====  ==================================================
Constant     Value  Meaning
===========  =====  ==================================================
UNSTABLE     -1     Scale has not settled yet
NEGATIVE     -2     Load is below zero (tare larger than load)
READ_FAILED  -9     Response could not be read or decoded
OVERLOAD     -10    Load exceeds the scale capacity
===========  =====  ==================================================

An empty response decodes to a weight of zero and is not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

UNSTABLE = Decimal(-1)
NEGATIVE = Decimal(-2)
READ_FAILED = Decimal(-9)
OVERLOAD = Decimal(-10)

SENTINELS: frozenset[Decimal] = frozenset({UNSTABLE, NEGATIVE, READ_FAILED, OVERLOAD})

# Weights are reported in kilograms with gram resolution.
WEIGHT_QUANTUM = Decimal("0.001")


@dataclass(frozen=True)
class Reading:
    """Outcome of one completed read attempt.

    Exactly one of ``weight`` and ``error`` is set. A reading carrying a
    sentinel weight is still a successful read: the scale answered, it just
    did not report a measurement.

    Attributes:
        raw: Raw response text captured from the scale (may be empty).
        weight: Decoded weight in kilograms, or a sentinel value.
        error: Exception raised by the read, if it failed.
    """

    raw: str
    weight: Decimal | None = None
    error: BaseException | None = None

    def __post_init__(self) -> None:
        if (self.weight is None) == (self.error is None):
            raise ValueError("Reading requires exactly one of weight or error")

    @classmethod
    def of_weight(cls, raw: str, weight: Decimal) -> Reading:
        """Create a successful reading."""
        return cls(raw=raw, weight=weight)

    @classmethod
    def of_error(cls, raw: str, error: BaseException) -> Reading:
        """Create a failed reading."""
        return cls(raw=raw, error=error)

    @property
    def is_error(self) -> bool:
        """Return True if the read failed."""
        return self.error is not None

    @property
    def is_sentinel(self) -> bool:
        """Return True if the weight is a classification code, not a measurement."""
        return self.weight is not None and self.weight in SENTINELS

    @property
    def is_stable(self) -> bool:
        """Return True if the reading carries a real (non-negative) weight."""
        return self.weight is not None and self.weight >= 0

    def __str__(self) -> str:
        if self.error is not None:
            return f"error: {self.error} [{self.raw}]"
        return f"{self.weight} kg [{self.raw}]"


def describe_weight(weight: Decimal) -> str:
    """Return a human-readable label for a weight or sentinel.

    Args:
        weight: Decoded weight value.

    Returns:
        ``"unstable"``, ``"negative"``, ``"overload"``, ``"read failed"``, or
        the weight formatted in kilograms.
    """
    labels = {
        UNSTABLE: "unstable",
        NEGATIVE: "negative",
        READ_FAILED: "read failed",
        OVERLOAD: "overload",
    }
    label = labels.get(weight)
    if label is not None:
        return label
    return f"{weight:.3f} kg"
