"""Amplitude values in the canonical power unit.

The E8257D reports power in whatever unit ``:UNIT:POW`` currently selects.
Values of :class:`Amplitude` are always expressed in dBm; the driver pins
the unit to ``DBM`` before reading them.
"""

from __future__ import annotations

from dataclasses import dataclass

from rfbench_scpi.codec import format_number, parse_number

CANONICAL_UNIT = "DBM"


@dataclass(frozen=True, order=True)
class Amplitude:
    """An RF power level in dBm.

    Attributes:
        dbm: Power level in dBm.
    """

    dbm: float

    def __str__(self) -> str:
        """Return the SCPI argument form, e.g. ``-10.0 DBM``."""
        return f"{format_number(self.dbm)} {CANONICAL_UNIT}"


def parse_amplitude(text: str) -> Amplitude:
    """Parse a power reply expressed in dBm.

    Accepts a bare number (``"-1.000000000E+001"``) or a number followed by
    an explicit ``DBM`` suffix.

    Raises:
        ValueError: If the reply is not a number, or names a different unit.
    """
    token = text.strip()
    parts = token.split()
    if len(parts) == 2:
        if parts[1].upper() != CANONICAL_UNIT:
            raise ValueError(f"Amplitude not in {CANONICAL_UNIT}: {text!r}")
        token = parts[0]
    return Amplitude(parse_number(token))
