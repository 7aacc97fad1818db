"""Instrument identity type."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification metadata.

    Represents the four standard fields returned by the SCPI ``*IDN?`` query.
    Drivers compare :attr:`model` against the model they support before
    issuing any other command.

    Attributes:
        manufacturer: Instrument manufacturer name (e.g., "Agilent Technologies").
        model: Instrument model number (e.g., "E8257D").
        serial: Serial number string.
        firmware: Firmware or hardware version string.

    Example:
        >>> identity = InstrumentIdentity(
        ...     manufacturer="Agilent Technologies",
        ...     model="E8257D",
        ...     serial="MY45141255",
        ...     firmware="C.06.10"
        ... )
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str

    def __str__(self) -> str:
        """Return a human-readable description of the instrument."""
        return f"{self.manufacturer} {self.model} (S/N {self.serial}, FW {self.firmware})"
