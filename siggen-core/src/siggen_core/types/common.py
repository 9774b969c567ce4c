"""Common types used across siggen packages.

Classes:
    InstrumentIdentity: Instrument identification metadata parsed from ``*IDN?``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification metadata.

    Represents the four standard fields returned by the SCPI ``*IDN?`` query.
    Instances are immutable; re-identifying an instrument replaces the whole
    record rather than updating individual fields.

    Attributes:
        company: Manufacturer name (e.g., "Agilent Technologies"). May contain
            spaces.
        model: Model number (e.g., "N5182A").
        serial: Serial number string (e.g., "US51990230").
        firmware: Firmware revision string (e.g., "A.01.86").

    Example:
        >>> identity = InstrumentIdentity(
        ...     company="Agilent Technologies",
        ...     model="N5182A",
        ...     serial="US51990230",
        ...     firmware="A.01.86",
        ... )
        >>> identity.label
        'N5182A,US51990230'
    """

    company: str
    model: str
    serial: str
    firmware: str

    @property
    def label(self) -> str:
        """Short ``model,serial`` tag used to disambiguate instruments in messages."""
        return f"{self.model},{self.serial}"
