"""Core library for signal generator control.

This package provides the foundational data types and error types shared by
the siggen packages. It has no external dependencies (stdlib-only) so it can
serve as the base layer for the SCPI core and the instrument drivers.

Key components:
    - Types: InstrumentIdentity, the parsed ``*IDN?`` record.
    - Errors: SiggenError, the root of the exception hierarchy.

Example:
    >>> from siggen_core import InstrumentIdentity
    >>> identity = InstrumentIdentity("Agilent Technologies", "N5182A", "US51990230", "A.01.86")
    >>> print(identity.label)
"""

from siggen_core.errors import SiggenError
from siggen_core.types import InstrumentIdentity

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Common types
    "InstrumentIdentity",
    # Errors
    "SiggenError",
]
