"""Core data types for siggen.

Submodules:
    common: Base types shared by every package (InstrumentIdentity)
"""

from siggen_core.types.common import InstrumentIdentity

__all__ = [
    "InstrumentIdentity",
]
