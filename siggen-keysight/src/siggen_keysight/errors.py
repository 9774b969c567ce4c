"""Error types for the Keysight X-Series driver package."""

from __future__ import annotations

from siggen_core.errors import SiggenError


class WaveformNotFoundError(SiggenError, FileNotFoundError):
    """Raised when a waveform file to download does not exist."""


class ConfigError(SiggenError, ValueError):
    """Raised when a signal generator configuration is invalid.

    Typical causes are a file that is not a YAML mapping, a missing
    ``instrument.address`` or a value of the wrong type.
    """
