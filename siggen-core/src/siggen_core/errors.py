"""Exception types for siggen-core.

This module defines the root of the exception hierarchy used throughout the
siggen packages. All siggen exceptions inherit from SiggenError, allowing
consumers to catch every library-specific error with a single except clause.

Exception hierarchy:
    SiggenError (base)
    +-- ScpiError and subclasses (siggen-scpi): protocol, framing and bus errors
    +-- WaveformNotFoundError (siggen-keysight): missing waveform file
    +-- ConfigError (siggen-keysight): invalid configuration file
"""


class SiggenError(Exception):
    """Base exception for all siggen errors.

    This is the root of the siggen exception hierarchy. Catch this to handle
    any library-specific error.
    """
