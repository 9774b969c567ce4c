"""SCPI protocol error types.

This module defines exception classes for errors that may occur while
communicating with instruments: bus and connection failures, IEEE 488.2 block
framing problems, malformed device responses and invalid arguments. All
exceptions inherit from :class:`siggen_core.errors.SiggenError`.

Exception hierarchy:
    ScpiError
    +-- InstrumentConnectionError: open/close/lock failures, use after close
    +-- TransportError: raw bus I/O failure
    |   +-- TransportTimeoutError: blocking call exceeded the bus timeout
    +-- BlockFramingError: malformed block header or trailing bytes
    |   +-- BlockTruncatedError: fewer payload bytes than declared
    |   +-- MalformedBlockError: payload length not a multiple of the element width
    +-- ScpiParseError: malformed catalog, ``*IDN?`` or numeric response
    +-- ScpiValidationError: invalid argument, raised before any I/O
"""

from __future__ import annotations

from siggen_core.errors import SiggenError
from siggen_core.types.common import InstrumentIdentity


class ScpiError(SiggenError):
    """Base exception for SCPI protocol errors.

    Errors raised through an identified :class:`ScpiConnection` carry the
    instrument identity so that failures can be attributed to a specific
    instrument when several are in use.

    Attributes:
        message: The error description without the identity prefix.
        identity: Identity of the instrument involved, if known.
    """

    def __init__(self, message: str = "", *, identity: InstrumentIdentity | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            identity: Identity of the instrument involved, if known.
        """
        super().__init__(message)
        self.message = message
        self.identity = identity

    def __str__(self) -> str:
        """Return the message, prefixed with ``[model,serial]`` when known."""
        if self.identity is None:
            return self.message
        return f"[{self.identity.label}] {self.message}"


class InstrumentConnectionError(ScpiError):
    """Raised when opening, closing or locking the instrument session fails.

    Also raised for any operation attempted on a connection that has already
    been closed, and for a second call to ``close()``.
    """


class TransportError(ScpiError):
    """Raised for raw I/O failures reported by the bus transport."""


class TransportTimeoutError(TransportError):
    """Raised when a blocking bus call exceeds the effective timeout."""


class BlockFramingError(ScpiError):
    """Raised for a malformed IEEE 488.2 definite-length block.

    Covers a missing ``#``, a non-numeric digit count or length field, and
    unexpected bytes after the payload.
    """


class BlockTruncatedError(BlockFramingError):
    """Raised when fewer payload bytes arrive than the block header declares."""


class MalformedBlockError(BlockFramingError):
    """Raised when a payload length is not a multiple of the element width."""


class ScpiParseError(ScpiError, ValueError):
    """Raised when a device response cannot be parsed.

    Typical causes are a catalog entry without exactly three fields, a
    non-numeric size field, or an ``*IDN?`` response with fewer than four
    fields.
    """


class ScpiValidationError(ScpiError):
    """Raised for an invalid argument, before any bus I/O takes place."""
