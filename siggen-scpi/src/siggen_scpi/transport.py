"""SCPI transport protocol definition.

This module defines the :class:`ScpiTransport` protocol, which specifies the
interface that all SCPI transport implementations must provide. Transports
handle the physical layer communication with instruments; they know nothing
about block framing, data formats or catalogs.

Implementations include:
- :class:`siggen_scpi.VisaResource`: PyVISA-backed transport for real hardware
- :class:`siggen_keysight.XsgEmulator`: in-process X-Series emulator for tests
"""

from __future__ import annotations

from typing import Protocol


class ScpiTransport(Protocol):
    """Protocol for SCPI message transport.

    Implementations provide the physical layer for sending commands to and
    receiving responses from SCPI instruments. Callers are responsible for
    opening the transport before passing it to :class:`ScpiConnection`.

    This is a structural subtyping protocol (duck typing). Any class that
    implements the methods and the ``timeout_ms`` property below with the
    correct signatures is considered a valid transport.

    Text methods append and strip the line terminator; raw methods move bytes
    unchanged. Timeouts surface as
    :class:`~siggen_scpi.errors.TransportTimeoutError`, other I/O failures as
    :class:`~siggen_scpi.errors.TransportError`.
    """

    @property
    def timeout_ms(self) -> int:
        """The I/O timeout in milliseconds applied to every blocking call."""
        ...

    @timeout_ms.setter
    def timeout_ms(self, value: int) -> None: ...

    def write(self, message: str) -> None:
        """Send a text message to the instrument.

        Args:
            message: The SCPI command or query string to send.
        """
        ...

    def read(self) -> str:
        """Read a text response from the instrument.

        Returns:
            The response string with the line terminator removed.
        """
        ...

    def write_raw(self, data: bytes) -> None:
        """Send bytes to the instrument without adding a terminator.

        Args:
            data: The complete message, including its terminator.
        """
        ...

    def read_raw(self) -> bytes:
        """Read the next chunk of response bytes.

        Returns:
            Bytes up to the next end-of-message indicator. An empty result
            means the instrument has nothing more to send.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources."""
        ...
