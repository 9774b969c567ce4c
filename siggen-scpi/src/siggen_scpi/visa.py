"""PyVISA transport for SCPI instruments.

This module provides a VISA-based transport implementation for communicating
with SCPI instruments. It wraps the PyVISA library, which is lazily imported
to allow the rest of siggen-scpi to work without VISA installed.

Supported resource string formats include:
- TCPIP: ``TCPIP::192.168.1.100::INSTR`` (LAN instruments)
- USB: ``USB0::0x0957::0x1F01::MY12345678::0::INSTR``
- GPIB: ``GPIB0::19::INSTR``
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from siggen_scpi.errors import InstrumentConnectionError, TransportError, TransportTimeoutError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class VisaResource:
    """SCPI transport backed by PyVISA.

    Uses NI-style VISA resource strings (e.g.
    ``"TCPIP::192.168.1.100::INSTR"``) to address instruments.  The
    ``pyvisa`` library is imported lazily on :meth:`open` so the rest of
    ``siggen-scpi`` works without it installed.

    This class implements the :class:`ScpiTransport` protocol and can be
    passed to :class:`ScpiConnection` for high-level SCPI operations.

    VISA timeouts are reported as :class:`TransportTimeoutError` and other
    VISA I/O failures as :class:`TransportError`.

    Attributes:
        resource_string: The VISA resource address string.
        is_open: Whether the resource is currently open.
        timeout_ms: The I/O timeout in milliseconds.

    Args:
        resource_string: VISA resource address.
        timeout_ms: I/O timeout in milliseconds (applied on open).
        read_termination: Character(s) that terminate text read operations.
        write_termination: Character(s) appended to text write operations.

    Example:
        >>> resource = VisaResource("TCPIP::192.168.1.100::INSTR")
        >>> resource.open()
        >>> resource.write("*IDN?")
        >>> print(resource.read())
        >>> resource.close()
    """

    def __init__(
        self,
        resource_string: str,
        *,
        timeout_ms: int = 2000,
        read_termination: str = "\n",
        write_termination: str = "\n",
    ) -> None:
        """Initialize the VISA resource.

        Args:
            resource_string: VISA resource address string.
            timeout_ms: I/O timeout in milliseconds. Defaults to 2000.
            read_termination: Character(s) that terminate text read
                operations. Defaults to newline.
            write_termination: Character(s) appended to text write
                operations. Defaults to newline.
        """
        self._resource_string = resource_string
        self._timeout_ms = timeout_ms
        self._read_termination = read_termination
        self._write_termination = write_termination
        self._rm: Any = None
        self._resource: Any = None
        self._visa_io_error: type[BaseException] | None = None
        self._timeout_code: Any = None
        self._exclusive_lock: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    @property
    def timeout_ms(self) -> int:
        """The I/O timeout in milliseconds."""
        if self._resource is not None:
            return int(self._resource.timeout)
        return self._timeout_ms

    @timeout_ms.setter
    def timeout_ms(self, value: int) -> None:
        self._timeout_ms = value
        if self._resource is not None:
            self._resource.timeout = value

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Lazily imports ``pyvisa`` and creates a :class:`ResourceManager`.
        The resource is opened without a lock.

        Raises:
            InstrumentConnectionError: If ``pyvisa`` is not installed or the
                resource cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise InstrumentConnectionError(
                "pyvisa library is not installed. Install with: pip install pyvisa"
            ) from exc

        self._visa_io_error = pyvisa.errors.VisaIOError
        self._timeout_code = pyvisa.constants.StatusCode.error_timeout
        self._exclusive_lock = pyvisa.constants.AccessModes.exclusive_lock

        try:
            self._rm = pyvisa.ResourceManager()
            self._resource = self._rm.open_resource(
                self._resource_string,
                read_termination=self._read_termination,
                write_termination=self._write_termination,
            )
            self._resource.timeout = self._timeout_ms
        except Exception as exc:
            self._resource = None
            if self._rm is not None:
                try:
                    self._rm.close()
                except Exception:  # pylint: disable=broad-except
                    logger.debug("Ignoring resource manager close failure after open error")
            self._rm = None
            raise InstrumentConnectionError(
                f"Error connecting to {self._resource_string!r}: {exc}"
            ) from exc
        logger.debug("Opened VISA resource %s", self._resource_string)

    def close(self) -> None:
        """Release the VISA resource and resource manager.

        Teardown unlocks the resource if it holds an exclusive lock, clears
        the device, closes the resource and finally closes the resource
        manager. The resource and the resource manager are always closed,
        even if an earlier step fails. A failing step raises an
        :class:`InstrumentConnectionError` naming the step. When several
        steps fail, the first failure is raised and the later ones are
        logged.

        Closing a resource that is not open does nothing.

        Raises:
            InstrumentConnectionError: If a teardown step fails.
        """
        resource, rm = self._resource, self._rm
        self._resource = None
        self._rm = None
        failures: list[InstrumentConnectionError] = []
        if resource is not None:
            self._teardown_step("unlocking", lambda: self._unlock(resource), failures)
            # A device that could not be unlocked is not cleared
            if not failures:
                self._teardown_step("clearing", resource.clear, failures)
            self._teardown_step("closing", resource.close, failures)
        if rm is not None:
            self._teardown_step("releasing the resource manager for", rm.close, failures)
        if failures:
            for later in failures[1:]:
                logger.warning("%s", later)
            raise failures[0]
        logger.debug("Closed VISA resource %s", self._resource_string)

    # -- Transport interface -------------------------------------------------

    def write(self, message: str) -> None:
        """Send a text message to the instrument.

        Args:
            message: The SCPI command or query string.

        Raises:
            InstrumentConnectionError: If the resource is not open.
            TransportError: If the VISA write fails.
        """
        resource = self._require_open()
        self._io("write", resource.write, message)

    def read(self) -> str:
        """Read a text response from the instrument.

        Returns:
            The response string.

        Raises:
            InstrumentConnectionError: If the resource is not open.
            TransportTimeoutError: If no response arrives within the timeout.
            TransportError: If the VISA read fails.
        """
        resource = self._require_open()
        result: str = self._io("read", resource.read)
        return result

    def write_raw(self, data: bytes) -> None:
        """Send raw bytes to the instrument.

        Args:
            data: Complete message bytes, including the terminator.

        Raises:
            InstrumentConnectionError: If the resource is not open.
            TransportError: If the VISA write fails.
        """
        resource = self._require_open()
        self._io("raw write", resource.write_raw, data)

    def read_raw(self) -> bytes:
        """Read raw bytes up to the next end-of-message indicator.

        Returns:
            The bytes received.

        Raises:
            InstrumentConnectionError: If the resource is not open.
            TransportTimeoutError: If no data arrives within the timeout.
            TransportError: If the VISA read fails.
        """
        resource = self._require_open()
        result: bytes = self._io("raw read", resource.read_raw)
        return result

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> Any:
        if self._resource is None:
            raise InstrumentConnectionError(
                f"VISA resource {self._resource_string!r} is not open"
            )
        return self._resource

    def _io(self, operation: str, func: Callable[..., _T], *args: Any) -> _T:
        """Run a VISA call, translating VISA errors into transport errors."""
        if self._visa_io_error is None:
            raise InstrumentConnectionError(
                f"VISA resource {self._resource_string!r} is not open"
            )
        try:
            return func(*args)
        except self._visa_io_error as exc:
            if getattr(exc, "error_code", None) == self._timeout_code:
                raise TransportTimeoutError(
                    f"Timeout during {operation} on {self._resource_string!r} "
                    f"after {self._timeout_ms} ms"
                ) from exc
            raise TransportError(
                f"VISA {operation} failed on {self._resource_string!r}: {exc}"
            ) from exc

    def _unlock(self, resource: Any) -> None:
        if resource.lock_state == self._exclusive_lock:
            resource.unlock()

    def _teardown_step(
        self, step: str, func: Callable[[], Any], failures: list[InstrumentConnectionError]
    ) -> None:
        try:
            func()
        except Exception as exc:  # pylint: disable=broad-except
            error = InstrumentConnectionError(
                f"Error {step} VISA resource {self._resource_string!r}: {exc}"
            )
            error.__cause__ = exc
            failures.append(error)
