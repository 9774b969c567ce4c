"""SCPI connection with data-format tracking and block I/O.

This module provides the :class:`ScpiConnection` class, which wraps a
transport layer to provide high-level SCPI operations: text commands and
queries, IEEE 488.2 binary block writes and reads decoded according to the
negotiated ``FORM:DATA`` format, scoped timeout overrides, memory catalog
queries and instrument identification.

Typical usage::

    from siggen_scpi import DataFormat, ScpiConnection

    with ScpiConnection.connect("TCPIP::192.168.1.50::INSTR") as conn:
        identity = conn.identify()
        conn.set_data_format(DataFormat.FLOAT32)
        result = conn.query_block("TRAC:DATA?")
        conn.wait_complete(timeout_ms=10_000)
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar, cast

from siggen_core.types.common import InstrumentIdentity

from siggen_scpi.block import decode_block, frame_command, parse_block_header, unpack_values
from siggen_scpi.catalog import CatalogEntry, parse_catalog
from siggen_scpi.errors import (
    InstrumentConnectionError,
    ScpiError,
    ScpiParseError,
    ScpiValidationError,
)
from siggen_scpi.formats import AsciiResponse, BlockResult, DataFormat, make_block_result
from siggen_scpi.timeout import min_timeout
from siggen_scpi.visa import VisaResource

if TYPE_CHECKING:
    from siggen_scpi.transport import ScpiTransport

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a SCPI ``*IDN?`` response into an :class:`InstrumentIdentity`.

    The standard ``*IDN?`` response format is four comma-separated fields::

        company,model,serial_number,firmware_version

    The company field is kept as sent, since manufacturer names contain
    spaces. Manufacturers pad the remaining fields inconsistently, so every
    space is removed from them::

        Agilent Technologies, N5182A, US51990230, A.01.86

    Fields beyond the fourth are ignored.

    Args:
        response: The raw ``*IDN?`` response string.

    Returns:
        Parsed identity with company, model, serial, and firmware.

    Raises:
        ScpiParseError: If the response has fewer than four fields.
    """
    parts = response.strip("\r\n").split(",")
    if len(parts) < 4:
        raise ScpiParseError(
            f"Expected at least 4 comma-separated fields in *IDN? response, "
            f"got {len(parts)}: {response!r}"
        )
    model, serial, firmware = (part.replace(" ", "") for part in parts[1:4])
    return InstrumentIdentity(company=parts[0], model=model, serial=serial, firmware=firmware)


def _with_identity(method: _F) -> _F:
    """Attach the connection's identity to any :class:`ScpiError` raised by *method*."""

    @functools.wraps(method)
    def wrapper(self: ScpiConnection, *args: Any, **kwargs: Any) -> Any:
        try:
            return method(self, *args, **kwargs)
        except ScpiError as exc:
            if exc.identity is None:
                exc.identity = self._identity
            raise

    return cast(_F, wrapper)


class ScpiConnection:
    """High-level SCPI connection wrapping a transport.

    The connection exclusively owns its transport and is either open or
    closed; :meth:`close` releases the transport and may only be called once.
    It tracks the numeric transfer format negotiated with ``FORM:DATA`` and
    decodes block responses accordingly.

    Operations are strictly synchronous: each issues one write and at most one
    logical read. The connection performs no locking, so a single connection
    must not be used from several threads at once.

    Errors raised after :meth:`identify` has succeeded carry the instrument
    identity, and their message is prefixed with ``[model,serial]``.

    Args:
        transport: An open :class:`ScpiTransport` instance.
        address: Address the transport was opened with, for messages.
        byte_order: :mod:`struct` byte order of binary blocks, ``">"``
            (``FORM:BORD NORM``, the default) or ``"<"`` (``FORM:BORD SWAP``).
        termination: Terminator appended to raw block writes.

    Example:
        >>> conn = ScpiConnection(transport)
        >>> conn.reset()  # Send *RST
        >>> frequency = conn.query("FREQ?")
        >>> print(f"Frequency: {frequency} Hz")
    """

    def __init__(
        self,
        transport: ScpiTransport,
        *,
        address: str = "",
        byte_order: str = ">",
        termination: bytes = b"\n",
    ) -> None:
        """Initialize the SCPI connection.

        Args:
            transport: An open transport implementing :class:`ScpiTransport`.
            address: Address the transport was opened with.
            byte_order: Byte order of binary blocks, ``">"`` or ``"<"``.
            termination: Terminator appended to raw block writes.

        Raises:
            ScpiValidationError: If *byte_order* is not ``">"`` or ``"<"``.
        """
        if byte_order not in (">", "<"):
            raise ScpiValidationError(f"byte_order must be '>' or '<', got {byte_order!r}")
        self._transport = transport
        self._address = address
        self._byte_order = byte_order
        self._termination = termination
        self._data_format = DataFormat.ASCII
        self._identity: InstrumentIdentity | None = None
        self._closed = False

    @classmethod
    def connect(
        cls,
        address: str,
        *,
        timeout_ms: int = 2000,
        read_termination: str = "\n",
        write_termination: str = "\n",
        byte_order: str = ">",
    ) -> ScpiConnection:
        """Open a VISA session to *address* and wrap it in a connection.

        Args:
            address: VISA resource string.
            timeout_ms: Initial I/O timeout in milliseconds.
            read_termination: Text read terminator.
            write_termination: Text write terminator.
            byte_order: Byte order of binary blocks.

        Returns:
            An open connection. The identity is not queried; call
            :meth:`identify` to populate it.

        Raises:
            InstrumentConnectionError: If the session cannot be opened.
        """
        resource = VisaResource(
            address,
            timeout_ms=timeout_ms,
            read_termination=read_termination,
            write_termination=write_termination,
        )
        resource.open()
        logger.info("Connected to %s", address)
        return cls(
            resource,
            address=address,
            byte_order=byte_order,
            termination=write_termination.encode("ascii"),
        )

    # -- Properties ----------------------------------------------------------

    @property
    def address(self) -> str:
        """The address the transport was opened with."""
        return self._address

    @property
    def is_open(self) -> bool:
        """Return True until :meth:`close` has been called."""
        return not self._closed

    @property
    def identity(self) -> InstrumentIdentity | None:
        """The identity from the last :meth:`identify`, or None."""
        return self._identity

    @property
    def data_format(self) -> DataFormat:
        """The numeric transfer format last negotiated with the instrument."""
        return self._data_format

    @property
    def byte_order(self) -> str:
        """The :mod:`struct` byte order used for binary blocks."""
        return self._byte_order

    @property
    def timeout_ms(self) -> int:
        """The transport I/O timeout in milliseconds."""
        return self._require_open().timeout_ms

    @timeout_ms.setter
    def timeout_ms(self, value: int) -> None:
        if value <= 0:
            raise ScpiValidationError(f"Timeout must be > 0 ms, got {value}")
        self._require_open().timeout_ms = value

    # -- Data format ---------------------------------------------------------

    @_with_identity
    def set_data_format(self, fmt: DataFormat | str) -> None:
        """Negotiate the numeric transfer format (``FORM:DATA``).

        The new format is stored only if the command was sent successfully.
        The instrument is not queried to confirm it accepted the format.

        Args:
            fmt: A :class:`DataFormat` or its name (e.g. ``"REAL,32"``,
                ``"float32"``).

        Raises:
            ScpiValidationError: If *fmt* names no known format.
        """
        if isinstance(fmt, str):
            try:
                fmt = DataFormat.from_name(fmt)
            except ValueError as exc:
                raise ScpiValidationError(str(exc)) from None
        self.command(f"FORM:DATA {fmt.scpi_argument}")
        self._data_format = fmt
        logger.debug("Data format set to %s", fmt.name)

    # -- Core operations -----------------------------------------------------

    @_with_identity
    def command(self, cmd: str, data: bytes | None = None) -> None:
        """Send a SCPI command (no response expected).

        Args:
            cmd: The SCPI command string (e.g. ``"*RST"``). When *data* is
                given this is the prefix written before the block.
            data: Optional binary payload sent as a definite-length block.
        """
        transport = self._require_open()
        if data is None:
            logger.debug("-> %s", cmd)
            transport.write(cmd)
            return
        message = frame_command(cmd, data, self._termination)
        logger.debug("-> %s<block of %d bytes>", cmd, len(data))
        transport.write_raw(message)

    @_with_identity
    def query(self, cmd: str) -> str:
        """Send a SCPI query and return the text response.

        Args:
            cmd: The SCPI query string (e.g. ``"*IDN?"``).

        Returns:
            The instrument response with surrounding whitespace stripped.
        """
        self.command(cmd)
        return self._require_open().read().strip()

    @_with_identity
    def query_block(self, cmd: str, data: bytes | None = None) -> BlockResult:
        """Send a query and decode the response according to :attr:`data_format`.

        Args:
            cmd: The SCPI query string.
            data: Optional binary payload sent with the query.

        Returns:
            :class:`AsciiResponse` in ASCII format, otherwise the typed block
            for the current format.
        """
        self.command(cmd, data)
        return self.read_block()

    # -- Reads ---------------------------------------------------------------

    @_with_identity
    def read_string(self, timeout_ms: int | None = None) -> str:
        """Read a text response.

        Args:
            timeout_ms: Optional minimum timeout for this read only.

        Returns:
            The response with the line terminator removed.
        """
        transport = self._require_open()
        if timeout_ms is None:
            return transport.read()
        with min_timeout(transport, timeout_ms):
            return transport.read()

    @_with_identity
    def read_block(self) -> BlockResult:
        """Read a response and decode it according to :attr:`data_format`."""
        fmt = self._data_format
        if fmt is DataFormat.ASCII:
            return AsciiResponse(self._require_open().read().rstrip("\r\n"))
        return self._read_typed_block(fmt)

    @_with_identity
    def read_bytes(self) -> bytes:
        """Read a block response as raw bytes, regardless of :attr:`data_format`."""
        return self._read_block_payload()

    @_with_identity
    def read_int32_block(self) -> tuple[int, ...]:
        """Read a block of 4-byte signed integers, regardless of :attr:`data_format`."""
        return cast("tuple[int, ...]", self._read_typed_block(DataFormat.INT32).values)

    @_with_identity
    def read_float32_block(self) -> tuple[float, ...]:
        """Read a block of 4-byte floats, regardless of :attr:`data_format`."""
        return cast("tuple[float, ...]", self._read_typed_block(DataFormat.FLOAT32).values)

    @_with_identity
    def read_float64_block(self) -> tuple[float, ...]:
        """Read a block of 8-byte floats, regardless of :attr:`data_format`."""
        return cast("tuple[float, ...]", self._read_typed_block(DataFormat.FLOAT64).values)

    # -- Timeouts ------------------------------------------------------------

    @contextmanager
    def min_timeout(self, required_ms: int) -> Iterator[int]:
        """Raise the timeout to at least *required_ms* inside a ``with`` block.

        The original timeout is restored on exit, including when the block
        raises. A longer timeout already in effect is left alone.

        Yields:
            The effective timeout in milliseconds.
        """
        with min_timeout(self._require_open(), required_ms) as effective:
            yield effective

    # -- IEEE 488.2 convenience methods --------------------------------------

    @_with_identity
    def identify(self) -> InstrumentIdentity:
        """Query and parse the instrument identification (``*IDN?``).

        The parsed identity replaces any previous one.

        Returns:
            Parsed :class:`InstrumentIdentity`.
        """
        identity = parse_idn_response(self.query("*IDN?"))
        self._identity = identity
        logger.info(
            "Identified %s %s (serial %s, firmware %s)",
            identity.company,
            identity.model,
            identity.serial,
            identity.firmware,
        )
        return identity

    def reset(self) -> None:
        """Send a reset command (``*RST``)."""
        self.command("*RST")

    def clear_status(self) -> None:
        """Clear the status registers and error queue (``*CLS``)."""
        self.command("*CLS")

    @_with_identity
    def wait_complete(self, timeout_ms: int | None = None) -> str:
        """Wait for all pending operations to complete (``*OPC?``).

        Args:
            timeout_ms: Optional minimum timeout for the wait. The connection
                timeout is raised for the duration of the wait only.

        Returns:
            The instrument acknowledgement (normally ``"1"``).

        Raises:
            TransportTimeoutError: If the instrument does not answer in time.
        """
        if timeout_ms is None:
            return self.query("*OPC?")
        with self.min_timeout(timeout_ms):
            return self.query("*OPC?")

    # -- Catalogs ------------------------------------------------------------

    @_with_identity
    def get_catalog(self, catalog_name: str) -> tuple[CatalogEntry, ...]:
        """Query and parse a memory catalog (``MMEM:CAT?``).

        Catalog listings are text whatever the current data format.

        Args:
            catalog_name: Catalog to list, e.g. ``"SNVWFM"``.

        Returns:
            The catalog entries in instrument order.

        Raises:
            ScpiParseError: If the listing is malformed.
        """
        return parse_catalog(self.query(f"MMEM:CAT? '{catalog_name}'"))

    # -- Lifecycle -----------------------------------------------------------

    @_with_identity
    def close(self) -> None:
        """Close the underlying transport.

        Raises:
            InstrumentConnectionError: If the connection is already closed or
                a transport teardown step fails.
        """
        if self._closed:
            raise InstrumentConnectionError(f"Connection to {self._address!r} is already closed")
        self._closed = True
        self._transport.close()
        logger.info("Closed connection to %s", self._address)

    def __enter__(self) -> ScpiConnection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._closed:
            self.close()

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> ScpiTransport:
        if self._closed:
            raise InstrumentConnectionError(f"Connection to {self._address!r} is closed")
        return self._transport

    def _read_block_payload(self) -> bytes:
        """Read one complete definite-length block and return its payload.

        Chunks are read until the declared length and the message terminator
        have arrived, so nothing of the response is left on the bus. Partial
        data is discarded if the block turns out to be malformed or truncated.
        """
        transport = self._require_open()
        buffer = bytearray()
        end: int | None = None
        while True:
            chunk = transport.read_raw()
            if not chunk:
                break
            buffer += chunk
            if end is None:
                header = parse_block_header(bytes(buffer))
                if header is not None:
                    end = header[0] + header[1]
            # The payload may itself end in 0x0A, which stops a terminated read
            # before the real terminator.
            if end is not None and len(buffer) >= end and buffer[end:] not in (b"", b"\r"):
                break
        payload = decode_block(bytes(buffer))
        logger.debug("<- block of %d bytes", len(payload))
        return payload

    def _read_typed_block(self, fmt: DataFormat) -> Any:
        values = unpack_values(self._read_block_payload(), fmt, self._byte_order)
        return make_block_result(fmt, values)
