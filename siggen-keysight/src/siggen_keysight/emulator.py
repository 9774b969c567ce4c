"""Keysight X-Series signal generator emulator.

Provides an in-process SCPI emulator implementing the ``ScpiTransport``
protocol. It models the waveform memory of an MXG/EXG: block downloads with
``MEM:DATA``, catalog listings with ``MMEM:CAT?``, ``MEM:COPY`` between
catalogs and ARB waveform selection, plus ``FORM:DATA`` and the IEEE 488.2
common commands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from siggen_scpi import (
    BlockFramingError,
    DataFormat,
    InstrumentConnectionError,
    TransportTimeoutError,
    decode_block,
)

# ---------------------------------------------------------------------------
# Long-form -> short-form SCPI keyword map
# ---------------------------------------------------------------------------

_LONG_TO_SHORT: dict[str, str] = {
    "MEMORY": "MEM",
    "MMEMORY": "MMEM",
    "CATALOG": "CAT",
    "FORMAT": "FORM",
    "SOURCE": "SOUR",
    "RADIO": "RAD",
    "WAVEFORM": "WAV",
    "SYSTEM": "SYST",
    "ERROR": "ERR",
}

# Segments that are optional and should be stripped during normalization
_OPTIONAL_SEGMENTS: set[str] = {"SOUR"}

# Download targets and the catalogs they are listed under
_CATALOG_ALIASES: dict[str, str] = {
    "WFM1": "SWFM1",
    "NVWFM": "SNVWFM",
}

_TOTAL_MEMORY_BYTES = 1 << 30


def _normalize_header(header: str) -> str:
    """Normalize a SCPI header to canonical short form.

    1. Uppercase
    2. Strip leading colon
    3. Split on ``:``
    4. Map long forms to short forms
    5. Drop optional segments
    6. Rejoin with ``:``
    """
    upper = header.upper()
    if upper.startswith(":"):
        upper = upper[1:]
    segments = upper.split(":")
    short_segments = [_LONG_TO_SHORT.get(seg, seg) for seg in segments]
    filtered = [seg for seg in short_segments if seg not in _OPTIONAL_SEGMENTS]
    return ":".join(filtered)


def _canonical_catalog(name: str) -> str:
    upper = name.strip().rstrip(":").upper()
    return _CATALOG_ALIASES.get(upper, upper)


def _split_target(text: str) -> tuple[str, str] | None:
    """Split ``"CAT:NAME"`` (quotes optional) into catalog and file name."""
    target = text.strip().strip("\"'")
    if ":" not in target:
        return None
    catalog, name = target.split(":", 1)
    if not catalog or not name:
        return None
    return _canonical_catalog(catalog), name


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class XsgEmulatorConfig:
    """Configuration for an X-Series emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        catalogs: Names of the memory catalogs the instrument lists.
    """

    identity: str
    catalogs: tuple[str, ...] = ("SWFM1", "SNVWFM")

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if not self.catalogs:
            raise ValueError("catalogs must be non-empty")


@dataclass
class _MemoryState:
    catalogs: dict[str, dict[str, bytes]] = field(default_factory=dict)
    selected_waveform: str | None = None


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class XsgEmulator:
    """In-process X-Series signal generator emulator implementing ``ScpiTransport``.

    Waveform memory survives ``*RST``, as on the real instrument; the data
    format and the ARB selection do not.

    Args:
        config: Emulator configuration.
        timeout_ms: Initial I/O timeout in milliseconds.
    """

    def __init__(self, config: XsgEmulatorConfig, *, timeout_ms: int = 2000) -> None:
        self._config = config
        self._timeout_ms = timeout_ms
        self._memory = _MemoryState(catalogs={name: {} for name in config.catalogs})
        self._data_format = DataFormat.ASCII
        self._response_buffer: str = ""
        self._error_queue: list[tuple[int, str]] = []
        self._stall_completion = False
        self._completion_pending = False
        self._closed = False
        self.written: list[str] = []
        self.completion_timeouts: list[int] = []

        self._set_handlers: dict[str, Callable[[str], None]] = {
            "FORM:DATA": self._set_format,
            "FORM": self._set_format,
            "MEM:COPY": self._copy,
            "RAD:ARB:WAV": self._select_waveform,
        }

        self._query_handlers: dict[str, Callable[[str], str]] = {
            "FORM:DATA?": self._get_format,
            "FORM?": self._get_format,
            "MMEM:CAT?": self._list_catalog,
            "RAD:ARB:WAV?": self._get_selected_waveform,
            "SYST:ERR?": self._pop_error,
        }

    # -- Transport interface ------------------------------------------------

    @property
    def timeout_ms(self) -> int:
        """The emulated bus timeout in milliseconds."""
        return self._timeout_ms

    @timeout_ms.setter
    def timeout_ms(self, value: int) -> None:
        self._timeout_ms = value

    def write(self, message: str) -> None:
        """Process a SCPI command or query string."""
        self._require_open()
        line = message.strip()
        if not line:
            return
        self.written.append(line)

        is_query, header, args = self._parse_line(line)

        if self._handle_common_command(header):
            return

        self._dispatch(header, args, is_query)

    def write_raw(self, data: bytes) -> None:
        """Process a raw message, storing the waveform for ``MEM:DATA`` blocks."""
        self._require_open()
        hash_idx = data.find(b"#")
        if hash_idx < 0:
            self.write(data.decode("ascii"))
            return

        prefix = data[:hash_idx].decode("ascii")
        self.written.append(prefix + f"<block {len(data) - hash_idx} bytes>")
        _, header, args = self._parse_line(prefix.strip())
        if _normalize_header(header) != "MEM:DATA":
            self._error_queue.append((-100, "Command error"))
            return
        try:
            payload = decode_block(data[hash_idx:])
        except BlockFramingError:
            self._error_queue.append((-161, "Invalid block data"))
            return
        target = _split_target(args.rstrip().rstrip(","))
        if target is None:
            self._error_queue.append((-224, "Illegal parameter value"))
            return
        self.store_waveform(target[0], target[1], payload)

    def read(self) -> str:
        """Return and clear the buffered response.

        Raises:
            TransportTimeoutError: If completion is stalled and ``*OPC?`` is
                pending.
        """
        self._require_open()
        resp = self._response_buffer
        self._response_buffer = ""
        if self._completion_pending:
            self._completion_pending = False
            raise TransportTimeoutError(
                f"Timeout waiting for operation complete after {self._timeout_ms} ms"
            )
        return resp

    def read_raw(self) -> bytes:
        """Return the buffered response as terminated bytes."""
        return (self.read() + "\n").encode("ascii")

    def close(self) -> None:
        """Close the emulator."""
        self._closed = True

    # -- Test helpers -------------------------------------------------------

    @property
    def is_closed(self) -> bool:
        """Return True once :meth:`close` has been called."""
        return self._closed

    @property
    def data_format(self) -> DataFormat:
        """Format most recently set with ``FORM:DATA``."""
        return self._data_format

    @property
    def selected_waveform(self) -> str | None:
        """Waveform selected for ARB playback, if any."""
        return self._memory.selected_waveform

    def stall_completion(self, stalled: bool = True) -> None:
        """Make ``*OPC?`` time out instead of answering.

        Args:
            stalled: True to stall, False to answer normally again.
        """
        self._stall_completion = stalled

    def waveform(self, catalog: str, name: str) -> bytes | None:
        """Return the stored bytes of a waveform, or None if absent."""
        return self._memory.catalogs.get(_canonical_catalog(catalog), {}).get(name.upper())

    def store_waveform(self, catalog: str, name: str, data: bytes) -> None:
        """Place a waveform directly into a catalog.

        Args:
            catalog: Catalog or download target name.
            name: Waveform name.
            data: Waveform contents.
        """
        self._memory.catalogs.setdefault(_canonical_catalog(catalog), {})[name.upper()] = data

    # -- Private helpers ----------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise InstrumentConnectionError("Emulator is closed")

    def _parse_line(self, line: str) -> tuple[bool, str, str]:
        """Parse a SCPI line into (is_query, header, args)."""
        parts = line.split(None, 1)
        header = parts[0]
        args = parts[1] if len(parts) > 1 else ""
        return header.endswith("?"), header, args

    def _handle_common_command(self, header: str) -> bool:
        """Handle IEEE 488.2 common commands. Returns True if handled."""
        upper_header = header.upper()
        if upper_header == "*IDN?":
            self._response_buffer = self._config.identity
            return True
        if upper_header == "*OPC?":
            self.completion_timeouts.append(self._timeout_ms)
            if self._stall_completion:
                self._completion_pending = True
            else:
                self._response_buffer = "1"
            return True
        if upper_header == "*RST":
            self._reset()
            return True
        if upper_header == "*CLS":
            self._error_queue.clear()
            return True
        return False

    def _dispatch(self, header: str, args: str, is_query: bool) -> None:
        """Dispatch a normalized command or query to handler tables."""
        if is_query:
            norm_key = _normalize_header(header.rstrip("?")) + "?"
            query_handler = self._query_handlers.get(norm_key)
            if query_handler is not None:
                self._response_buffer = query_handler(args)
            else:
                self._error_queue.append((-113, "Undefined header"))
        else:
            norm_key = _normalize_header(header)
            set_handler = self._set_handlers.get(norm_key)
            if set_handler is not None:
                set_handler(args)
            else:
                self._error_queue.append((-113, "Undefined header"))

    def _reset(self) -> None:
        self._data_format = DataFormat.ASCII
        self._memory.selected_waveform = None

    def _pop_error(self, _args: str) -> str:
        if self._error_queue:
            code, msg = self._error_queue.pop(0)
            return f'{code},"{msg}"'
        return '+0,"No error"'

    # -- Set handlers -------------------------------------------------------

    def _set_format(self, args: str) -> None:
        try:
            self._data_format = DataFormat.from_name(args)
        except ValueError:
            self._error_queue.append((-224, "Illegal parameter value"))

    def _copy(self, args: str) -> None:
        parts = args.split(",")
        if len(parts) != 2:
            self._error_queue.append((-109, "Missing parameter"))
            return
        source = _split_target(parts[0])
        destination = _split_target(parts[1])
        if source is None or destination is None:
            self._error_queue.append((-224, "Illegal parameter value"))
            return
        data = self.waveform(*source)
        if data is None:
            self._error_queue.append((-256, "File name not found"))
            return
        self.store_waveform(destination[0], destination[1], data)

    def _select_waveform(self, args: str) -> None:
        name = args.strip().strip("\"'")
        if self.waveform("SWFM1", name) is None:
            self._error_queue.append((-256, "File name not found"))
            return
        self._memory.selected_waveform = name.upper()

    # -- Query handlers -----------------------------------------------------

    def _get_format(self, _args: str) -> str:
        return self._data_format.scpi_argument

    def _list_catalog(self, args: str) -> str:
        catalog = _canonical_catalog(args.strip().strip("\"'"))
        files = self._memory.catalogs.get(catalog, {})
        used = sum(len(data) for data in files.values())
        entries = [f'"{name},BIN,{len(data)}"' for name, data in files.items()]
        return ",".join([str(used), str(_TOTAL_MEMORY_BYTES - used), *entries])

    def _get_selected_waveform(self, _args: str) -> str:
        return f'"{self._memory.selected_waveform or ""}"'


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_mxg_emulator(serial: str = "US51990230") -> XsgEmulator:
    """Create an Agilent MXG N5182A emulator.

    Args:
        serial: Serial number for the ``*IDN?`` response.

    Returns:
        Configured emulator instance.
    """
    config = XsgEmulatorConfig(identity=f"Agilent Technologies, N5182A, {serial}, A.01.86")
    return XsgEmulator(config)


def make_exg_emulator(serial: str = "MY53050101") -> XsgEmulator:
    """Create a Keysight EXG N5172B emulator.

    Args:
        serial: Serial number for the ``*IDN?`` response.

    Returns:
        Configured emulator instance.
    """
    config = XsgEmulatorConfig(identity=f"Keysight Technologies,N5172B,{serial},B.01.51")
    return XsgEmulator(config)
