"""Waveform download protocol.

Downloading a waveform writes the file's bytes into instrument memory as a
single ``MEM:DATA`` command carrying a definite-length block, then waits for
``*OPC?`` to confirm the instrument has stored it::

    MEM:DATA "WFM1:RAMP",#48192<8192 bytes>\\n
    *OPC?
    1

Large files can take the instrument longer to commit than the connection's
normal timeout, so the completion wait runs under a scoped minimum timeout.
Nothing is retried: after a failed write the state of instrument memory is
unknown.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from siggen_scpi.errors import ScpiError, ScpiValidationError

if TYPE_CHECKING:
    from siggen_scpi.connection import ScpiConnection

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TIMEOUT_MS = 5000


class ByteSource(Protocol):
    """Protocol for loading waveform file contents."""

    def read_bytes(self, path: str) -> bytes:
        """Return the full contents of the file at *path*."""
        ...


class DownloadState(Enum):
    """Progress of a :class:`WaveformDownload`."""

    IDLE = "idle"
    SENDING = "sending"
    AWAITING_COMPLETION = "awaiting_completion"
    DONE = "done"
    FAILED = "failed"


class WaveformDownload:
    """Single-use transfer of one waveform file into instrument memory.

    The download moves through :class:`DownloadState` as
    ``IDLE -> SENDING -> AWAITING_COMPLETION -> DONE``; any error moves it to
    ``FAILED`` and propagates to the caller.

    Args:
        connection: Open connection to the instrument.
        source: Where waveform file bytes are loaded from.
        max_name_length: Longest waveform name the instrument accepts.

    Example:
        >>> download = WaveformDownload(conn, LocalFileSource(), max_name_length=23)
        >>> download.run("WFM1", "RAMP", "ramp.bin", timeout_ms=10_000)
        >>> download.state
        <DownloadState.DONE: 'done'>
    """

    def __init__(
        self, connection: ScpiConnection, source: ByteSource, *, max_name_length: int
    ) -> None:
        self._connection = connection
        self._source = source
        self._max_name_length = max_name_length
        self._state = DownloadState.IDLE

    @property
    def state(self) -> DownloadState:
        """Current progress of the download."""
        return self._state

    def run(
        self,
        catalog: str,
        name: str,
        path: str,
        timeout_ms: int = DEFAULT_DOWNLOAD_TIMEOUT_MS,
    ) -> None:
        """Send the waveform and wait for the instrument to confirm it.

        Args:
            catalog: Target memory catalog, e.g. ``"WFM1"`` or ``"NVWFM:"``.
                A trailing colon is ignored.
            name: Name to store the waveform under.
            path: Path of the waveform file, passed to the byte source.
            timeout_ms: Minimum timeout for the completion wait.

        Raises:
            ScpiValidationError: If the download was already run, or the name
                or timeout is invalid. Raised before any I/O.
            TransportTimeoutError: If the instrument does not confirm within
                the effective timeout.
        """
        if self._state is not DownloadState.IDLE:
            raise ScpiValidationError(f"Download already {self._state.value}; create a new one")
        try:
            self._validate(catalog, name, timeout_ms)
            data = self._source.read_bytes(path)
            command = f'MEM:DATA "{catalog.rstrip(":")}:{name}",'

            self._state = DownloadState.SENDING
            logger.debug("Sending %s (%d bytes) to %s", name, len(data), catalog)
            self._connection.command(command, data)

            self._state = DownloadState.AWAITING_COMPLETION
            self._connection.wait_complete(timeout_ms)
        except Exception as exc:
            self._state = DownloadState.FAILED
            if isinstance(exc, ScpiError) and exc.identity is None:
                exc.identity = self._connection.identity
            raise

        self._state = DownloadState.DONE
        logger.info("Downloaded waveform %s to %s (%d bytes)", name, catalog, len(data))

    def _validate(self, catalog: str, name: str, timeout_ms: int) -> None:
        if not catalog.rstrip(":"):
            raise ScpiValidationError("Catalog name must not be empty")
        if not name:
            raise ScpiValidationError("Waveform name must not be empty")
        if len(name) > self._max_name_length:
            raise ScpiValidationError(
                f"Waveform name {name!r} is too long "
                f"({len(name)} > {self._max_name_length} characters)"
            )
        if timeout_ms <= 0:
            raise ScpiValidationError(f"Timeout must be > 0 ms, got {timeout_ms}")
