"""Keysight/Agilent X-Series signal generator driver.

Wraps a ``ScpiConnection`` with the waveform memory operations of the X-Series
signal generators (MXG N5182A/N5182B, EXG N5172B): downloading waveform
files, listing memory catalogs and loading or selecting ARB waveforms.

Memory catalogs used by these instruments:

- ``SNVWFM``: non-volatile waveform storage (all stored waveforms)
- ``SWFM1``: volatile waveform memory (waveforms loaded for playback)
- ``WFM1`` / ``NVWFM``: download targets for volatile / non-volatile memory
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from siggen_core import InstrumentIdentity
from siggen_scpi import (
    DEFAULT_DOWNLOAD_TIMEOUT_MS,
    ByteSource,
    CatalogEntry,
    DataFormat,
    ScpiConnection,
    WaveformDownload,
    catalog_contains,
)

from siggen_keysight.files import LocalFileSource

if TYPE_CHECKING:
    from siggen_keysight.config import SignalGeneratorConfig

MAX_WAVEFORM_NAME_LENGTH = 23
"""Longest waveform file name the X-Series firmware stores."""

VOLATILE_CATALOG = "SWFM1"
NONVOLATILE_CATALOG = "SNVWFM"
LOADED_CATALOG = "WFM1"


class XsgSignalGenerator:
    """High-level driver for Keysight X-Series signal generators.

    Args:
        connection: An open ``ScpiConnection`` to the instrument.
        source: Where waveform files are read from. Defaults to the local
            file system.
        download_timeout_ms: Default minimum timeout for download completion.
    """

    def __init__(
        self,
        connection: ScpiConnection,
        source: ByteSource | None = None,
        *,
        download_timeout_ms: int = DEFAULT_DOWNLOAD_TIMEOUT_MS,
    ) -> None:
        self._conn = connection
        self._source: ByteSource = source if source is not None else LocalFileSource()
        self._download_timeout_ms = download_timeout_ms

    @property
    def connection(self) -> ScpiConnection:
        """The underlying SCPI connection."""
        return self._conn

    # -- Identity / lifecycle -----------------------------------------------

    def identify(self) -> InstrumentIdentity:
        """Query and parse instrument identification (``*IDN?``).

        Returns:
            Parsed identity with company, model, serial, and firmware.
        """
        return self._conn.identify()

    @property
    def identity(self) -> InstrumentIdentity | None:
        """Identity from the last :meth:`identify`, or None."""
        return self._conn.identity

    def reset(self) -> None:
        """Reset to factory defaults (``*RST``) and clear the error queue."""
        self._conn.reset()
        self.clear_errors()

    def clear_errors(self) -> None:
        """Clear the status registers and error queue (``*CLS``)."""
        self._conn.clear_status()

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    # -- Data format --------------------------------------------------------

    @property
    def data_format(self) -> DataFormat:
        """Numeric transfer format currently in effect."""
        return self._conn.data_format

    def set_data_format(self, fmt: DataFormat | str) -> None:
        """Select the numeric transfer format (``FORM:DATA``)."""
        self._conn.set_data_format(fmt)

    # -- Waveform download --------------------------------------------------

    def download_waveform(
        self,
        catalog: str,
        name: str,
        path: str,
        timeout_ms: int | None = None,
    ) -> None:
        """Download a waveform file into instrument memory.

        Args:
            catalog: Target catalog, ``"WFM1"`` (volatile) or ``"NVWFM"``
                (non-volatile).
            name: Name to store the waveform under (at most 23 characters).
            path: Waveform file path, resolved by the byte source.
            timeout_ms: Minimum timeout for the completion wait. Defaults to
                the driver's download timeout.

        Raises:
            ScpiValidationError: If *name* is empty or too long.
            WaveformNotFoundError: If the file does not exist.
            TransportTimeoutError: If the instrument does not confirm in time.
        """
        download = WaveformDownload(
            self._conn, self._source, max_name_length=MAX_WAVEFORM_NAME_LENGTH
        )
        download.run(
            catalog,
            name,
            path,
            timeout_ms if timeout_ms is not None else self._download_timeout_ms,
        )

    # -- Catalogs -----------------------------------------------------------

    def get_memory_catalog(self, catalog_name: str) -> tuple[CatalogEntry, ...]:
        """List a memory catalog (``MMEM:CAT?``).

        Args:
            catalog_name: Catalog to list, e.g. ``"SNVWFM"``.
        """
        return self._conn.get_catalog(catalog_name)

    def is_in_catalog(self, catalog_name: str, waveform_name: str, size: int | None = None) -> bool:
        """Check whether a catalog lists *waveform_name* (case-insensitive).

        Args:
            catalog_name: Catalog to search.
            waveform_name: Waveform file name.
            size: If given, the file must also have exactly this size in bytes.
        """
        return catalog_contains(self.get_memory_catalog(catalog_name), waveform_name, size)

    def is_in_volatile_memory(self, waveform_name: str) -> bool:
        """Check whether a waveform is loaded in volatile (playback) memory."""
        return self.is_in_catalog(VOLATILE_CATALOG, waveform_name)

    def is_in_nonvolatile_memory(self, waveform_name: str) -> bool:
        """Check whether a waveform is stored in non-volatile memory."""
        return self.is_in_catalog(NONVOLATILE_CATALOG, waveform_name)

    def has_waveform(self, waveform_name: str) -> bool:
        """Check whether a waveform is in volatile or non-volatile memory."""
        name = waveform_name.upper()
        return self.is_in_volatile_memory(name) or self.is_in_nonvolatile_memory(name)

    def is_waveform_loaded(self, waveform_name: str) -> bool:
        """Check whether a waveform is listed in the loaded waveform catalog."""
        return self.is_in_catalog(LOADED_CATALOG, waveform_name.upper())

    # -- ARB waveform selection ---------------------------------------------

    def load_waveform(self, waveform_name: str) -> None:
        """Copy a stored waveform into volatile memory for playback.

        Args:
            waveform_name: Name of a waveform in ``SNVWFM``.
        """
        self._conn.command(
            f'MEM:COPY "{NONVOLATILE_CATALOG}:{waveform_name}",'
            f'"{VOLATILE_CATALOG}:{waveform_name}"'
        )

    def select_waveform(self, waveform_name: str) -> None:
        """Select the waveform played by the ARB (``SOUR:RAD:ARB:WAV``).

        Args:
            waveform_name: Name of a waveform in volatile memory.
        """
        self._conn.command(f'SOUR:RAD:ARB:WAV "{waveform_name}"')


def create_instrument(
    visa_address: str,
    *,
    timeout_ms: int = 2000,
    waveform_dir: str | None = None,
    download_timeout_ms: int = DEFAULT_DOWNLOAD_TIMEOUT_MS,
) -> XsgSignalGenerator:
    """Create an X-Series driver from a VISA address.

    Opens the VISA resource, wraps it in a :class:`ScpiConnection`, reads the
    instrument identity and returns a ready-to-use driver.

    Args:
        visa_address: VISA resource string
            (e.g. ``"TCPIP::192.168.1.50::INSTR"``).
        timeout_ms: Connection I/O timeout in milliseconds.
        waveform_dir: Directory relative waveform paths are resolved against.
        download_timeout_ms: Default minimum timeout for download completion.

    Returns:
        Connected, identified driver instance.
    """
    conn = ScpiConnection.connect(visa_address, timeout_ms=timeout_ms)
    generator = XsgSignalGenerator(
        conn,
        LocalFileSource(waveform_dir),
        download_timeout_ms=download_timeout_ms,
    )
    _initialize_or_close(generator)
    return generator


def create_instrument_from_config(config: SignalGeneratorConfig) -> XsgSignalGenerator:
    """Create an X-Series driver from a loaded configuration.

    Connects, identifies the instrument and applies the configured data
    format.

    Args:
        config: Parsed signal generator configuration.

    Returns:
        Connected, identified driver instance.
    """
    conn = ScpiConnection.connect(
        config.address,
        timeout_ms=config.timeout_ms,
        read_termination=config.read_termination,
        write_termination=config.write_termination,
    )
    generator = XsgSignalGenerator(
        conn,
        LocalFileSource(config.waveform_dir),
        download_timeout_ms=config.download_timeout_ms,
    )
    _initialize_or_close(generator, config.data_format)
    return generator


def _initialize_or_close(
    generator: XsgSignalGenerator, data_format: DataFormat = DataFormat.ASCII
) -> None:
    """Identify a freshly connected instrument and apply its data format.

    The session is closed if either step fails.
    """
    try:
        generator.identify()
        if data_format is not DataFormat.ASCII:
            generator.set_data_format(data_format)
    except BaseException:
        generator.close()
        raise
