"""SCPI protocol library for signal generator control.

This package provides the SCPI communication core used by the instrument
drivers. It includes:

- Transport abstraction for SCPI message passing
- PyVISA-backed transport for real instruments
- Connection with data-format tracking, block I/O and scoped timeouts
- IEEE 488.2 definite-length block codec
- Memory catalog and ``*IDN?`` response parsing
- Waveform download protocol
- Custom exception types for SCPI protocol errors

Typical usage::

    from siggen_scpi import DataFormat, ScpiConnection

    conn = ScpiConnection.connect("TCPIP::192.168.1.50::INSTR")
    identity = conn.identify()
    print(f"Connected to {identity.company} {identity.model}")
    conn.set_data_format(DataFormat.INT32)
    conn.close()
"""

from siggen_scpi.block import (
    decode_block,
    encode_block,
    frame_command,
    pack_values,
    parse_block_header,
    unpack_values,
)
from siggen_scpi.catalog import CatalogEntry, catalog_contains, clean_scpi_response, parse_catalog
from siggen_scpi.connection import ScpiConnection, parse_idn_response
from siggen_scpi.download import (
    DEFAULT_DOWNLOAD_TIMEOUT_MS,
    ByteSource,
    DownloadState,
    WaveformDownload,
)
from siggen_scpi.errors import (
    BlockFramingError,
    BlockTruncatedError,
    InstrumentConnectionError,
    MalformedBlockError,
    ScpiError,
    ScpiParseError,
    ScpiValidationError,
    TransportError,
    TransportTimeoutError,
)
from siggen_scpi.formats import (
    AsciiResponse,
    BlockResult,
    DataFormat,
    Float32Block,
    Float64Block,
    Int32Block,
)
from siggen_scpi.timeout import min_timeout
from siggen_scpi.transport import ScpiTransport
from siggen_scpi.visa import VisaResource

__all__ = [
    # Connection
    "ScpiConnection",
    "parse_idn_response",
    # Data formats
    "AsciiResponse",
    "BlockResult",
    "DataFormat",
    "Float32Block",
    "Float64Block",
    "Int32Block",
    # Block codec
    "decode_block",
    "encode_block",
    "frame_command",
    "pack_values",
    "parse_block_header",
    "unpack_values",
    # Catalog
    "CatalogEntry",
    "catalog_contains",
    "clean_scpi_response",
    "parse_catalog",
    # Download
    "DEFAULT_DOWNLOAD_TIMEOUT_MS",
    "ByteSource",
    "DownloadState",
    "WaveformDownload",
    # Errors
    "BlockFramingError",
    "BlockTruncatedError",
    "InstrumentConnectionError",
    "MalformedBlockError",
    "ScpiError",
    "ScpiParseError",
    "ScpiValidationError",
    "TransportError",
    "TransportTimeoutError",
    # Timeouts
    "min_timeout",
    # Transport
    "ScpiTransport",
    # VISA
    "VisaResource",
]
