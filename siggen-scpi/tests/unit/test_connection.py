"""Tests for ScpiConnection using a mock transport."""

from __future__ import annotations

import struct
from collections import deque
from collections.abc import Callable

import pytest

from siggen_core.types.common import InstrumentIdentity

from siggen_scpi.block import encode_block
from siggen_scpi.connection import ScpiConnection, parse_idn_response
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
    DataFormat,
    Float32Block,
    Float64Block,
    Int32Block,
)

_IDN = "Agilent Technologies, N5182A, US51990230, A.01.86"

# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------


class MockTransport:
    """In-memory transport that replays pre-loaded responses."""

    def __init__(
        self,
        responses: list[str] | None = None,
        chunks: list[bytes] | None = None,
        timeout_ms: int = 2000,
    ) -> None:
        self.responses: deque[str] = deque(responses or [])
        self.chunks: deque[bytes] = deque(chunks or [])
        self.written: list[str] = []
        self.raw_written: list[bytes] = []
        self.timeout_ms = timeout_ms
        self.read_timeouts: list[int] = []
        self.fail_writes: ScpiError | None = None
        self.closed: bool = False

    def write(self, message: str) -> None:
        if self.fail_writes is not None:
            raise self.fail_writes
        self.written.append(message)

    def read(self) -> str:
        self.read_timeouts.append(self.timeout_ms)
        if not self.responses:
            raise TransportTimeoutError("no response")
        return self.responses.popleft()

    def write_raw(self, data: bytes) -> None:
        if self.fail_writes is not None:
            raise self.fail_writes
        self.raw_written.append(data)

    def read_raw(self) -> bytes:
        if not self.chunks:
            return b""
        return self.chunks.popleft()

    def close(self) -> None:
        self.closed = True


def _block(values: tuple[float, ...], code: str, byte_order: str = ">") -> bytes:
    payload = struct.pack(f"{byte_order}{len(values)}{code}", *values)
    return encode_block(payload) + b"\n"


# ---------------------------------------------------------------------------
# parse_idn_response
# ---------------------------------------------------------------------------


class TestParseIdnResponse:
    """Tests for parse_idn_response."""

    def test_standard_response(self) -> None:
        identity = parse_idn_response("Keysight Technologies,N5172B,MY53050101,B.01.51")
        assert identity == InstrumentIdentity(
            company="Keysight Technologies",
            model="N5172B",
            serial="MY53050101",
            firmware="B.01.51",
        )

    def test_spaces_removed_except_company(self) -> None:
        identity = parse_idn_response(_IDN)
        assert identity.company == "Agilent Technologies"
        assert identity.model == "N5182A"
        assert identity.serial == "US51990230"
        assert identity.firmware == "A.01.86"

    def test_line_terminator_stripped(self) -> None:
        identity = parse_idn_response("ACME,M1,S1,F1\r\n")
        assert identity.firmware == "F1"

    def test_extra_fields_ignored(self) -> None:
        identity = parse_idn_response("ACME,M1,S1,F1,OPT-UNT,OPT-506")
        assert identity.firmware == "F1"

    @pytest.mark.parametrize("response", ["", "ACME", "ACME,M1,S1"])
    def test_too_few_fields(self, response: str) -> None:
        with pytest.raises(ScpiParseError, match="at least 4"):
            parse_idn_response(response)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    """Tests for ScpiConnection initial state."""

    def test_defaults(self) -> None:
        conn = ScpiConnection(MockTransport(), address="TCPIP::1.2.3.4::INSTR")
        assert conn.address == "TCPIP::1.2.3.4::INSTR"
        assert conn.is_open
        assert conn.identity is None
        assert conn.data_format is DataFormat.ASCII
        assert conn.byte_order == ">"

    def test_invalid_byte_order(self) -> None:
        with pytest.raises(ScpiValidationError):
            ScpiConnection(MockTransport(), byte_order="!")

    def test_timeout_delegates_to_transport(self) -> None:
        transport = MockTransport(timeout_ms=3000)
        conn = ScpiConnection(transport)
        assert conn.timeout_ms == 3000
        conn.timeout_ms = 4000
        assert transport.timeout_ms == 4000

    def test_non_positive_timeout_rejected(self) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport)
        with pytest.raises(ScpiValidationError):
            conn.timeout_ms = 0
        assert transport.timeout_ms == 2000


# ---------------------------------------------------------------------------
# Data format
# ---------------------------------------------------------------------------


class TestSetDataFormat:
    """Tests for ScpiConnection.set_data_format."""

    @pytest.mark.parametrize(
        ("fmt", "command"),
        [
            (DataFormat.ASCII, "FORM:DATA ASC"),
            (DataFormat.INT32, "FORM:DATA INT,32"),
            (DataFormat.FLOAT32, "FORM:DATA REAL,32"),
            (DataFormat.FLOAT64, "FORM:DATA REAL,64"),
        ],
    )
    def test_sends_form_data(self, fmt: DataFormat, command: str) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport)
        conn.set_data_format(fmt)
        assert transport.written == [command]
        assert conn.data_format is fmt

    def test_accepts_name(self) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport)
        conn.set_data_format("real,64")
        assert conn.data_format is DataFormat.FLOAT64

    def test_unknown_name_rejected_before_io(self) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport)
        with pytest.raises(ScpiValidationError):
            conn.set_data_format("INT,16")
        assert transport.written == []
        assert conn.data_format is DataFormat.ASCII

    def test_failed_write_keeps_previous_format(self) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.INT32)
        transport.fail_writes = TransportError("bus down")
        with pytest.raises(TransportError):
            conn.set_data_format(DataFormat.FLOAT64)
        assert conn.data_format is DataFormat.INT32


# ---------------------------------------------------------------------------
# command / query
# ---------------------------------------------------------------------------


class TestCommand:
    """Tests for ScpiConnection.command."""

    def test_text_command(self) -> None:
        transport = MockTransport()
        ScpiConnection(transport).command("*RST")
        assert transport.written == ["*RST"]
        assert transport.raw_written == []

    def test_binary_command_single_raw_write(self) -> None:
        transport = MockTransport()
        ScpiConnection(transport).command('MEM:DATA "WFM1:RAMP",', b"\x01\x02\x03")
        assert transport.written == []
        assert transport.raw_written == [b'MEM:DATA "WFM1:RAMP",#13\x01\x02\x03\n']

    def test_binary_command_custom_termination(self) -> None:
        transport = MockTransport()
        ScpiConnection(transport, termination=b"\r\n").command("X ", b"")
        assert transport.raw_written == [b"X #10\r\n"]


class TestQuery:
    """Tests for ScpiConnection.query."""

    def test_query_strips_response(self) -> None:
        transport = MockTransport(["  +1.5E+09 \n"])
        conn = ScpiConnection(transport)
        assert conn.query("FREQ?") == "+1.5E+09"
        assert transport.written == ["FREQ?"]

    def test_query_timeout_propagates(self) -> None:
        conn = ScpiConnection(MockTransport())
        with pytest.raises(TransportTimeoutError):
            conn.query("FREQ?")


# ---------------------------------------------------------------------------
# Block reads
# ---------------------------------------------------------------------------


class TestQueryBlock:
    """Tests for ScpiConnection.query_block per data format."""

    def test_ascii_returns_text(self) -> None:
        transport = MockTransport(["1.0,2.0,3.0\n"])
        conn = ScpiConnection(transport)
        result = conn.query_block("TRAC:DATA?")
        assert result == AsciiResponse("1.0,2.0,3.0")
        assert result.format is DataFormat.ASCII
        assert transport.written == ["TRAC:DATA?"]

    def test_int32(self) -> None:
        transport = MockTransport(chunks=[_block((1, -2, 3), "i")])
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.INT32)
        result = conn.query_block("TRAC:DATA?")
        assert isinstance(result, Int32Block)
        assert result.values == (1, -2, 3)

    def test_float32(self) -> None:
        transport = MockTransport(chunks=[_block((0.5, -0.25), "f")])
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.FLOAT32)
        result = conn.query_block("TRAC:DATA?")
        assert isinstance(result, Float32Block)
        assert result.values == (0.5, -0.25)

    def test_float64(self) -> None:
        transport = MockTransport(chunks=[_block((1e-3, 2e6), "d")])
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.FLOAT64)
        result = conn.query_block("TRAC:DATA?")
        assert isinstance(result, Float64Block)
        assert result.values == (1e-3, 2e6)

    def test_little_endian_connection(self) -> None:
        transport = MockTransport(chunks=[_block((7, 8), "i", "<")])
        conn = ScpiConnection(transport, byte_order="<")
        conn.set_data_format(DataFormat.INT32)
        assert conn.query_block("TRAC:DATA?").values == (7, 8)

    def test_query_with_payload(self) -> None:
        transport = MockTransport(chunks=[_block((1,), "i")])
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.INT32)
        conn.query_block("CALC:DATA? ", b"\xff")
        assert transport.raw_written == [b"CALC:DATA? #11\xff\n"]

    def test_block_split_across_chunks(self) -> None:
        data = _block(tuple(float(i) for i in range(100)), "d")
        chunks = [data[:1], data[1:3], data[3:50], data[50:]]
        transport = MockTransport(chunks=chunks)
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.FLOAT64)
        assert conn.query_block("TRAC:DATA?").values == tuple(float(i) for i in range(100))
        assert not transport.chunks

    def test_truncated_block(self) -> None:
        data = _block((1, 2, 3), "i")
        conn = ScpiConnection(MockTransport(chunks=[data[:8]]))
        conn.set_data_format(DataFormat.INT32)
        with pytest.raises(BlockTruncatedError):
            conn.query_block("TRAC:DATA?")

    def test_malformed_width(self) -> None:
        conn = ScpiConnection(MockTransport(chunks=[encode_block(b"\x00" * 6)]))
        conn.set_data_format(DataFormat.INT32)
        with pytest.raises(MalformedBlockError):
            conn.query_block("TRAC:DATA?")

    def test_not_a_block(self) -> None:
        conn = ScpiConnection(MockTransport(chunks=[b"1,2,3\n"]))
        conn.set_data_format(DataFormat.FLOAT32)
        with pytest.raises(BlockFramingError):
            conn.query_block("TRAC:DATA?")

    def test_empty_block(self) -> None:
        conn = ScpiConnection(MockTransport(chunks=[b"#10\n"]))
        conn.set_data_format(DataFormat.FLOAT32)
        assert conn.query_block("TRAC:DATA?") == Float32Block(())

    def test_payload_ending_in_newline_byte(self) -> None:
        payload = struct.pack(">2i", 1, 10)
        transport = MockTransport(chunks=[encode_block(payload), b"\n"])
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.INT32)
        assert conn.query_block("TRAC:DATA?").values == (1, 10)
        assert not transport.chunks


class TestTypedReads:
    """Tests for format-independent block reads."""

    def test_read_bytes(self) -> None:
        conn = ScpiConnection(MockTransport(chunks=[b"#15hello\n"]))
        assert conn.read_bytes() == b"hello"

    def test_read_int32_block_in_ascii_mode(self) -> None:
        conn = ScpiConnection(MockTransport(chunks=[_block((5, 6), "i")]))
        assert conn.read_int32_block() == (5, 6)
        assert conn.data_format is DataFormat.ASCII

    def test_read_float32_block(self) -> None:
        conn = ScpiConnection(MockTransport(chunks=[_block((1.5,), "f")]))
        assert conn.read_float32_block() == (1.5,)

    def test_read_float64_block(self) -> None:
        conn = ScpiConnection(MockTransport(chunks=[_block((2.5, 3.5), "d")]))
        assert conn.read_float64_block() == (2.5, 3.5)

    def test_terminator_in_separate_chunk_is_consumed(self) -> None:
        payload = struct.pack(">2i", 1, 10)
        transport = MockTransport(["1"], chunks=[encode_block(payload), b"\n"])
        conn = ScpiConnection(transport)
        assert conn.read_int32_block() == (1, 10)
        assert not transport.chunks
        assert conn.query("*OPC?") == "1"

    def test_crlf_terminator_split_across_chunks(self) -> None:
        transport = MockTransport(chunks=[b"#15hello\r", b"\n"])
        conn = ScpiConnection(transport)
        assert conn.read_bytes() == b"hello"
        assert not transport.chunks

    def test_read_string(self) -> None:
        conn = ScpiConnection(MockTransport(["hello"]))
        assert conn.read_string() == "hello"

    def test_read_string_with_timeout(self) -> None:
        transport = MockTransport(["slow"], timeout_ms=1000)
        conn = ScpiConnection(transport)
        assert conn.read_string(timeout_ms=9000) == "slow"
        assert transport.read_timeouts == [9000]
        assert transport.timeout_ms == 1000


# ---------------------------------------------------------------------------
# Timeouts and *OPC?
# ---------------------------------------------------------------------------


class TestWaitComplete:
    """Tests for ScpiConnection.wait_complete and min_timeout."""

    def test_plain_wait(self) -> None:
        transport = MockTransport(["1"])
        conn = ScpiConnection(transport)
        assert conn.wait_complete() == "1"
        assert transport.written == ["*OPC?"]
        assert transport.read_timeouts == [2000]

    def test_wait_raises_timeout_for_the_read(self) -> None:
        transport = MockTransport(["1"], timeout_ms=2000)
        conn = ScpiConnection(transport)
        conn.wait_complete(timeout_ms=5000)
        assert transport.read_timeouts == [5000]
        assert transport.timeout_ms == 2000

    def test_wait_timeout_restores(self) -> None:
        transport = MockTransport(timeout_ms=2000)
        conn = ScpiConnection(transport)
        with pytest.raises(TransportTimeoutError):
            conn.wait_complete(timeout_ms=5000)
        assert transport.timeout_ms == 2000

    def test_min_timeout_context(self) -> None:
        transport = MockTransport(timeout_ms=2000)
        conn = ScpiConnection(transport)
        with conn.min_timeout(7000) as effective:
            assert effective == 7000
            assert conn.timeout_ms == 7000
        assert conn.timeout_ms == 2000


# ---------------------------------------------------------------------------
# IEEE 488.2 convenience methods
# ---------------------------------------------------------------------------


class TestIdentify:
    """Tests for ScpiConnection.identify."""

    def test_identify_stores_identity(self) -> None:
        transport = MockTransport([_IDN])
        conn = ScpiConnection(transport)
        identity = conn.identify()
        assert transport.written == ["*IDN?"]
        assert identity.model == "N5182A"
        assert conn.identity == identity

    def test_identify_replaces_previous(self) -> None:
        conn = ScpiConnection(MockTransport([_IDN, "ACME,M2,S2,F2"]))
        conn.identify()
        assert conn.identify().model == "M2"
        assert conn.identity is not None
        assert conn.identity.serial == "S2"

    def test_malformed_identity(self) -> None:
        conn = ScpiConnection(MockTransport(["ACME,M1"]))
        with pytest.raises(ScpiParseError):
            conn.identify()
        assert conn.identity is None


class TestCommonCommands:
    """Tests for reset, clear_status and get_catalog."""

    def test_reset(self) -> None:
        transport = MockTransport()
        ScpiConnection(transport).reset()
        assert transport.written == ["*RST"]

    def test_clear_status(self) -> None:
        transport = MockTransport()
        ScpiConnection(transport).clear_status()
        assert transport.written == ["*CLS"]

    def test_get_catalog(self) -> None:
        transport = MockTransport(['0,100,"RAMP,BIN,512"'])
        entries = ScpiConnection(transport).get_catalog("SNVWFM")
        assert transport.written == ["MMEM:CAT? 'SNVWFM'"]
        assert [entry.name for entry in entries] == ["RAMP"]

    def test_get_catalog_ignores_data_format(self) -> None:
        transport = MockTransport(['"A,BIN,8"'])
        conn = ScpiConnection(transport)
        conn.set_data_format(DataFormat.FLOAT32)
        assert len(conn.get_catalog("SWFM1")) == 1


# ---------------------------------------------------------------------------
# Error identity
# ---------------------------------------------------------------------------


class TestErrorIdentity:
    """Tests for instrument identity attached to errors."""

    def test_error_before_identify_has_no_prefix(self) -> None:
        conn = ScpiConnection(MockTransport())
        with pytest.raises(TransportTimeoutError) as exc_info:
            conn.query("FREQ?")
        assert exc_info.value.identity is None
        assert str(exc_info.value) == "no response"

    def test_error_after_identify_is_prefixed(self) -> None:
        conn = ScpiConnection(MockTransport([_IDN]))
        conn.identify()
        with pytest.raises(TransportTimeoutError) as exc_info:
            conn.query("FREQ?")
        assert exc_info.value.identity == conn.identity
        assert str(exc_info.value) == "[N5182A,US51990230] no response"

    def test_block_error_is_prefixed(self) -> None:
        conn = ScpiConnection(MockTransport([_IDN], chunks=[b"#3"]))
        conn.identify()
        with pytest.raises(BlockTruncatedError, match=r"^\[N5182A,US51990230\]"):
            conn.read_bytes()

    def test_catalog_parse_error_is_prefixed(self) -> None:
        conn = ScpiConnection(MockTransport([_IDN, '"RAMP,BIN"']))
        conn.identify()
        with pytest.raises(ScpiParseError) as exc_info:
            conn.get_catalog("WFM1")
        assert exc_info.value.identity == conn.identity
        assert str(exc_info.value).startswith("[N5182A,US51990230] Expected 3 fields")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestClose:
    """Tests for close and use after close."""

    def test_close_closes_transport(self) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport)
        conn.close()
        assert transport.closed
        assert not conn.is_open

    def test_second_close_raises(self) -> None:
        conn = ScpiConnection(MockTransport(), address="GPIB0::19::INSTR")
        conn.close()
        with pytest.raises(InstrumentConnectionError, match="already closed"):
            conn.close()

    @pytest.mark.parametrize(
        "operation",
        [
            lambda conn: conn.command("*RST"),
            lambda conn: conn.query("*IDN?"),
            lambda conn: conn.read_bytes(),
            lambda conn: conn.set_data_format(DataFormat.INT32),
            lambda conn: conn.wait_complete(1000),
            lambda conn: conn.timeout_ms,
        ],
    )
    def test_operations_after_close_raise(
        self, operation: Callable[[ScpiConnection], object]
    ) -> None:
        transport = MockTransport(["x"])
        conn = ScpiConnection(transport)
        conn.close()
        with pytest.raises(InstrumentConnectionError):
            operation(conn)
        assert transport.written == []

    def test_context_manager_closes(self) -> None:
        transport = MockTransport()
        with ScpiConnection(transport) as conn:
            conn.reset()
        assert transport.closed
        assert not conn.is_open

    def test_context_manager_after_explicit_close(self) -> None:
        transport = MockTransport()
        with ScpiConnection(transport) as conn:
            conn.close()
        assert transport.closed

    def test_context_manager_closes_on_error(self) -> None:
        transport = MockTransport()
        with pytest.raises(TransportTimeoutError):
            with ScpiConnection(transport) as conn:
                conn.query("FREQ?")
        assert transport.closed
