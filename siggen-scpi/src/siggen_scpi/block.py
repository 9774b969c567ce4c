"""IEEE 488.2 definite-length arbitrary block codec.

A definite-length block is framed as::

    #<n><length><payload>

where ``<n>`` is a single decimal digit giving the number of digits in
``<length>``, and ``<length>`` is the decimal byte count of ``<payload>``.
For example a 1024-byte payload is framed as ``#41024`` followed by the
bytes.

The functions here are pure and operate on ``bytes``; reading the block off
the bus is done by :class:`siggen_scpi.connection.ScpiConnection`, which uses
:func:`parse_block_header` to learn how many bytes it still needs.

Byte order is never normalized: typed payloads are packed and unpacked in the
order passed by the caller, which should be the order the instrument uses
(``">"`` for ``FORM:BORD NORM``, ``"<"`` for ``FORM:BORD SWAP``).
"""

from __future__ import annotations

import struct
from collections.abc import Sequence

from siggen_scpi.errors import BlockFramingError, BlockTruncatedError, MalformedBlockError
from siggen_scpi.formats import DataFormat

_TERMINATORS = b"\r\n"


def encode_block(payload: bytes) -> bytes:
    """Frame *payload* as a definite-length block.

    Args:
        payload: Raw payload bytes (may be empty).

    Returns:
        ``#<n><length><payload>``; an empty payload encodes as ``#10``.
    """
    length = str(len(payload)).encode("ascii")
    return b"#" + str(len(length)).encode("ascii") + length + bytes(payload)


def frame_command(prefix: str, payload: bytes, termination: bytes = b"\n") -> bytes:
    """Build a complete command message carrying a binary block.

    Args:
        prefix: The command text preceding the block, e.g.
            ``'MEM:DATA "WFM1:RAMP",'``.
        payload: Raw payload bytes.
        termination: Message terminator appended after the block.

    Returns:
        The bytes to send in a single raw write.
    """
    return prefix.encode("ascii") + encode_block(payload) + termination


def parse_block_header(buffer: bytes) -> tuple[int, int] | None:
    """Parse the ``#<n><length>`` header at the start of *buffer*.

    Leading whitespace before the ``#`` is skipped.

    Args:
        buffer: Bytes received so far.

    Returns:
        ``(payload_offset, payload_length)`` where ``payload_offset`` is the
        index of the first payload byte in *buffer*, or ``None`` if *buffer*
        does not yet hold the complete header.

    Raises:
        BlockFramingError: If the data is not a definite-length block.
    """
    start = len(buffer) - len(buffer.lstrip())
    if start + 2 > len(buffer):
        if start < len(buffer) and buffer[start : start + 1] != b"#":
            raise BlockFramingError(
                f"Invalid block: expected '#' but got {buffer[start : start + 1]!r}"
            )
        return None
    if buffer[start : start + 1] != b"#":
        raise BlockFramingError(f"Invalid block: expected '#' but got {buffer[start : start + 1]!r}")

    digit = buffer[start + 1 : start + 2]
    if not digit.isdigit():
        raise BlockFramingError(f"Invalid block: expected digit count but got {digit!r}")
    num_digits = int(digit)
    if num_digits == 0:
        raise BlockFramingError("Indefinite-length blocks (#0) are not supported")

    length_start = start + 2
    length_end = length_start + num_digits
    if length_end > len(buffer):
        return None
    length_field = buffer[length_start:length_end]
    if not length_field.isdigit():
        raise BlockFramingError(f"Invalid block: expected length but got {length_field!r}")
    return length_end, int(length_field)


def decode_block(data: bytes) -> bytes:
    """Extract the payload of a complete block response.

    Args:
        data: The whole response, header through optional line terminator.

    Returns:
        The payload bytes.

    Raises:
        BlockFramingError: If the header is malformed or anything other than
            a line terminator follows the payload.
        BlockTruncatedError: If fewer payload bytes are present than declared.
    """
    header = parse_block_header(data)
    if header is None:
        raise BlockTruncatedError(f"Incomplete block header: {bytes(data[:16])!r}")
    offset, length = header
    end = offset + length
    if end > len(data):
        raise BlockTruncatedError(
            f"Block declares {length} bytes but only {len(data) - offset} are present"
        )
    trailing = data[end:]
    if trailing.strip(_TERMINATORS):
        raise BlockFramingError(
            f"Block of {length} bytes is followed by {len(trailing)} unexpected bytes"
        )
    return bytes(data[offset:end])


def unpack_values(
    payload: bytes, fmt: DataFormat, byte_order: str = ">"
) -> tuple[int, ...] | tuple[float, ...]:
    """Reinterpret *payload* as a sequence of *fmt* elements.

    Args:
        payload: Raw block payload.
        fmt: A binary data format.
        byte_order: :mod:`struct` byte order character, ``">"`` or ``"<"``.

    Returns:
        The decoded elements.

    Raises:
        MalformedBlockError: If the payload length is not a multiple of the
            element width.
        ValueError: If *fmt* is :attr:`DataFormat.ASCII`.
    """
    width = fmt.element_width
    if width == 0:
        raise ValueError("ASCII data has no binary elements")
    if len(payload) % width:
        raise MalformedBlockError(
            f"{len(payload)}-byte payload is not a multiple of the "
            f"{width}-byte {fmt.name} element width"
        )
    count = len(payload) // width
    return struct.unpack(f"{byte_order}{count}{fmt.struct_format}", payload)


def pack_values(values: Sequence[float], fmt: DataFormat, byte_order: str = ">") -> bytes:
    """Pack typed values into a block payload.

    Args:
        values: Elements to pack.
        fmt: A binary data format.
        byte_order: :mod:`struct` byte order character, ``">"`` or ``"<"``.

    Returns:
        The packed payload bytes.

    Raises:
        ValueError: If *fmt* is :attr:`DataFormat.ASCII`.
    """
    return struct.pack(f"{byte_order}{len(values)}{fmt.struct_format}", *values)
