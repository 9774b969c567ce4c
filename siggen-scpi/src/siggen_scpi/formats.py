"""Numeric transfer formats and typed block results.

The instrument encodes numeric array responses according to the format last
negotiated with ``FORM:DATA``. This module defines the :class:`DataFormat`
enumeration and the tagged result types returned when a response is decoded
according to that format:

- :class:`AsciiResponse` for ``FORM:DATA ASC``
- :class:`Int32Block` for ``FORM:DATA INT,32``
- :class:`Float32Block` for ``FORM:DATA REAL,32``
- :class:`Float64Block` for ``FORM:DATA REAL,64``

Callers dispatch on the result class rather than on the runtime type of the
values::

    result = conn.query_block("TRAC:DATA?")
    if isinstance(result, AsciiResponse):
        print(result.text)
    else:
        print(len(result.values), "samples")
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union


class DataFormat(Enum):
    """Numeric transfer encodings understood by ``FORM:DATA``.

    The enum value is the SCPI argument sent to the instrument.

    Attributes:
        ASCII: Comma-separated text.
        INT32: Definite-length block of 4-byte signed integers.
        FLOAT32: Definite-length block of 4-byte IEEE 754 floats.
        FLOAT64: Definite-length block of 8-byte IEEE 754 floats.
    """

    ASCII = "ASC"
    INT32 = "INT,32"
    FLOAT32 = "REAL,32"
    FLOAT64 = "REAL,64"

    @property
    def scpi_argument(self) -> str:
        """Return the argument for the ``FORM:DATA`` command."""
        return self.value

    @property
    def is_binary(self) -> bool:
        """Return True if responses in this format are binary blocks."""
        return self is not DataFormat.ASCII

    @property
    def element_width(self) -> int:
        """Return the size in bytes of one element (0 for ASCII)."""
        widths = {
            DataFormat.ASCII: 0,
            DataFormat.INT32: 4,
            DataFormat.FLOAT32: 4,
            DataFormat.FLOAT64: 8,
        }
        return widths[self]

    @property
    def struct_format(self) -> str:
        """Return the :mod:`struct` code for one element.

        Raises:
            ValueError: For :attr:`ASCII`, which has no binary element.
        """
        formats = {
            DataFormat.INT32: "i",
            DataFormat.FLOAT32: "f",
            DataFormat.FLOAT64: "d",
        }
        try:
            return formats[self]
        except KeyError:
            raise ValueError(f"{self.name} has no binary element format") from None

    @classmethod
    def from_name(cls, name: str) -> DataFormat:
        """Look up a format by enum name or SCPI argument, case-insensitively.

        Args:
            name: ``"INT32"``, ``"int,32"``, ``"ascii"``, ``"ASC"`` and so on.

        Returns:
            The matching format.

        Raises:
            ValueError: If *name* matches no format.
        """
        token = name.strip().upper().replace(" ", "")
        for member in cls:
            if token in (member.name, member.value):
                return member
        raise ValueError(f"Unknown data format: {name!r}")


@dataclass(frozen=True)
class AsciiResponse:
    """Text response read while the connection is in ASCII format.

    Attributes:
        text: The response with the line terminator removed.
    """

    format: ClassVar[DataFormat] = DataFormat.ASCII

    text: str


@dataclass(frozen=True)
class Int32Block:
    """Block of 4-byte signed integers.

    Attributes:
        values: Decoded elements in device order.
    """

    format: ClassVar[DataFormat] = DataFormat.INT32

    values: tuple[int, ...]


@dataclass(frozen=True)
class Float32Block:
    """Block of 4-byte floats.

    Attributes:
        values: Decoded elements in device order.
    """

    format: ClassVar[DataFormat] = DataFormat.FLOAT32

    values: tuple[float, ...]


@dataclass(frozen=True)
class Float64Block:
    """Block of 8-byte floats.

    Attributes:
        values: Decoded elements in device order.
    """

    format: ClassVar[DataFormat] = DataFormat.FLOAT64

    values: tuple[float, ...]


BlockResult = Union[AsciiResponse, Int32Block, Float32Block, Float64Block]
"""Result of a format-dependent read; exactly one variant per :class:`DataFormat`."""

_BLOCK_TYPES: dict[DataFormat, type[Int32Block] | type[Float32Block] | type[Float64Block]] = {
    DataFormat.INT32: Int32Block,
    DataFormat.FLOAT32: Float32Block,
    DataFormat.FLOAT64: Float64Block,
}


def make_block_result(fmt: DataFormat, values: tuple[int, ...] | tuple[float, ...]) -> BlockResult:
    """Wrap decoded binary values in the result class for *fmt*.

    Args:
        fmt: A binary data format.
        values: Decoded elements.

    Returns:
        The matching :class:`Int32Block`, :class:`Float32Block` or
        :class:`Float64Block`.

    Raises:
        ValueError: If *fmt* is :attr:`DataFormat.ASCII`.
    """
    try:
        block_type = _BLOCK_TYPES[fmt]
    except KeyError:
        raise ValueError(f"{fmt.name} is not a binary block format") from None
    return block_type(values)  # type: ignore[arg-type]
