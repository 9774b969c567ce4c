"""Memory catalog parsing.

``MMEM:CAT?`` returns the contents of an instrument memory catalog as quoted,
comma-delimited ``name,type,size`` triplets. Depending on firmware the list is
preceded by extra header data (typically the used and free byte counters) and
followed by a line terminator::

    1024,65536,"RAMP,BIN,512","SINE_TEST,BIN,512"

:func:`parse_catalog` turns such a response into a tuple of
:class:`CatalogEntry` in device order, and :func:`catalog_contains` performs
the case-insensitive lookup used to check whether a waveform is present.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from siggen_scpi.errors import ScpiParseError

_ENTRY_DELIMITER = '","'


@dataclass(frozen=True)
class CatalogEntry:
    """One file listed in a memory catalog.

    Attributes:
        name: File name as reported by the instrument.
        kind: Type tag reported by the instrument (e.g. ``"BIN"``, ``"INT16"``).
        size: File size in bytes.
    """

    name: str
    kind: str
    size: int


def clean_scpi_response(text: str) -> str:
    """Trim quotes, spaces and line terminators from both ends of *text*."""
    return text.strip('" \n\r').strip()


def parse_catalog(response: str) -> tuple[CatalogEntry, ...]:
    """Parse a ``MMEM:CAT?`` response.

    Args:
        response: The raw response text.

    Returns:
        The entries in response order. Duplicates are preserved. A response
        without any quoted entry (an empty catalog) yields an empty tuple.

    Raises:
        ScpiParseError: If an entry does not have exactly three fields or its
            size is not an integer.
    """
    if '"' not in response:
        return ()

    tokens = [token for token in response.split(_ENTRY_DELIMITER) if token]
    # Everything up to the first quote is header data
    tokens[0] = tokens[0][tokens[0].index('"') + 1 :]
    tokens[-1] = clean_scpi_response(tokens[-1])

    return tuple(_parse_entry(token) for token in tokens if token)


def _parse_entry(token: str) -> CatalogEntry:
    fields = token.split(",")
    if len(fields) != 3:
        raise ScpiParseError(f"Expected 3 fields in catalog entry, got {len(fields)}: {token!r}")
    name, kind, size_text = fields
    # Some firmware sends sizes with a leading plus sign
    digits = size_text.strip().removeprefix("+")
    if not (digits.isascii() and digits.isdigit()):
        raise ScpiParseError(f"Invalid size in catalog entry: {token!r}")
    return CatalogEntry(name=name, kind=kind, size=int(digits))


def catalog_contains(catalog: Iterable[CatalogEntry], name: str, size: int | None = None) -> bool:
    """Check whether *catalog* lists a file called *name*.

    Args:
        catalog: Parsed catalog entries.
        name: File name to look for (case-insensitive).
        size: If given, the entry must also have exactly this size in bytes.

    Returns:
        True if a matching entry exists.
    """
    wanted = name.lower()
    for entry in catalog:
        if entry.name.lower() != wanted:
            continue
        if size is None or entry.size == size:
            return True
    return False
