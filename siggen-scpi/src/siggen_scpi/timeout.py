"""Scoped bus timeout overrides.

Operations such as ``*OPC?`` after a large waveform download can legitimately
take longer than the connection's normal timeout. :func:`min_timeout` raises
the transport timeout for the duration of a ``with`` block and restores it on
every exit path. It never lowers a timeout the caller has already raised.

Example::

    with min_timeout(transport, 10_000):
        transport.write("*OPC?")
        transport.read()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from siggen_scpi.errors import ScpiValidationError

if TYPE_CHECKING:
    from siggen_scpi.transport import ScpiTransport

logger = logging.getLogger(__name__)


@contextmanager
def min_timeout(transport: ScpiTransport, required_ms: int) -> Iterator[int]:
    """Ensure the transport timeout is at least *required_ms* inside the block.

    Args:
        transport: The transport whose timeout is adjusted.
        required_ms: Minimum timeout in milliseconds (> 0).

    Yields:
        The effective timeout, ``max(original, required_ms)``.

    Raises:
        ScpiValidationError: If *required_ms* is not positive.
    """
    if required_ms <= 0:
        raise ScpiValidationError(f"Timeout must be > 0 ms, got {required_ms}")

    original = transport.timeout_ms
    if original >= required_ms:
        yield original
        return

    logger.debug("Raising timeout from %d ms to %d ms", original, required_ms)
    transport.timeout_ms = required_ms
    try:
        yield required_ms
    finally:
        transport.timeout_ms = original
        logger.debug("Restored timeout to %d ms", original)
