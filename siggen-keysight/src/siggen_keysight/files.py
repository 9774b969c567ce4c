"""Local file byte source for waveform downloads."""

from __future__ import annotations

from pathlib import Path

from siggen_keysight.errors import WaveformNotFoundError


class LocalFileSource:
    """Load waveform files from the local file system.

    Implements the :class:`siggen_scpi.ByteSource` protocol.

    Args:
        base_dir: Optional directory that relative paths are resolved against.
            Absolute paths are used as given.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None

    @property
    def base_dir(self) -> Path | None:
        """Directory relative paths are resolved against, if any."""
        return self._base_dir

    def resolve(self, path: str | Path) -> Path:
        """Return the file system path that *path* refers to."""
        resolved = Path(path)
        if self._base_dir is not None and not resolved.is_absolute():
            resolved = self._base_dir / resolved
        return resolved

    def read_bytes(self, path: str | Path) -> bytes:
        """Read the whole file.

        Args:
            path: File path, absolute or relative to :attr:`base_dir`.

        Returns:
            The file contents.

        Raises:
            WaveformNotFoundError: If the file does not exist.
        """
        resolved = self.resolve(path)
        if not resolved.is_file():
            raise WaveformNotFoundError(f"Waveform file not found: {resolved}")
        return resolved.read_bytes()
