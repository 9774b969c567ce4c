"""YAML configuration loading for X-Series signal generators.

This module loads the connection and download settings for a signal generator
from a YAML file.

Example YAML configuration:
    instrument:
      address: "TCPIP::192.168.1.50::INSTR"
      timeout_ms: 2000
      data_format: "ASCII"
      read_termination: "\\n"
      write_termination: "\\n"

    download:
      timeout_ms: 5000
      waveform_dir: "/data/waveforms"

Only ``instrument.address`` is required.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from siggen_scpi import DEFAULT_DOWNLOAD_TIMEOUT_MS, DataFormat

from siggen_keysight.errors import ConfigError


@dataclass(frozen=True)
class SignalGeneratorConfig:
    """Connection and download settings for one signal generator.

    Attributes:
        address: VISA resource string of the instrument.
        timeout_ms: Connection I/O timeout in milliseconds.
        data_format: Numeric transfer format applied after connecting.
        read_termination: Text read terminator.
        write_termination: Text write terminator.
        download_timeout_ms: Minimum timeout for waveform download completion.
        waveform_dir: Directory relative waveform paths are resolved against.
    """

    address: str
    timeout_ms: int = 2000
    data_format: DataFormat = DataFormat.ASCII
    read_termination: str = "\n"
    write_termination: str = "\n"
    download_timeout_ms: int = DEFAULT_DOWNLOAD_TIMEOUT_MS
    waveform_dir: str | None = None


def _positive_int(section: dict[str, Any], key: str, default: int, where: str) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{where}.{key} must be a positive integer, got {value!r}")
    return value


def _string(section: dict[str, Any], key: str, default: str, where: str) -> str:
    value = section.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"{where}.{key} must be a string, got {value!r}")
    return value


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{name} must be a mapping")
    return section


def parse_config(data: Any) -> SignalGeneratorConfig:
    """Build a configuration from already-loaded YAML data.

    Args:
        data: The parsed YAML document.

    Returns:
        Parsed signal generator configuration.

    Raises:
        ConfigError: If the data is invalid or missing required fields.
    """
    if not isinstance(data, dict):
        raise ConfigError("Config must be a YAML mapping")

    instrument = _section(data, "instrument")
    address = instrument.get("address")
    if not address or not isinstance(address, str):
        raise ConfigError("Missing required field: instrument.address")

    format_name = _string(instrument, "data_format", DataFormat.ASCII.name, "instrument")
    try:
        data_format = DataFormat.from_name(format_name)
    except ValueError as exc:
        raise ConfigError(f"instrument.data_format: {exc}") from None

    download = _section(data, "download")
    waveform_dir = download.get("waveform_dir")
    if waveform_dir is not None and not isinstance(waveform_dir, str):
        raise ConfigError(f"download.waveform_dir must be a string, got {waveform_dir!r}")

    return SignalGeneratorConfig(
        address=address,
        timeout_ms=_positive_int(instrument, "timeout_ms", 2000, "instrument"),
        data_format=data_format,
        read_termination=_string(instrument, "read_termination", "\n", "instrument"),
        write_termination=_string(instrument, "write_termination", "\n", "instrument"),
        download_timeout_ms=_positive_int(
            download, "timeout_ms", DEFAULT_DOWNLOAD_TIMEOUT_MS, "download"
        ),
        waveform_dir=waveform_dir,
    )


def load_config(path: str | Path) -> SignalGeneratorConfig:
    """Load signal generator configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed signal generator configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigError: If the config is invalid or missing required fields.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    return parse_config(data)
