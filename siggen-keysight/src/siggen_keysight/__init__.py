"""Keysight X-Series signal generator driver and emulator for siggen.

This package provides a driver and an emulator for the Agilent/Keysight
X-Series signal generators (MXG N5182A/N5182B, EXG N5172B), covering waveform
download and waveform memory management.

Modules:
    xsg: High-level driver for waveform download and memory catalogs.
    files: Local file byte source for waveform downloads.
    config: YAML configuration loading.
    emulator: In-process SCPI emulator for testing without hardware.

Example:
    Connect to a real instrument::

        from siggen_keysight import create_instrument

        sig_gen = create_instrument("TCPIP::192.168.1.50::INSTR")
        sig_gen.download_waveform("WFM1", "RAMP", "ramp.bin")
        sig_gen.select_waveform("RAMP")

    Use an emulator for testing::

        from siggen_keysight import XsgSignalGenerator, make_mxg_emulator
        from siggen_scpi import ScpiConnection

        sig_gen = XsgSignalGenerator(ScpiConnection(make_mxg_emulator()))
"""

from siggen_keysight.config import SignalGeneratorConfig, load_config, parse_config
from siggen_keysight.emulator import (
    XsgEmulator,
    XsgEmulatorConfig,
    make_exg_emulator,
    make_mxg_emulator,
)
from siggen_keysight.errors import ConfigError, WaveformNotFoundError
from siggen_keysight.files import LocalFileSource
from siggen_keysight.xsg import (
    MAX_WAVEFORM_NAME_LENGTH,
    XsgSignalGenerator,
    create_instrument,
    create_instrument_from_config,
)

__all__ = [
    # Configuration
    "SignalGeneratorConfig",
    "load_config",
    "parse_config",
    # Emulator
    "XsgEmulator",
    "XsgEmulatorConfig",
    "make_exg_emulator",
    "make_mxg_emulator",
    # Errors
    "ConfigError",
    "WaveformNotFoundError",
    # Files
    "LocalFileSource",
    # Driver
    "MAX_WAVEFORM_NAME_LENGTH",
    "XsgSignalGenerator",
    "create_instrument",
    "create_instrument_from_config",
]
