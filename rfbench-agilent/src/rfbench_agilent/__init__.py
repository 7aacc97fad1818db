"""Agilent E8257D signal generator driver and emulator for rfbench.

This package provides the E8257D driver built on the checked SCPI layer of
:mod:`rfbench_scpi`, together with an in-process emulator for testing
without hardware.

Modules:
    e8257d: Driver, amplitude unit transaction, connect/disconnect.
    amplitude: ``Amplitude`` values in dBm and their parser.
    emulator: In-process SCPI emulator of the E8257D.
    config: YAML connection settings.
    cli: ``rfbench-e8257d`` command-line entry point.

Example:
    Connect to a real instrument::

        from rfbench_agilent import connect, disconnect

        source = connect("TCPIP::192.168.1.50::INSTR")
        print(source.get_amplitude())
        disconnect(source)

    Use the emulator for testing::

        from rfbench_agilent import connect_transport, make_e8257d_emulator

        source = connect_transport(make_e8257d_emulator())
"""

from rfbench_agilent.amplitude import CANONICAL_UNIT, Amplitude, parse_amplitude
from rfbench_agilent.config import SourceConfig, connect_from_config, load_config
from rfbench_agilent.e8257d import (
    MODEL,
    E8257d,
    SessionState,
    connect,
    connect_transport,
    disconnect,
)
from rfbench_agilent.emulator import (
    E8257dEmulator,
    E8257dEmulatorConfig,
    make_e8257d_emulator,
)

__all__ = [
    # Amplitude
    "CANONICAL_UNIT",
    "Amplitude",
    "parse_amplitude",
    # Config
    "SourceConfig",
    "connect_from_config",
    "load_config",
    # Driver
    "MODEL",
    "E8257d",
    "SessionState",
    "connect",
    "connect_transport",
    "disconnect",
    # Emulator
    "E8257dEmulator",
    "E8257dEmulatorConfig",
    "make_e8257d_emulator",
]
