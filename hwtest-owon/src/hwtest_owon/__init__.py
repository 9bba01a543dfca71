"""OWON DC power supply driver and emulator for hwtest.

This package provides a SCPI driver for OWON SPE/SPM series single-channel
bench DC power supplies, an asyncio front end, and an in-process emulator.

Modules:
    psu: Synchronous driver with typed setpoint, measurement and status calls.
    aio: asyncio driver that runs blocking I/O on an executor thread.
    emulator: In-process SCPI emulator for testing without hardware.
    server: TCP server for exposing emulators to external tools.
    config: YAML connection configuration.
    cli: ``hwtest-owon`` command-line tool.

Example:
    Connect to a real instrument::

        from hwtest_owon import create_instrument

        psu = create_instrument("/dev/ttyUSB0")
        psu.set_remote()
        psu.set_voltage(12.0)
        psu.set_output(True)
        volts, amps, watts = psu.measure_all()
        psu.close()

    Use an emulator for testing::

        from hwtest_owon import OwonDcPsu, make_spe6103_emulator

        with OwonDcPsu(make_spe6103_emulator()) as psu:
            print(psu.identify())
"""

from hwtest_owon.aio import AsyncOwonDcPsu
from hwtest_owon.config import PsuConfig, TcpSettings, TransportKind, create_transport, load_config
from hwtest_owon.emulator import (
    EMULATOR_MODELS,
    OwonDcPsuEmulator,
    OwonEmulatorConfig,
    make_spe3102_emulator,
    make_spe6103_emulator,
)
from hwtest_owon.psu import (
    Measurement,
    MeasurementInfo,
    OperatingMode,
    OwonDcPsu,
    create_instrument,
)
from hwtest_owon.server import EmulatorServer

__all__ = [
    # Drivers
    "AsyncOwonDcPsu",
    "OwonDcPsu",
    "create_instrument",
    # Result types
    "Measurement",
    "MeasurementInfo",
    "OperatingMode",
    # Configuration
    "PsuConfig",
    "TcpSettings",
    "TransportKind",
    "create_transport",
    "load_config",
    # Emulator
    "EMULATOR_MODELS",
    "OwonDcPsuEmulator",
    "OwonEmulatorConfig",
    "make_spe3102_emulator",
    "make_spe6103_emulator",
    # Server
    "EmulatorServer",
]
