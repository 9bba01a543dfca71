"""OWON DC power supply instrument driver.

Wraps an ``ScpiTransport`` with typed methods for controlling OWON SPE/SPM
series single-channel bench DC power supplies over their SCPI serial
interface.
"""

from __future__ import annotations

import threading
from enum import IntEnum
from types import TracebackType
from typing import Any, NamedTuple

from hwtest_scpi import (
    InstrumentIdentity,
    ScpiResponseError,
    ScpiTransport,
    SerialSettings,
    SerialTransport,
    format_number,
    normalize_bool,
    parse_idn_response,
    parse_int,
    parse_number,
    split_fields,
)


class OperatingMode(IntEnum):
    """Regulation state reported in field 7 of ``MEAS:ALL:INFO?``."""

    STANDBY = 0
    CONSTANT_VOLTAGE = 1
    CONSTANT_CURRENT = 2
    FAILURE = 3


class Measurement(NamedTuple):
    """Result of ``MEAS:ALL?``."""

    volts: float
    amps: float
    watts: float


class MeasurementInfo(NamedTuple):
    """Result of ``MEAS:ALL:INFO?``.

    Attributes:
        volts: Measured output voltage.
        amps: Measured output current.
        watts: Measured output power.
        ovp_fault: Over-voltage protection tripped.
        ocp_fault: Over-current protection tripped.
        otp_fault: Over-temperature protection tripped.
        mode: Raw operating mode code (see :class:`OperatingMode`).
    """

    volts: float
    amps: float
    watts: float
    ovp_fault: bool
    ocp_fault: bool
    otp_fault: bool
    mode: int

    @property
    def operating_mode(self) -> OperatingMode | None:
        """The mode code as an :class:`OperatingMode`, or None if unknown."""
        try:
            return OperatingMode(self.mode)
        except ValueError:
            return None

    @property
    def has_fault(self) -> bool:
        """True if any protection fault is latched."""
        return self.ovp_fault or self.ocp_fault or self.otp_fault


class OwonDcPsu:
    """High-level driver for OWON DC power supplies.

    Every method issues at most one command line and reads at most one reply
    line. Calls on one driver instance are serialized by an internal lock, so
    a driver may be shared between threads. Several drivers must not share a
    transport unless the caller serializes them.

    Args:
        transport: The transport to the instrument. It may be connected
            already or connected later through :meth:`connect`.

    Example:
        >>> with OwonDcPsu(SerialTransport(SerialSettings(port="COM3"))) as psu:
        ...     psu.set_remote()
        ...     psu.set_voltage(12.0)
        ...     psu.set_output(True)
        ...     print(psu.measure_all())
    """

    def __init__(self, transport: ScpiTransport) -> None:
        self._transport = transport
        self._lock = threading.Lock()

    @property
    def transport(self) -> ScpiTransport:
        """The underlying transport."""
        return self._transport

    # -- Connection ---------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        """Return True if the transport is connected."""
        return self._transport.is_connected

    def connect(self) -> None:
        """Open the transport."""
        with self._lock:
            self._transport.connect()

    def close(self) -> None:
        """Close the underlying transport. Never raises."""
        with self._lock:
            self._transport.close()

    def __enter__(self) -> OwonDcPsu:
        if not self.is_connected:
            self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Identity / reset ---------------------------------------------------

    def identify(self) -> str:
        """Query the raw identification string (``*IDN?``).

        Returns:
            The reply verbatim, e.g. ``"OWON,SPE6103,2128099,FV:V3.7.0"``.
        """
        return self._query("*IDN?")

    def get_identity(self) -> InstrumentIdentity:
        """Query and parse instrument identification (``*IDN?``).

        Returns:
            Parsed identity with manufacturer, model, serial, and firmware.
        """
        return parse_idn_response(self.identify())

    def reset(self) -> None:
        """Reset instrument to factory defaults (``*RST``)."""
        self._write("*RST")

    # -- Output -------------------------------------------------------------

    def set_output(self, enabled: bool) -> None:
        """Enable or disable the output (``OUTP ON|OFF``)."""
        self._write(f"OUTP {'ON' if enabled else 'OFF'}")

    def get_output(self) -> bool:
        """Query whether the output is enabled (``OUTP?``)."""
        return normalize_bool(self._query("OUTP?"))

    # -- Voltage ------------------------------------------------------------

    def set_voltage(self, volts: float) -> None:
        """Set the output voltage setpoint.

        Args:
            volts: Voltage in volts.
        """
        self._write(f"VOLT {format_number(volts)}")

    def get_voltage(self) -> float:
        """Query the output voltage setpoint."""
        return parse_number(self._query("VOLT?"))

    def set_voltage_limit(self, volts: float) -> None:
        """Set the over-voltage protection level.

        Args:
            volts: OVP threshold in volts.
        """
        self._write(f"VOLT:LIM {format_number(volts)}")

    def get_voltage_limit(self) -> float:
        """Query the over-voltage protection level."""
        return parse_number(self._query("VOLT:LIM?"))

    def measure_voltage(self) -> float:
        """Measure the actual output voltage."""
        return parse_number(self._query("MEAS:VOLT?"))

    # -- Current ------------------------------------------------------------

    def set_current(self, amps: float) -> None:
        """Set the output current setpoint.

        Args:
            amps: Current in amps.
        """
        self._write(f"CURR {format_number(amps)}")

    def get_current(self) -> float:
        """Query the output current setpoint."""
        return parse_number(self._query("CURR?"))

    def set_current_limit(self, amps: float) -> None:
        """Set the over-current protection level.

        Args:
            amps: OCP threshold in amps.
        """
        self._write(f"CURR:LIM {format_number(amps)}")

    def get_current_limit(self) -> float:
        """Query the over-current protection level."""
        return parse_number(self._query("CURR:LIM?"))

    def measure_current(self) -> float:
        """Measure the actual output current."""
        return parse_number(self._query("MEAS:CURR?"))

    # -- Power --------------------------------------------------------------

    def measure_power(self) -> float:
        """Measure the actual output power."""
        return parse_number(self._query("MEAS:POW?"))

    # -- Combined measurements ----------------------------------------------

    def measure_all(self) -> Measurement:
        """Measure voltage, current and power in one query (``MEAS:ALL?``).

        Some firmware omits the power field; it is reported as 0.0 then.
        Fields after the third are ignored.

        Raises:
            ScpiResponseError: If the reply has fewer than two fields or a
                field is not a number.
        """
        reply = self._query("MEAS:ALL?")
        fields = split_fields(reply)
        if len(fields) < 2:
            raise ScpiResponseError("Unexpected response for MEAS:ALL?", reply)
        watts = parse_number(fields[2]) if len(fields) >= 3 else 0.0
        return Measurement(parse_number(fields[0]), parse_number(fields[1]), watts)

    def measure_all_info(self) -> MeasurementInfo:
        """Measure output values plus protection and mode status (``MEAS:ALL:INFO?``).

        Raises:
            ScpiResponseError: If the reply has fewer than seven fields or a
                field is malformed.
        """
        reply = self._query("MEAS:ALL:INFO?")
        fields = split_fields(reply)
        if len(fields) < 7:
            raise ScpiResponseError("Unexpected response for MEAS:ALL:INFO?", reply)
        return MeasurementInfo(
            volts=parse_number(fields[0]),
            amps=parse_number(fields[1]),
            watts=parse_number(fields[2]),
            ovp_fault=normalize_bool(fields[3]),
            ocp_fault=normalize_bool(fields[4]),
            otp_fault=normalize_bool(fields[5]),
            mode=parse_int(fields[6]),
        )

    # -- System -------------------------------------------------------------

    def set_local(self) -> None:
        """Return the front panel to local control (``SYST:LOC``)."""
        self._write("SYST:LOC")

    def set_remote(self) -> None:
        """Lock the front panel for remote control (``SYST:REM``)."""
        self._write("SYST:REM")

    # -- Private helpers ----------------------------------------------------

    def _write(self, command: str) -> None:
        with self._lock:
            self._transport.write_line(command)

    def _query(self, command: str) -> str:
        with self._lock:
            return self._transport.query_line(command)


def create_instrument(port: str, **settings: Any) -> OwonDcPsu:
    """Create a connected OWON PSU driver for a serial port.

    Standard factory entry point for programmatic use. Builds
    :class:`SerialSettings` from *port* and *settings*, opens the port and
    returns a ready-to-use :class:`OwonDcPsu`.

    Args:
        port: Serial port name (e.g. ``"/dev/ttyUSB0"`` or ``"COM3"``).
        **settings: Remaining :class:`SerialSettings` fields
            (``baudrate``, ``read_timeout_ms``, ...).

    Returns:
        Connected PSU driver instance.
    """
    transport = SerialTransport(SerialSettings(port=port, **settings))
    transport.connect()
    return OwonDcPsu(transport)
