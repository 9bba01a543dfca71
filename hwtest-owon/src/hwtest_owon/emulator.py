"""OWON DC power supply emulator.

Provides an in-process SCPI emulator implementing the ``ScpiTransport``
protocol for the OWON SPE series single-channel supplies, including the
combined ``MEAS:ALL?`` / ``MEAS:ALL:INFO?`` queries and latched protection
faults.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Callable

from hwtest_scpi import LINE_TERMINATOR, LineTransport, ScpiTimeoutError

from hwtest_owon.psu import OperatingMode

# Number of received command lines kept in ``history``.
HISTORY_LIMIT = 1000

# ---------------------------------------------------------------------------
# Header normalization
# ---------------------------------------------------------------------------

# Long keyword spellings, mapped to the short forms used as handler keys.
_SHORT_FORMS: dict[str, str] = {
    "AMPLITUDE": "AMPL",
    "CURRENT": "CURR",
    "IMMEDIATE": "IMM",
    "LEVEL": "LEV",
    "LIMIT": "LIM",
    "LOCAL": "LOC",
    "MEASURE": "MEAS",
    "OUTPUT": "OUTP",
    "POWER": "POW",
    "REMOTE": "REM",
    "SOURCE": "SOUR",
    "STATE": "STAT",
    "SYSTEM": "SYST",
    "VOLTAGE": "VOLT",
}

# Keywords a header may include or leave out.
_IMPLIED: frozenset[str] = frozenset({"SOUR", "LEV", "IMM", "AMPL", "STAT", "DC"})


def _normalize_header(header: str) -> str:
    """Reduce a SCPI header to its short-form handler key.

    ``:SOURce:VOLTage:LEVel:IMMediate`` and ``volt`` both become ``VOLT``.
    """
    keywords = (_SHORT_FORMS.get(k, k) for k in header.upper().lstrip(":").split(":"))
    return ":".join(k for k in keywords if k not in _IMPLIED)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OwonEmulatorConfig:
    """Configuration for an OWON DC PSU emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        max_voltage: Maximum voltage in volts (> 0).
        max_current: Maximum current in amps (> 0).
        max_power: Maximum output power in watts (> 0).
    """

    identity: str
    max_voltage: float
    max_current: float
    max_power: float

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.max_voltage <= 0:
            raise ValueError("max_voltage must be > 0")
        if self.max_current <= 0:
            raise ValueError("max_current must be > 0")
        if self.max_power <= 0:
            raise ValueError("max_power must be > 0")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _OutputState:
    voltage_setpoint: float = 0.0
    current_setpoint: float = 0.0
    voltage_limit: float = 0.0
    current_limit: float = 0.0
    output_enabled: bool = False
    remote: bool = False
    ovp_fault: bool = False
    ocp_fault: bool = False
    otp_fault: bool = False
    measured_voltage: float | None = None
    measured_current: float | None = None


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class OwonDcPsuEmulator(LineTransport):
    """In-process OWON DC PSU emulator implementing ``ScpiTransport``.

    Behaves like a connected instrument: it must be connected before use and
    raises the same errors as a real transport. Queries it cannot answer get
    no reply, which surfaces as :class:`ScpiTimeoutError`.

    Args:
        config: Emulator configuration specifying model characteristics.
    """

    def __init__(self, config: OwonEmulatorConfig) -> None:
        super().__init__()
        self._config = config
        self._state = self._default_state()
        self._response: str | None = None
        self._unresponsive = False
        self._history: deque[str] = deque(maxlen=HISTORY_LIMIT)

        # Command handlers receive the argument text after the header.
        self._commands: dict[str, Callable[[str], None]] = {
            "*RST": self._reset,
            "*CLS": lambda _args: self._clear_faults(),
            "VOLT": self._set_voltage,
            "CURR": self._set_current,
            "VOLT:LIM": self._set_voltage_limit,
            "CURR:LIM": self._set_current_limit,
            "OUTP": self._set_output,
            "SYST:LOC": self._set_local,
            "SYST:REM": self._set_remote,
        }

        # Query handlers are keyed by the header without its ``?``.
        self._queries: dict[str, Callable[[], str]] = {
            "*IDN": lambda: self._config.identity,
            "*OPC": lambda: "1",
            "VOLT": lambda: self._fmt(self._state.voltage_setpoint),
            "CURR": lambda: self._fmt(self._state.current_setpoint),
            "VOLT:LIM": lambda: self._fmt(self._state.voltage_limit),
            "CURR:LIM": lambda: self._fmt(self._state.current_limit),
            "OUTP": lambda: "ON" if self._state.output_enabled else "OFF",
            "MEAS:VOLT": lambda: self._fmt(self._output_voltage()),
            "MEAS:CURR": lambda: self._fmt(self._output_current()),
            "MEAS:POW": lambda: self._fmt(self._output_voltage() * self._output_current()),
            "MEAS:ALL": self._measure_all,
            "MEAS:ALL:INFO": self._measure_all_info,
        }

    @property
    def config(self) -> OwonEmulatorConfig:
        """The emulated model."""
        return self._config

    @property
    def description(self) -> str:
        """Emulated model name."""
        return f"emulator {self._config.identity}"

    # -- Test helpers -------------------------------------------------------

    @property
    def history(self) -> list[str]:
        """The most recent command lines received, oldest first."""
        return list(self._history)

    def clear_history(self) -> None:
        """Forget the recorded command lines."""
        self._history.clear()

    @property
    def remote(self) -> bool:
        """True while the front panel is locked by ``SYST:REM``."""
        return self._state.remote

    def set_measured_voltage(self, value: float | None) -> None:
        """Override the voltage reading while the output is on (None clears)."""
        self._state.measured_voltage = value
        self._check_protection()

    def set_measured_current(self, value: float | None) -> None:
        """Override the current reading while the output is on (None clears)."""
        self._state.measured_current = value
        self._check_protection()

    def set_overtemperature(self) -> None:
        """Latch an over-temperature fault and switch the output off."""
        self._trip("otp")

    def set_unresponsive(self, unresponsive: bool = True) -> None:
        """Stop (or resume) answering queries, simulating a read timeout."""
        self._unresponsive = unresponsive

    # -- Medium hooks -------------------------------------------------------

    def _open(self) -> None:
        self._response = None

    def _send(self, payload: bytes) -> None:
        line = payload.decode("ascii").strip()
        if not line:
            return
        self._history.append(line)
        self._response = None

        if "?" in line:
            query = self._queries.get(_normalize_header(line.partition("?")[0]))
            if query is not None:
                self._response = query()
            return
        header, _, args = line.partition(" ")
        command = self._commands.get(_normalize_header(header))
        if command is not None:
            command(args.strip())

    def _receive_line(self) -> bytes:
        response, self._response = self._response, None
        if response is None or self._unresponsive:
            raise ScpiTimeoutError(f"No reply from {self.description}")
        return (response + LINE_TERMINATOR).encode("ascii")

    def _release(self) -> None:
        self._response = None

    # -- Command handlers ---------------------------------------------------

    def _reset(self, args: str) -> None:
        self._state = self._default_state()

    def _set_voltage(self, args: str) -> None:
        value = self._parse_level(args, self._config.max_voltage)
        if value is not None:
            self._state.voltage_setpoint = value
            self._check_protection()

    def _set_current(self, args: str) -> None:
        value = self._parse_level(args, self._config.max_current)
        if value is not None:
            self._state.current_setpoint = value
            self._check_protection()

    def _set_voltage_limit(self, args: str) -> None:
        value = self._parse_level(args, self._config.max_voltage)
        if value is not None:
            self._state.voltage_limit = value
            self._check_protection()

    def _set_current_limit(self, args: str) -> None:
        value = self._parse_level(args, self._config.max_current)
        if value is not None:
            self._state.current_limit = value
            self._check_protection()

    def _set_output(self, args: str) -> None:
        token = args.strip().upper()
        if token in ("ON", "1"):
            self._clear_faults()
            self._state.output_enabled = True
            self._check_protection()
        elif token in ("OFF", "0"):
            self._state.output_enabled = False

    def _set_local(self, args: str) -> None:
        self._state.remote = False

    def _set_remote(self, args: str) -> None:
        self._state.remote = True

    # -- Query handlers -----------------------------------------------------

    def _measure_all(self) -> str:
        v = self._output_voltage()
        i = self._output_current()
        return f"{self._fmt(v)},{self._fmt(i)},{self._fmt(v * i)}"

    def _measure_all_info(self) -> str:
        s = self._state
        flags = ",".join("1" if f else "0" for f in (s.ovp_fault, s.ocp_fault, s.otp_fault))
        return f"{self._measure_all()},{flags},{int(self._mode())}"

    # -- Private helpers ----------------------------------------------------

    def _default_state(self) -> _OutputState:
        return _OutputState(
            voltage_limit=self._config.max_voltage,
            current_limit=self._config.max_current,
        )

    @staticmethod
    def _fmt(value: float) -> str:
        return f"{value:.3f}"

    @staticmethod
    def _parse_level(args: str, maximum: float) -> float | None:
        try:
            value = float(args.strip())
        except ValueError:
            return None
        if value < 0 or value > maximum:
            return None
        return value

    def _output_voltage(self) -> float:
        s = self._state
        if not s.output_enabled:
            return 0.0
        return s.measured_voltage if s.measured_voltage is not None else s.voltage_setpoint

    def _output_current(self) -> float:
        s = self._state
        if not s.output_enabled or s.measured_current is None:
            return 0.0
        volts = self._output_voltage()
        if volts > 0 and s.measured_current * volts > self._config.max_power:
            return self._config.max_power / volts
        return s.measured_current

    def _mode(self) -> OperatingMode:
        s = self._state
        if s.ovp_fault or s.ocp_fault or s.otp_fault:
            return OperatingMode.FAILURE
        if not s.output_enabled:
            return OperatingMode.STANDBY
        if s.current_setpoint > 0 and self._output_current() >= s.current_setpoint:
            return OperatingMode.CONSTANT_CURRENT
        return OperatingMode.CONSTANT_VOLTAGE

    def _check_protection(self) -> None:
        s = self._state
        if not s.output_enabled:
            return
        if self._output_voltage() > s.voltage_limit:
            self._trip("ovp")
        elif max(s.current_setpoint, self._output_current()) > s.current_limit:
            self._trip("ocp")

    def _trip(self, fault: str) -> None:
        setattr(self._state, f"{fault}_fault", True)
        self._state.output_enabled = False

    def _clear_faults(self) -> None:
        self._state.ovp_fault = False
        self._state.ocp_fault = False
        self._state.otp_fault = False


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_spe6103_emulator(serial: str = "2128099") -> OwonDcPsuEmulator:
    """Create an OWON SPE6103 PSU emulator.

    Args:
        serial: Serial number for the ``*IDN?`` response.

    Returns:
        Configured emulator instance (60 V, 10 A, 300 W).
    """
    config = OwonEmulatorConfig(
        identity=f"OWON,SPE6103,{serial},FV:V3.7.0",
        max_voltage=60.0,
        max_current=10.0,
        max_power=300.0,
    )
    return OwonDcPsuEmulator(config)


def make_spe3102_emulator(serial: str = "2130017") -> OwonDcPsuEmulator:
    """Create an OWON SPE3102 PSU emulator.

    Args:
        serial: Serial number for the ``*IDN?`` response.

    Returns:
        Configured emulator instance (30 V, 10 A, 200 W).
    """
    config = OwonEmulatorConfig(
        identity=f"OWON,SPE3102,{serial},FV:V3.7.0",
        max_voltage=30.0,
        max_current=10.0,
        max_power=200.0,
    )
    return OwonDcPsuEmulator(config)


EMULATOR_MODELS: dict[str, Callable[[], OwonDcPsuEmulator]] = {
    "SPE6103": make_spe6103_emulator,
    "SPE3102": make_spe3102_emulator,
}
