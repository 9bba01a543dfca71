"""YAML configuration loading for OWON power supply connections.

Example YAML configuration:
    instrument:
      name: "bench_psu"
      transport: "serial"       # serial | tcp | emulator
      serial:
        port: "/dev/ttyUSB0"
        baudrate: 115200
        parity: "N"
        bytesize: 8
        stopbits: 1
        read_timeout_ms: 5000
        write_timeout_ms: 5000
      tcp:
        host: "192.168.1.50"
        port: 5025
        timeout_ms: 5000
      emulator:
        model: "SPE6103"

Only the section named by ``transport`` is required.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from hwtest_scpi import (
    DEFAULT_SCPI_PORT,
    ScpiTransport,
    SerialSettings,
    SerialTransport,
    TcpTransport,
)

from hwtest_owon.emulator import EMULATOR_MODELS


class TransportKind(Enum):
    """Transport variants a configuration can select."""

    SERIAL = "serial"
    TCP = "tcp"
    EMULATOR = "emulator"


@dataclass(frozen=True)
class TcpSettings:
    """SCPI-over-TCP connection parameters.

    Attributes:
        host: Instrument host name or IP address.
        port: TCP port (default 5025).
        timeout_ms: Connect, read and write timeout.
    """

    host: str
    port: int = DEFAULT_SCPI_PORT
    timeout_ms: int = 5000


@dataclass(frozen=True)
class PsuConfig:
    """Configuration for one power supply connection.

    Exactly one of ``serial``, ``tcp`` and ``emulator_model`` is meaningful,
    selected by ``transport``.

    Attributes:
        name: Instrument name used in logs and messages.
        transport: Which transport variant to build.
        serial: Serial port parameters.
        tcp: TCP socket parameters.
        emulator_model: Emulated model name (see ``EMULATOR_MODELS``).
    """

    name: str
    transport: TransportKind
    serial: SerialSettings | None = None
    tcp: TcpSettings | None = None
    emulator_model: str | None = None


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a mapping")
    return data


def _convert(section: dict[str, Any], key: str, kind: type, path: str) -> Any:
    value = section[key]
    if isinstance(value, bool):
        raise ValueError(f"Invalid field: {path}.{key} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid field: {path}.{key} must be a number, got {value!r}") from None


_SERIAL_NUMERIC_FIELDS: dict[str, type] = {
    "baudrate": int,
    "bytesize": int,
    "stopbits": float,
    "read_timeout_ms": int,
    "write_timeout_ms": int,
}


def _parse_serial(data: dict[str, Any]) -> SerialSettings:
    section = _require_mapping(data.get("serial"), "instrument.serial")
    if not section.get("port"):
        raise ValueError("Missing required field: instrument.serial.port")
    allowed = set(SerialSettings.__dataclass_fields__)
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown field(s) in instrument.serial: {', '.join(sorted(unknown))}")
    fields = {**section, "port": str(section["port"])}
    if "parity" in section:
        fields["parity"] = str(section["parity"]).upper()
    for key, kind in _SERIAL_NUMERIC_FIELDS.items():
        if key in section:
            fields[key] = _convert(section, key, kind, "instrument.serial")
    return SerialSettings(**fields)


def _parse_tcp(data: dict[str, Any]) -> TcpSettings:
    section = _require_mapping(data.get("tcp"), "instrument.tcp")
    if not section.get("host"):
        raise ValueError("Missing required field: instrument.tcp.host")
    port = _convert(section, "port", int, "instrument.tcp") if "port" in section else DEFAULT_SCPI_PORT
    timeout_ms = _convert(section, "timeout_ms", int, "instrument.tcp") if "timeout_ms" in section else 5000
    return TcpSettings(host=str(section["host"]), port=port, timeout_ms=timeout_ms)


def _parse_emulator(data: dict[str, Any]) -> str:
    section = _require_mapping(data.get("emulator", {}), "instrument.emulator")
    model = str(section.get("model", "SPE6103")).upper()
    if model not in EMULATOR_MODELS:
        raise ValueError(
            f"Unknown emulator model {model!r}; expected one of {', '.join(sorted(EMULATOR_MODELS))}"
        )
    return model


def parse_config(data: Any) -> PsuConfig:
    """Build a :class:`PsuConfig` from already-loaded YAML data.

    Args:
        data: The document root.

    Returns:
        Parsed configuration.

    Raises:
        ValueError: If the config is invalid or missing required fields.
    """
    root = _require_mapping(data, "Config")
    inst = _require_mapping(root.get("instrument"), "instrument")

    name = inst.get("name") or "psu"
    kind_text = str(inst.get("transport", "serial")).lower()
    try:
        kind = TransportKind(kind_text)
    except ValueError:
        raise ValueError(f"Invalid instrument.transport: {kind_text!r}") from None

    if kind is TransportKind.SERIAL:
        return PsuConfig(name=name, transport=kind, serial=_parse_serial(inst))
    if kind is TransportKind.TCP:
        return PsuConfig(name=name, transport=kind, tcp=_parse_tcp(inst))
    return PsuConfig(name=name, transport=kind, emulator_model=_parse_emulator(inst))


def load_config(path: str | Path) -> PsuConfig:
    """Load a power supply configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the config is invalid or missing required fields.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return parse_config(data)


def create_transport(config: PsuConfig) -> ScpiTransport:
    """Build the (unconnected) transport selected by *config*."""
    if config.transport is TransportKind.SERIAL:
        assert config.serial is not None
        return SerialTransport(config.serial)
    if config.transport is TransportKind.TCP:
        assert config.tcp is not None
        return TcpTransport(config.tcp.host, config.tcp.port, timeout_ms=config.tcp.timeout_ms)
    assert config.emulator_model is not None
    return EMULATOR_MODELS[config.emulator_model]()
