"""Serial-port transport for SCPI instruments.

This module provides a pyserial-backed :class:`LineTransport` for instruments
that speak SCPI over RS-232 or a USB virtual COM port. Port parameters are
grouped in an immutable :class:`SerialSettings` so they can be validated once
and shared between configuration loading and the transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import serial

from hwtest_scpi.errors import ScpiTimeoutError
from hwtest_scpi.transport import LINE_TERMINATOR, LineTransport

_PARITIES: frozenset[str] = frozenset(serial.Serial.PARITIES)
_BYTESIZES: frozenset[int] = frozenset(serial.Serial.BYTESIZES)
_STOPBITS: frozenset[float] = frozenset(serial.Serial.STOPBITS)


@dataclass(frozen=True)
class SerialSettings:
    """Serial port parameters.

    Args:
        port: Port name (e.g. ``"/dev/ttyUSB0"``, ``"COM3"``) or a pyserial
            URL such as ``"loop://"``.
        baudrate: Line speed in baud.
        parity: pyserial parity code (``"N"``, ``"E"``, ``"O"``, ``"M"``, ``"S"``).
        bytesize: Data bits per character (5-8).
        stopbits: Stop bits (1, 1.5 or 2).
        read_timeout_ms: Maximum time to wait for a full reply line.
        write_timeout_ms: Maximum time to wait for a command to be written.
    """

    port: str
    baudrate: int = 115200
    parity: str = serial.PARITY_NONE
    bytesize: int = serial.EIGHTBITS
    stopbits: float = serial.STOPBITS_ONE
    read_timeout_ms: int = 5000
    write_timeout_ms: int = 5000

    def __post_init__(self) -> None:
        if not self.port:
            raise ValueError("port must be non-empty")
        if self.baudrate <= 0:
            raise ValueError("baudrate must be > 0")
        if self.parity not in _PARITIES:
            raise ValueError(f"parity must be one of {sorted(_PARITIES)}, got {self.parity!r}")
        if self.bytesize not in _BYTESIZES:
            raise ValueError(f"bytesize must be one of {sorted(_BYTESIZES)}, got {self.bytesize}")
        if self.stopbits not in _STOPBITS:
            raise ValueError(f"stopbits must be one of {sorted(_STOPBITS)}, got {self.stopbits}")
        if self.read_timeout_ms <= 0:
            raise ValueError("read_timeout_ms must be > 0")
        if self.write_timeout_ms <= 0:
            raise ValueError("write_timeout_ms must be > 0")


class SerialTransport(LineTransport):
    """SCPI transport over a serial port.

    The port is opened by :meth:`connect` and released by :meth:`close`. Read
    and write timeouts come from the settings and apply to every call on this
    connection.

    Faults reported by the serial driver while the port is open (e.g. the
    adapter was unplugged) propagate as :class:`serial.SerialException`.

    Args:
        settings: Port parameters.

    Example:
        >>> transport = SerialTransport(SerialSettings(port="/dev/ttyUSB0"))
        >>> transport.connect()
        >>> print(transport.query_line("*IDN?"))
        >>> transport.close()
    """

    def __init__(self, settings: SerialSettings) -> None:
        super().__init__()
        self._settings = settings
        self._port: Any = None
        self._pending = b""

    @property
    def settings(self) -> SerialSettings:
        """The serial port parameters."""
        return self._settings

    @property
    def description(self) -> str:
        """Port name and line settings."""
        s = self._settings
        return f"serial port {s.port} ({s.baudrate} {s.bytesize}{s.parity}{s.stopbits:g})"

    # -- Medium hooks --------------------------------------------------------

    def _open(self) -> None:
        s = self._settings
        self._pending = b""
        self._port = serial.serial_for_url(
            s.port,
            baudrate=s.baudrate,
            parity=s.parity,
            bytesize=s.bytesize,
            stopbits=s.stopbits,
            timeout=s.read_timeout_ms / 1000,
            write_timeout=s.write_timeout_ms / 1000,
        )

    def _send(self, payload: bytes) -> None:
        try:
            self._port.write(payload)
        except serial.SerialTimeoutException as exc:
            raise ScpiTimeoutError(
                f"Write to {self._settings.port} timed out after "
                f"{self._settings.write_timeout_ms} ms"
            ) from exc

    def _receive_line(self) -> bytes:
        terminator = LINE_TERMINATOR.encode("ascii")
        raw: bytes = self._pending + self._port.read_until(terminator)
        if not raw.endswith(terminator):
            # Keep the partial line; the rest of it arrives ahead of the next reply.
            self._pending = raw
            raise ScpiTimeoutError(
                f"No reply from {self._settings.port} within "
                f"{self._settings.read_timeout_ms} ms (received {raw!r})"
            )
        return raw

    def _release(self) -> None:
        port, self._port = self._port, None
        self._pending = b""
        if port is not None:
            port.close()
