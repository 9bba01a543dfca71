"""SCPI protocol library for hwtest instrument automation.

This package provides SCPI (Standard Commands for Programmable Instruments)
communication infrastructure for hardware test automation. It includes:

- Transport protocol and line-framing base class for SCPI message passing
- pyserial-backed transport for RS-232 / USB-serial instruments
- TCP socket transport for LAN instruments and emulator servers
- Number parsing and formatting utilities for SCPI replies and arguments
- ``*IDN?`` identification parsing
- Custom exception types for SCPI protocol errors

Typical usage::

    from hwtest_scpi import SerialSettings, SerialTransport

    with SerialTransport(SerialSettings(port="/dev/ttyUSB0")) as transport:
        print(transport.query_line("*IDN?"))
"""

from hwtest_scpi.errors import (
    ScpiConnectionError,
    ScpiError,
    ScpiNotConnectedError,
    ScpiResponseError,
    ScpiTimeoutError,
)
from hwtest_scpi.identity import InstrumentIdentity, parse_idn_response
from hwtest_scpi.number import (
    format_number,
    normalize_bool,
    parse_int,
    parse_number,
    split_fields,
)
from hwtest_scpi.serial_port import SerialSettings, SerialTransport
from hwtest_scpi.tcp import DEFAULT_SCPI_PORT, TcpTransport
from hwtest_scpi.transport import LINE_TERMINATOR, LineTransport, ScpiTransport

__all__ = [
    # Errors
    "ScpiConnectionError",
    "ScpiError",
    "ScpiNotConnectedError",
    "ScpiResponseError",
    "ScpiTimeoutError",
    # Identity
    "InstrumentIdentity",
    "parse_idn_response",
    # Number parsing/formatting
    "format_number",
    "normalize_bool",
    "parse_int",
    "parse_number",
    "split_fields",
    # Serial
    "SerialSettings",
    "SerialTransport",
    # TCP
    "DEFAULT_SCPI_PORT",
    "TcpTransport",
    # Transport
    "LINE_TERMINATOR",
    "LineTransport",
    "ScpiTransport",
]
