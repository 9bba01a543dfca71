"""Tests for the pyserial-backed transport."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import serial

from hwtest_scpi.errors import ScpiConnectionError, ScpiNotConnectedError, ScpiTimeoutError
from hwtest_scpi.serial_port import SerialSettings, SerialTransport

# ---------------------------------------------------------------------------
# SerialSettings
# ---------------------------------------------------------------------------


class TestSerialSettings:
    """Tests for SerialSettings validation."""

    def test_defaults(self) -> None:
        settings = SerialSettings(port="/dev/ttyUSB0")
        assert settings.baudrate == 115200
        assert settings.parity == "N"
        assert settings.bytesize == 8
        assert settings.stopbits == 1
        assert settings.read_timeout_ms == 5000
        assert settings.write_timeout_ms == 5000

    def test_frozen(self) -> None:
        settings = SerialSettings(port="COM3")
        with pytest.raises(AttributeError):
            settings.port = "COM4"  # type: ignore[misc]

    def test_empty_port_raises(self) -> None:
        with pytest.raises(ValueError, match="port"):
            SerialSettings(port="")

    def test_zero_baudrate_raises(self) -> None:
        with pytest.raises(ValueError, match="baudrate"):
            SerialSettings(port="COM3", baudrate=0)

    def test_invalid_parity_raises(self) -> None:
        with pytest.raises(ValueError, match="parity"):
            SerialSettings(port="COM3", parity="X")

    def test_invalid_bytesize_raises(self) -> None:
        with pytest.raises(ValueError, match="bytesize"):
            SerialSettings(port="COM3", bytesize=9)

    def test_invalid_stopbits_raises(self) -> None:
        with pytest.raises(ValueError, match="stopbits"):
            SerialSettings(port="COM3", stopbits=3)

    def test_one_and_a_half_stopbits_allowed(self) -> None:
        assert SerialSettings(port="COM3", stopbits=1.5).stopbits == 1.5

    def test_non_positive_timeouts_raise(self) -> None:
        with pytest.raises(ValueError, match="read_timeout_ms"):
            SerialSettings(port="COM3", read_timeout_ms=0)
        with pytest.raises(ValueError, match="write_timeout_ms"):
            SerialSettings(port="COM3", write_timeout_ms=-1)


# ---------------------------------------------------------------------------
# SerialTransport with a mocked port
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_port() -> MagicMock:
    port = MagicMock()
    port.read_until.return_value = b"OWON,SPE6103,2128099,FV:V3.7.0\n"
    return port


@pytest.fixture
def serial_for_url(mock_port: MagicMock):  # type: ignore[no-untyped-def]
    with patch("hwtest_scpi.serial_port.serial.serial_for_url", return_value=mock_port) as factory:
        yield factory


class TestSerialTransport:
    """Tests for SerialTransport with serial_for_url patched."""

    def test_description(self) -> None:
        transport = SerialTransport(SerialSettings(port="/dev/ttyUSB0"))
        assert transport.description == "serial port /dev/ttyUSB0 (115200 8N1)"

    def test_description_fractional_stopbits(self) -> None:
        transport = SerialTransport(SerialSettings(port="COM3", baudrate=9600, parity="E", stopbits=1.5))
        assert transport.description == "serial port COM3 (9600 8E1.5)"

    def test_connect_opens_with_settings(self, serial_for_url: MagicMock) -> None:
        settings = SerialSettings(
            port="COM3",
            baudrate=9600,
            parity="E",
            bytesize=7,
            stopbits=2,
            read_timeout_ms=250,
            write_timeout_ms=1500,
        )
        transport = SerialTransport(settings)
        transport.connect()

        serial_for_url.assert_called_once_with(
            "COM3",
            baudrate=9600,
            parity="E",
            bytesize=7,
            stopbits=2,
            timeout=0.25,
            write_timeout=1.5,
        )
        assert transport.is_connected is True

    def test_open_failure_wrapped(self, serial_for_url: MagicMock) -> None:
        serial_for_url.side_effect = serial.SerialException("could not open port COM9")
        transport = SerialTransport(SerialSettings(port="COM9"))
        with pytest.raises(ScpiConnectionError, match="COM9") as exc_info:
            transport.connect()
        assert isinstance(exc_info.value.__cause__, serial.SerialException)
        assert transport.is_connected is False

    def test_write_line(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        transport.write_line("VOLT 12")
        mock_port.write.assert_called_once_with(b"VOLT 12\n")

    def test_query_line(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        assert transport.query_line("*IDN?") == "OWON,SPE6103,2128099,FV:V3.7.0"
        mock_port.write.assert_called_once_with(b"*IDN?\n")
        mock_port.read_until.assert_called_once_with(b"\n")

    def test_write_timeout_mapped(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        mock_port.write.side_effect = serial.SerialTimeoutException("Write timeout")
        transport = SerialTransport(SerialSettings(port="COM3", write_timeout_ms=100))
        transport.connect()
        with pytest.raises(ScpiTimeoutError, match="100 ms"):
            transport.write_line("OUTP ON")
        assert transport.is_connected is True

    def test_partial_reply_is_timeout(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        mock_port.read_until.return_value = b"12.0"
        transport = SerialTransport(SerialSettings(port="COM3", read_timeout_ms=200))
        transport.connect()
        with pytest.raises(ScpiTimeoutError, match="200 ms"):
            transport.query_line("MEAS:VOLT?")
        assert transport.is_connected is True

    def test_partial_reply_kept_for_next_read(
        self, serial_for_url: MagicMock, mock_port: MagicMock
    ) -> None:
        mock_port.read_until.side_effect = [b"12.", b"345\n"]
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        with pytest.raises(ScpiTimeoutError, match="b'12.'"):
            transport.query_line("MEAS:VOLT?")
        assert transport.query_line("MEAS:CURR?") == "12.345"

    def test_partial_reply_dropped_on_reconnect(
        self, serial_for_url: MagicMock, mock_port: MagicMock
    ) -> None:
        mock_port.read_until.side_effect = [b"12.", b"1\n"]
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        with pytest.raises(ScpiTimeoutError):
            transport.query_line("MEAS:VOLT?")
        transport.close()
        transport.connect()
        assert transport.query_line("*OPC?") == "1"

    def test_empty_reply_is_timeout(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        mock_port.read_until.return_value = b""
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        with pytest.raises(ScpiTimeoutError):
            transport.query_line("MEAS:VOLT?")

    def test_io_fault_propagates(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        mock_port.read_until.side_effect = serial.SerialException("device disconnected")
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        with pytest.raises(serial.SerialException):
            transport.query_line("*IDN?")

    def test_close_closes_port(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        transport.close()
        mock_port.close.assert_called_once()
        assert transport.is_connected is False

    def test_close_suppresses_port_error(self, serial_for_url: MagicMock, mock_port: MagicMock) -> None:
        mock_port.close.side_effect = OSError("I/O error")
        transport = SerialTransport(SerialSettings(port="COM3"))
        transport.connect()
        transport.close()
        assert transport.is_connected is False

    def test_not_connected_never_opens(self, serial_for_url: MagicMock) -> None:
        transport = SerialTransport(SerialSettings(port="COM3"))
        with pytest.raises(ScpiNotConnectedError):
            transport.query_line("*IDN?")
        serial_for_url.assert_not_called()


# ---------------------------------------------------------------------------
# SerialTransport over pyserial's loopback URL
# ---------------------------------------------------------------------------


class TestSerialLoopback:
    """Tests against pyserial's ``loop://`` handler, which echoes writes."""

    def test_query_reads_echo(self) -> None:
        with SerialTransport(SerialSettings(port="loop://", read_timeout_ms=200)) as transport:
            assert transport.query_line("*IDN?") == "*IDN?"

    def test_replies_stay_in_order(self) -> None:
        with SerialTransport(SerialSettings(port="loop://", read_timeout_ms=200)) as transport:
            transport.write_line("OUTP ON")
            assert transport.query_line("OUTP?") == "OUTP ON"

    def test_silence_times_out(self) -> None:
        with SerialTransport(SerialSettings(port="loop://", read_timeout_ms=50)) as transport:
            with pytest.raises(ScpiTimeoutError):
                transport._receive_line()  # pylint: disable=protected-access
            assert transport.is_connected is True
