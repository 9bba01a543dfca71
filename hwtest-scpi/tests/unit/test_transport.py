"""Tests for the LineTransport base class using a scripted fake medium."""

from __future__ import annotations

import logging
from collections import deque

import pytest

from hwtest_scpi.errors import (
    ScpiConnectionError,
    ScpiNotConnectedError,
    ScpiTimeoutError,
)
from hwtest_scpi.transport import LineTransport, ScpiTransport

# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeLineTransport(LineTransport):
    """In-memory medium that replays pre-loaded reply lines."""

    def __init__(self, replies: list[bytes] | None = None) -> None:
        super().__init__()
        self.replies: deque[bytes] = deque(replies or [])
        self.sent: list[bytes] = []
        self.open_calls = 0
        self.release_calls = 0
        self.open_error: Exception | None = None
        self.release_error: Exception | None = None

    @property
    def description(self) -> str:
        return "fake channel"

    def _open(self) -> None:
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error

    def _send(self, payload: bytes) -> None:
        self.sent.append(payload)

    def _receive_line(self) -> bytes:
        if not self.replies:
            raise ScpiTimeoutError("no reply")
        return self.replies.popleft()

    def _release(self) -> None:
        self.release_calls += 1
        if self.release_error is not None:
            raise self.release_error


def _connected(replies: list[bytes] | None = None) -> FakeLineTransport:
    transport = FakeLineTransport(replies)
    transport.connect()
    return transport


# ---------------------------------------------------------------------------
# Connection lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Tests for connect/close."""

    def test_initially_disconnected(self) -> None:
        assert FakeLineTransport().is_connected is False

    def test_connect_opens_channel(self) -> None:
        transport = _connected()
        assert transport.is_connected is True
        assert transport.open_calls == 1

    def test_connect_twice_raises(self) -> None:
        transport = _connected()
        with pytest.raises(ScpiConnectionError, match="already connected"):
            transport.connect()
        assert transport.open_calls == 1

    def test_open_failure_wrapped_and_chained(self) -> None:
        transport = FakeLineTransport()
        cause = OSError("port busy")
        transport.open_error = cause
        with pytest.raises(ScpiConnectionError, match="Failed to open fake channel") as exc_info:
            transport.connect()
        assert exc_info.value.__cause__ is cause
        assert transport.is_connected is False

    def test_open_failure_releases_partial_channel(self) -> None:
        transport = FakeLineTransport()
        transport.open_error = OSError("port busy")
        with pytest.raises(ScpiConnectionError):
            transport.connect()
        assert transport.release_calls == 1

    def test_close_marks_disconnected(self) -> None:
        transport = _connected()
        transport.close()
        assert transport.is_connected is False
        assert transport.release_calls == 1

    def test_close_idempotent(self) -> None:
        transport = _connected()
        transport.close()
        transport.close()
        assert transport.is_connected is False

    def test_close_without_connect(self) -> None:
        FakeLineTransport().close()

    def test_close_suppresses_release_error(self, caplog: pytest.LogCaptureFixture) -> None:
        transport = _connected()
        transport.release_error = OSError("device gone")
        with caplog.at_level(logging.DEBUG, logger="hwtest_scpi.transport"):
            transport.close()
        assert transport.is_connected is False
        assert "Ignoring error while releasing" in caplog.text

    def test_reconnect_after_close(self) -> None:
        transport = _connected()
        transport.close()
        transport.connect()
        assert transport.is_connected is True


# ---------------------------------------------------------------------------
# Context manager
# ---------------------------------------------------------------------------


class TestContextManager:
    """Tests for the with-statement protocol."""

    def test_connects_and_closes(self) -> None:
        transport = FakeLineTransport()
        with transport as entered:
            assert entered is transport
            assert transport.is_connected is True
        assert transport.is_connected is False

    def test_already_connected_is_reused(self) -> None:
        transport = _connected()
        with transport:
            pass
        assert transport.open_calls == 1

    def test_closes_on_error(self) -> None:
        transport = FakeLineTransport()
        with pytest.raises(RuntimeError):
            with transport:
                raise RuntimeError("boom")
        assert transport.is_connected is False

    def test_release_error_does_not_mask_primary_error(self) -> None:
        transport = FakeLineTransport()
        transport.release_error = OSError("close failed")
        with pytest.raises(RuntimeError, match="primary"):
            with transport:
                raise RuntimeError("primary")


# ---------------------------------------------------------------------------
# write_line / query_line
# ---------------------------------------------------------------------------


class TestWriteLine:
    """Tests for write_line."""

    def test_appends_terminator(self) -> None:
        transport = _connected()
        transport.write_line("VOLT 7")
        assert transport.sent == [b"VOLT 7\n"]

    def test_strips_surrounding_whitespace(self) -> None:
        transport = _connected()
        transport.write_line("  OUTP ON \n")
        assert transport.sent == [b"OUTP ON\n"]

    def test_not_connected_raises_without_io(self) -> None:
        transport = FakeLineTransport()
        with pytest.raises(ScpiNotConnectedError, match="not connected"):
            transport.write_line("*RST")
        assert transport.sent == []

    def test_after_close_raises(self) -> None:
        transport = _connected()
        transport.close()
        with pytest.raises(ScpiNotConnectedError):
            transport.write_line("*RST")

    def test_not_connected_is_connection_error(self) -> None:
        with pytest.raises(ScpiConnectionError):
            FakeLineTransport().write_line("*RST")


class TestQueryLine:
    """Tests for query_line."""

    def test_returns_stripped_reply(self) -> None:
        transport = _connected([b"  OWON,SPE6103,1,FV:V3.7.0\r\n"])
        assert transport.query_line("*IDN?") == "OWON,SPE6103,1,FV:V3.7.0"
        assert transport.sent == [b"*IDN?\n"]

    def test_not_connected_raises_without_io(self) -> None:
        transport = FakeLineTransport([b"1\n"])
        with pytest.raises(ScpiNotConnectedError):
            transport.query_line("OUTP?")
        assert transport.sent == []
        assert len(transport.replies) == 1

    def test_timeout_keeps_connection_open(self) -> None:
        transport = _connected([])
        with pytest.raises(ScpiTimeoutError):
            transport.query_line("VOLT?")
        assert transport.is_connected is True

    def test_undecodable_bytes_replaced(self) -> None:
        transport = _connected([b"12\xff\n"])
        assert transport.query_line("VOLT?") == "12\ufffd"

    def test_logs_traffic_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        transport = _connected([b"1\n"])
        with caplog.at_level(logging.DEBUG, logger="hwtest_scpi.transport"):
            transport.query_line("OUTP?")
        assert "-> OUTP?" in caplog.text
        assert "<- 1" in caplog.text


# ---------------------------------------------------------------------------
# Protocol conformance
# ---------------------------------------------------------------------------


class TestProtocol:
    """LineTransport subclasses satisfy the ScpiTransport protocol."""

    def test_usable_as_scpi_transport(self) -> None:
        transport: ScpiTransport = _connected([b"ON\n"])
        assert transport.query_line("OUTP?") == "ON"
