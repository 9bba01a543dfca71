"""Raw-socket transport for SCPI-over-TCP instruments and emulators.

Many LAN instruments (and :class:`hwtest_owon.EmulatorServer`) accept SCPI
lines on a plain TCP socket, conventionally port 5025. This transport keeps a
single persistent connection for the lifetime of the session.
"""

from __future__ import annotations

import socket

from hwtest_scpi.errors import ScpiConnectionError, ScpiTimeoutError
from hwtest_scpi.transport import LINE_TERMINATOR, LineTransport

DEFAULT_SCPI_PORT = 5025


class TcpTransport(LineTransport):
    """SCPI transport over a TCP socket.

    Args:
        host: Instrument host name or IP address.
        port: TCP port. Defaults to 5025.
        timeout_ms: Connect, read and write timeout in milliseconds.
    """

    def __init__(self, host: str, port: int = DEFAULT_SCPI_PORT, *, timeout_ms: int = 5000) -> None:
        if not host:
            raise ValueError("host must be non-empty")
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        super().__init__()
        self._host = host
        self._port = port
        self._timeout_ms = timeout_ms
        self._sock: socket.socket | None = None
        self._buffer = b""

    @property
    def address(self) -> tuple[str, int]:
        """The ``(host, port)`` this transport connects to."""
        return (self._host, self._port)

    @property
    def description(self) -> str:
        """Socket address."""
        return f"tcp://{self._host}:{self._port}"

    # -- Medium hooks --------------------------------------------------------

    def _open(self) -> None:
        timeout = self._timeout_ms / 1000
        self._sock = socket.create_connection((self._host, self._port), timeout=timeout)
        self._sock.settimeout(timeout)
        self._buffer = b""

    def _send(self, payload: bytes) -> None:
        assert self._sock is not None
        try:
            self._sock.sendall(payload)
        except socket.timeout as exc:
            raise ScpiTimeoutError(
                f"Write to {self.description} timed out after {self._timeout_ms} ms"
            ) from exc

    def _receive_line(self) -> bytes:
        assert self._sock is not None
        terminator = LINE_TERMINATOR.encode("ascii")
        while terminator not in self._buffer:
            try:
                chunk = self._sock.recv(4096)
            except socket.timeout as exc:
                raise ScpiTimeoutError(
                    f"No reply from {self.description} within {self._timeout_ms} ms"
                ) from exc
            if not chunk:
                raise ScpiConnectionError(f"{self.description} closed the connection")
            self._buffer += chunk
        line, _, self._buffer = self._buffer.partition(terminator)
        return line + terminator

    def _release(self) -> None:
        sock, self._sock = self._sock, None
        self._buffer = b""
        if sock is not None:
            sock.close()
