"""Serve an OWON emulator (or any SCPI transport) over TCP.

Each accepted client gets its own handler thread, and every line it sends is
forwarded to one shared :class:`~hwtest_scpi.ScpiTransport`. Clients can be
:class:`hwtest_scpi.TcpTransport`, telnet or netcat. Pointing the server at a
connected :class:`hwtest_scpi.SerialTransport` turns it into a simple
serial-to-LAN bridge.

Example:
    Serve an SPE6103 emulator on an ephemeral port::

        from hwtest_owon import EmulatorServer, make_spe6103_emulator

        server = EmulatorServer(make_spe6103_emulator(), port=0)
        server.start()

        host, port = server.address
        # nc localhost {port}
        # > *IDN?
        # < OWON,SPE6103,2128099,FV:V3.7.0

        server.stop()
"""

from __future__ import annotations

import logging
import socketserver
import threading

from hwtest_scpi import ScpiError, ScpiTransport

logger = logging.getLogger(__name__)


class _LineForwarder(socketserver.StreamRequestHandler):
    """Forward one client's lines to the shared transport.

    Lines containing ``?`` are queries and the reply line is written back.
    A query the transport cannot answer gets no reply, the same as a silent
    instrument.
    """

    server: _TransportServer

    def handle(self) -> None:
        peer = "%s:%d" % self.client_address[:2]
        logger.debug("Client %s connected", peer)
        for raw_line in self.rfile:
            line = raw_line.decode("ascii", errors="replace").strip()
            if not line:
                continue
            reply = self.server.forward(line)
            if reply is not None:
                self.wfile.write((reply + "\n").encode("ascii"))
                self.wfile.flush()
        logger.debug("Client %s disconnected", peer)


class _TransportServer(socketserver.ThreadingTCPServer):
    """Threading TCP server that owns the transport and its lock."""

    allow_reuse_address = True
    daemon_threads = True
    block_on_close = False

    def __init__(self, server_address: tuple[str, int], transport: ScpiTransport) -> None:
        self.transport = transport
        self._transport_lock = threading.Lock()
        super().__init__(server_address, _LineForwarder)

    def forward(self, line: str) -> str | None:
        """Send *line* to the transport and return the reply, if any."""
        with self._transport_lock:
            try:
                if "?" in line:
                    return self.transport.query_line(line)
                self.transport.write_line(line)
            except ScpiError as exc:
                logger.debug("No reply to %r: %s", line, exc)
        return None


class EmulatorServer:
    """Expose a ``ScpiTransport`` on a TCP port.

    The transport is connected by :meth:`start` if needed and left open by
    :meth:`stop`. Any number of clients may connect; their lines are
    forwarded one at a time.

    Args:
        transport: The transport to serve, typically an emulator.
        host: Bind address.
        port: Bind port. ``0`` picks a free ephemeral port.
    """

    def __init__(self, transport: ScpiTransport, host: str = "127.0.0.1", port: int = 5025) -> None:
        self._server = _TransportServer((host, port), transport)
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        """The bound ``(host, port)``, useful after binding port 0."""
        host, port = self._server.server_address[:2]
        return (str(host), int(port))

    @property
    def is_running(self) -> bool:
        """True between :meth:`start` and :meth:`stop`."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Connect the transport if needed and serve in a daemon thread."""
        transport = self._server.transport
        if not transport.is_connected:
            transport.connect()
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="owon-emulator-server", daemon=True
        )
        self._thread.start()
        logger.info("Serving SCPI on %s:%d", *self.address)

    def stop(self) -> None:
        """Stop accepting clients and release the listening socket."""
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()
        logger.info("Stopped SCPI server")
