"""SCPI transport protocol and shared line-framing base class.

This module defines the :class:`ScpiTransport` protocol, which specifies the
interface that all SCPI transport implementations must provide, and
:class:`LineTransport`, an abstract base that implements the protocol for any
medium carrying ``\\n``-terminated ASCII lines.

Implementations include:
- :class:`hwtest_scpi.SerialTransport`: RS-232/USB-serial ports via pyserial
- :class:`hwtest_scpi.TcpTransport`: raw SCPI-over-TCP sockets
- Emulator transports in instrument driver packages (e.g., hwtest-owon)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Protocol

from hwtest_scpi.errors import ScpiConnectionError, ScpiNotConnectedError

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\n"


class ScpiTransport(Protocol):
    """Protocol for line-framed SCPI message transport.

    Implementations provide the physical layer for sending commands to and
    receiving single-line replies from SCPI instruments, and own the
    connection handle for the channel.

    This is a structural subtyping protocol (duck typing). Any class with the
    methods below is a valid transport and can be handed to an instrument
    client.

    A transport is not safe for concurrent use: interleaving two queries on
    one physical line corrupts the framing. Instrument clients serialize their
    own calls; callers that share a transport between clients must do the same.
    """

    @property
    def is_connected(self) -> bool:
        """Return True if the channel is open. Never performs I/O."""
        ...

    def connect(self) -> None:
        """Open the channel.

        Raises:
            ScpiConnectionError: If already connected or the open fails.
        """
        ...

    def write_line(self, command: str) -> None:
        """Send one command line without waiting for a reply.

        Args:
            command: The SCPI command (the line terminator is appended).

        Raises:
            ScpiNotConnectedError: If the channel is closed.
            ScpiTimeoutError: If the write times out.
        """
        ...

    def query_line(self, command: str) -> str:
        """Send one command line and read exactly one reply line.

        Args:
            command: The SCPI query.

        Returns:
            The reply with surrounding whitespace and terminator stripped.

        Raises:
            ScpiNotConnectedError: If the channel is closed.
            ScpiTimeoutError: If no complete reply arrives in time.
        """
        ...

    def close(self) -> None:
        """Release the channel. Safe to call repeatedly; never raises."""
        ...


class LineTransport(ABC):
    """Base class for transports that exchange ``\\n``-terminated ASCII lines.

    Subclasses implement four hooks for their medium; this class supplies
    connection-state checks, framing, logging, best-effort release and the
    context-manager protocol::

        with SerialTransport(SerialSettings(port="/dev/ttyUSB0")) as transport:
            print(transport.query_line("*IDN?"))

    Hook contract:
        ``_open()``: Acquire the channel. Raise on failure.
        ``_send(payload)``: Transmit encoded bytes.
        ``_receive_line()``: Block until one full line (terminator included)
            arrives and return it, or raise ``ScpiTimeoutError``.
        ``_release()``: Drop the channel. May raise; failures are suppressed.
    """

    def __init__(self) -> None:
        self._connected = False

    # -- Properties ----------------------------------------------------------

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable channel identifier used in messages and logs."""

    @property
    def is_connected(self) -> bool:
        """Return True if the channel is currently open."""
        return self._connected

    # -- Lifecycle -----------------------------------------------------------

    def connect(self) -> None:
        """Open the channel.

        Raises:
            ScpiConnectionError: If the channel is already connected, or the
                underlying open fails (chained to the original exception).
        """
        if self._connected:
            raise ScpiConnectionError(f"{self.description} is already connected")
        try:
            self._open()
        except ScpiConnectionError:
            raise
        except Exception as exc:
            self._safe_release()
            raise ScpiConnectionError(f"Failed to open {self.description}: {exc}") from exc
        self._connected = True
        logger.info("Connected to %s", self.description)

    def close(self) -> None:
        """Release the channel.

        Safe to call multiple times and before :meth:`connect`. Errors raised
        while releasing are logged and suppressed so that cleanup never masks
        the error that triggered it.
        """
        was_connected = self._connected
        self._connected = False
        self._safe_release()
        if was_connected:
            logger.info("Closed %s", self.description)

    def __enter__(self) -> LineTransport:
        if not self._connected:
            self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Transport interface -------------------------------------------------

    def write_line(self, command: str) -> None:
        """Send one command line.

        Args:
            command: The SCPI command. Surrounding whitespace is stripped and
                the line terminator appended.

        Raises:
            ScpiNotConnectedError: If the channel is closed.
            ScpiTimeoutError: If the write times out.
        """
        self._require_connected()
        line = command.strip()
        logger.debug("%s -> %s", self.description, line)
        self._send((line + LINE_TERMINATOR).encode("ascii"))

    def query_line(self, command: str) -> str:
        """Send one command line and read one reply line.

        Args:
            command: The SCPI query.

        Returns:
            The reply with surrounding whitespace stripped.

        Raises:
            ScpiNotConnectedError: If the channel is closed.
            ScpiTimeoutError: If no complete reply arrives within the read
                timeout. The channel stays open.
        """
        self.write_line(command)
        raw = self._receive_line()
        reply = raw.decode("ascii", errors="replace").strip()
        logger.debug("%s <- %s", self.description, reply)
        return reply

    # -- Private helpers -----------------------------------------------------

    def _require_connected(self) -> None:
        if not self._connected:
            raise ScpiNotConnectedError(f"{self.description} is not connected")

    def _safe_release(self) -> None:
        try:
            self._release()
        except Exception:  # pylint: disable=broad-except
            logger.debug("Ignoring error while releasing %s", self.description, exc_info=True)

    # -- Medium hooks --------------------------------------------------------

    @abstractmethod
    def _open(self) -> None:
        """Acquire the underlying channel."""

    @abstractmethod
    def _send(self, payload: bytes) -> None:
        """Transmit *payload*."""

    @abstractmethod
    def _receive_line(self) -> bytes:
        """Read one terminated line."""

    @abstractmethod
    def _release(self) -> None:
        """Release the underlying channel."""
