"""SCPI protocol error types.

This module defines the exception hierarchy raised by transports and
instrument clients. All exceptions inherit from :class:`ScpiError`, allowing
callers to catch every SCPI-related failure with a single except clause.

Exception hierarchy:
    ScpiError (base)
    +-- ScpiConnectionError: Channel could not be opened, is already open,
    |   |                    or was closed by the peer
    |   +-- ScpiNotConnectedError: Write/query attempted on a closed channel
    +-- ScpiTimeoutError: A read or write exceeded the configured timeout
    +-- ScpiResponseError: A reply could not be parsed

Cancellation of an asynchronous operation is reported with
:class:`asyncio.CancelledError`. Hardware and driver faults raised by the
underlying channel (``serial.SerialException``, ``OSError``) are not wrapped.
"""

from __future__ import annotations


class ScpiError(Exception):
    """Base exception for SCPI protocol errors."""


class ScpiConnectionError(ScpiError):
    """Raised when the channel cannot be opened or is already open.

    Also raised when the remote end closes a stream connection while a reply
    is still expected.
    """


class ScpiNotConnectedError(ScpiConnectionError):
    """Raised when a write or query is attempted while the channel is closed.

    This is a usage error, not a transient fault: no I/O is attempted and the
    caller must connect (or reconnect) before retrying.
    """


class ScpiTimeoutError(ScpiError):
    """Raised when a read or write exceeds the configured timeout.

    A timeout never closes the channel. Callers decide whether to retry or
    abort; nothing in this package retries automatically.
    """


class ScpiResponseError(ScpiError, ValueError):
    """Raised when an instrument reply is malformed.

    Covers both lexical failures (a field that is not a number, integer, ...)
    and multi-field replies with fewer fields than required.

    Attributes:
        response: The raw reply text that failed to parse.

    Example:
        >>> try:
        ...     psu.measure_all()
        ... except ScpiResponseError as e:
        ...     print(f"Bad reply: {e.response!r}")
    """

    def __init__(self, message: str, response: str) -> None:
        """Initialize the response error.

        Args:
            message: Description of what was expected.
            response: The raw reply text.
        """
        self.response = response
        super().__init__(f"{message}: {response!r}")
