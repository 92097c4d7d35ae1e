"""Exception hierarchy for the OMP client.

Argument errors are raised synchronously by the operation layer. Every
other error is delivered through the future of the command that caused it
or was waiting for it.
"""

from __future__ import annotations


class OMPError(Exception):
    """Base class for all client errors."""


class InvalidArgumentError(OMPError, ValueError):
    """A required operation field is missing or out of range."""


class NotConnectedError(OMPError):
    """A command was submitted while the session has no open connection."""


class TransportConnectError(OMPError, ConnectionError):
    """The TLS connection or handshake failed."""


class ConnectionClosedError(OMPError, ConnectionError):
    """The connection closed while the command was queued or in flight."""


class MalformedReplyError(OMPError):
    """Reply text was not well-formed markup or lacked a required field."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class ProtocolFailureError(OMPError):
    """The server answered with a non-success status code."""

    def __init__(self, status: str, status_text: str, command: str | None = None):
        super().__init__(status_text or f"Command failed with status {status}")
        self.status = status
        self.status_text = status_text
        self.command = command


class CommandTimeoutError(OMPError, TimeoutError):
    """No reply arrived within the configured command timeout."""
