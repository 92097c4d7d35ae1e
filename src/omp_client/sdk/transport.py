"""Client-side transport abstraction for OMPClient.

The transport owns the encrypted stream and nothing else: connect, write
text, deliver inbound replies, signal closure. It knows nothing about
commands or correlation, that is the pipeline's job.

Architecture:
- ClientTransport is the PROTOCOL (interface) for all client transports
- BaseClientTransport handles state, callbacks and the background reader
- TLSClientTransport talks to a real manager over TLS
- MockClientTransport records writes and lets tests feed replies
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
import ssl
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from ..errors import InvalidArgumentError, NotConnectedError, TransportConnectError

logger = logging.getLogger(__name__)

DataCallback = Callable[[str], None]
CloseCallback = Callable[[str], None]

REMOTE_CLOSED = "Connection closed by remote host"
CLIENT_CLOSED = "Connection closed by client"


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ClientTransportConfig:
    """Connection settings for the manager daemon."""

    host: str = "127.0.0.1"
    port: int = 9390

    # TLS. The manager usually runs with a self-signed certificate, so peer
    # verification is off unless asked for.
    verify: bool = False
    cafile: str | None = None
    certfile: str | None = None
    keyfile: str | None = None

    # Timeouts in seconds (None disables)
    connect_timeout: float | None = 30.0
    command_timeout: float | None = 120.0

    read_size: int = 65536

    @classmethod
    def from_env(cls, **overrides: object) -> ClientTransportConfig:
        """Build a config from OMP_* environment variables.

        Keyword overrides win over the environment; None values are ignored.
        """
        config = cls()
        config.host = os.getenv("OMP_HOST", config.host)
        port = os.getenv("OMP_PORT")
        if port:
            try:
                config.port = int(port)
            except ValueError as e:
                raise InvalidArgumentError(f"OMP_PORT must be an integer, got {port!r}") from e
        config.verify = _env_flag("OMP_VERIFY", config.verify)
        config.cafile = os.getenv("OMP_CAFILE", config.cafile)
        config.certfile = os.getenv("OMP_CERTFILE", config.certfile)
        config.keyfile = os.getenv("OMP_KEYFILE", config.keyfile)
        timeout = os.getenv("OMP_COMMAND_TIMEOUT")
        if timeout:
            try:
                config.command_timeout = float(timeout) or None
            except ValueError as e:
                raise InvalidArgumentError(
                    f"OMP_COMMAND_TIMEOUT must be a number, got {timeout!r}"
                ) from e
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)
        return config

    def validate(self) -> None:
        if not self.host or not self.host.strip():
            raise InvalidArgumentError("Provided invalid host for connection")
        if not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            raise InvalidArgumentError(f"Provided invalid port for connection: {self.port!r}")

    def ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.cafile)
        if not self.verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if self.certfile:
            context.load_cert_chain(self.certfile, self.keyfile)
        return context


@runtime_checkable
class ClientTransport(Protocol):
    """Protocol for client transports.

    All transports must implement:
    - connect/disconnect: Lifecycle management
    - write: Fire-and-forget send of one complete command
    - on_data/on_close: Inbound notifications consumed by the pipeline
    """

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...

    @property
    def authorized(self) -> bool:
        """Whether the peer certificate was verified."""
        ...

    async def connect(self) -> bool:
        """Establish the connection.

        Returns:
            True if the peer certificate was verified

        Raises:
            ConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Close the connection gracefully."""
        ...

    def write(self, text: str) -> None:
        """Queue text for sending. Ordered and reliable, no acknowledgement."""
        ...

    def on_data(self, callback: DataCallback) -> None:
        """Register a handler for each complete inbound reply."""
        ...

    def on_close(self, callback: CloseCallback) -> None:
        """Register a handler called once when the connection closes."""
        ...


# Markup that never changes element depth, with its terminator
_OPAQUE_MARKUP = (("<!--", "-->"), ("<![CDATA[", "]]>"), ("<?", "?>"), ("<!", ">"))


def _tag_end(text: str, start: int) -> int | None:
    """Index of the ``>`` closing the tag at ``start``, skipping quoted values."""
    quote = None
    for i in range(start + 1, len(text)):
        char = text[i]
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == ">":
            return i
    return None


class ReplyFramer:
    """Splits an inbound character stream into complete top-level elements.

    Tags are counted by depth, so a reply ends exactly where its root element
    closes and anything after it starts the next reply. Mismatched tags still
    count, so a broken reply is passed on whole for the codec to report.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._reset()

    def _reset(self) -> None:
        self._scanned = 0
        self._depth = 0

    @property
    def pending(self) -> bool:
        return bool(self._buffer.strip())

    def feed(self, text: str) -> list[str]:
        """Feed text and return any replies it completed."""
        self._buffer += text
        replies: list[str] = []
        while True:
            if self._depth == 0 and self._scanned == 0:
                self._buffer = self._buffer.lstrip()
            end = self._scan()
            if end is None:
                return replies
            replies.append(self._buffer[:end])
            self._buffer = self._buffer[end:]
            self._reset()

    def flush(self) -> str:
        """Return whatever is buffered, complete or not, and start over."""
        text, self._buffer = self._buffer, ""
        self._reset()
        return text

    def _scan(self) -> int | None:
        """Advance over the buffer; return the end offset once the root closes."""
        text = self._buffer
        while True:
            start = text.find("<", self._scanned)
            if start < 0:
                self._scanned = len(text)
                return None
            for opener, closer in _OPAQUE_MARKUP:
                if text.startswith(opener, start):
                    close = text.find(closer, start + len(opener))
                    if close < 0:
                        self._scanned = start
                        return None
                    self._scanned = close + len(closer)
                    break
            else:
                close = _tag_end(text, start)
                if close is None:
                    self._scanned = start
                    return None
                self._scanned = close + 1
                if text.startswith("</", start):
                    self._depth -= 1
                elif text[close - 1] != "/":
                    self._depth += 1
                if self._depth <= 0:
                    return self._scanned


class BaseClientTransport(ABC):
    """Base class for client transports with common functionality.

    Provides:
    - State management
    - Data/close callback fan-out
    - Background reader task management
    """

    def __init__(self, config: ClientTransportConfig):
        self.config = config
        self._state = TransportState.DISCONNECTED
        self._authorized = False
        self._data_callbacks: list[DataCallback] = []
        self._close_callbacks: list[CloseCallback] = []
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._close_notified = True

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    @property
    def authorized(self) -> bool:
        return self._authorized

    def on_data(self, callback: DataCallback) -> None:
        self._data_callbacks.append(callback)

    def on_close(self, callback: CloseCallback) -> None:
        self._close_callbacks.append(callback)

    async def connect(self) -> bool:
        """Establish connection."""
        self.config.validate()
        async with self._lock:
            if self._state == TransportState.CONNECTED:
                return self._authorized

            # Reader of a previous connection that has not wound down yet
            if self._reader_task and not self._reader_task.done():
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
            self._reader_task = None

            self._state = TransportState.CONNECTING
            try:
                self._authorized = await self._do_connect()
            except Exception as e:
                self._state = TransportState.DISCONNECTED
                raise TransportConnectError(f"Failed to connect: {e}") from e

            self._state = TransportState.CONNECTED
            self._close_notified = False
            self._reader_task = asyncio.create_task(self._read_loop())
            logger.info(
                f"{self.__class__.__name__} connected to {self.config.host}:{self.config.port} "
                f"(authorized={self._authorized})"
            )
            return self._authorized

    async def disconnect(self) -> None:
        """Close the connection."""
        async with self._lock:
            if self._state in (TransportState.DISCONNECTED, TransportState.CLOSED):
                return

            self._state = TransportState.CLOSED

            if self._reader_task:
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
                self._reader_task = None

            await self._do_disconnect()
            self._state = TransportState.DISCONNECTED
            self._notify_closed(CLIENT_CLOSED)
            logger.info(f"{self.__class__.__name__} disconnected")

    def write(self, text: str) -> None:
        if not self.is_connected:
            raise NotConnectedError("Transport not connected")
        self._do_write(text)

    def _dispatch(self, chunk: str) -> None:
        """Hand one complete reply to every data callback."""
        for callback in self._data_callbacks:
            try:
                callback(chunk)
            except Exception:
                logger.exception("Data callback failed")

    def _connection_lost(self, reason: str) -> None:
        """Mark the connection gone and notify once."""
        if self._state == TransportState.CONNECTED:
            self._state = TransportState.DISCONNECTED
        self._notify_closed(reason)

    def _notify_closed(self, reason: str) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        for callback in self._close_callbacks:
            try:
                callback(reason)
            except Exception:
                logger.exception("Close callback failed")

    async def _read_loop(self) -> None:
        """Background task delivering inbound replies."""
        reason = REMOTE_CLOSED
        try:
            async for chunk in self._receive_chunks():
                self._dispatch(chunk)
        except asyncio.CancelledError:
            return
        except Exception as e:
            logger.error(f"Read loop error: {e}")
            reason = f"Transport error: {e}"

        if self._state == TransportState.CONNECTED:
            logger.warning(reason)
            await self._do_disconnect()
        self._connection_lost(reason)

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> bool:
        """Implementation-specific connection logic. Returns the authorized flag."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    def _do_write(self, text: str) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def _receive_chunks(self) -> AsyncIterator[str]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...

    async def __aenter__(self) -> BaseClientTransport:
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.disconnect()


class TLSClientTransport(BaseClientTransport):
    """Transport over a TLS stream socket.

    Wire format:
    - Commands: one XML element written as UTF-8
    - Replies: one XML element each, framed by element depth
    """

    def __init__(self, config: ClientTransportConfig | None = None):
        super().__init__(config or ClientTransportConfig())
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    async def _do_connect(self) -> bool:
        context = self.config.ssl_context()
        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_connection(
                self.config.host,
                self.config.port,
                ssl=context,
                server_hostname=self.config.host,
            ),
            timeout=self.config.connect_timeout,
        )
        return context.verify_mode != ssl.CERT_NONE

    async def _do_disconnect(self) -> None:
        if self._writer:
            self._writer.close()
            with contextlib.suppress(OSError, ssl.SSLError):
                await self._writer.wait_closed()
            self._writer = None
            self._reader = None

    def _do_write(self, text: str) -> None:
        if not self._writer:
            raise NotConnectedError("Socket not open")
        self._writer.write(text.encode("utf-8"))

    async def _receive_chunks(self) -> AsyncIterator[str]:
        if not self._reader:
            raise NotConnectedError("Socket not open")

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        framer = ReplyFramer()
        while True:
            data = await self._reader.read(self.config.read_size)
            if not data:
                tail = decoder.decode(b"", final=True)
                if tail:
                    framer.feed(tail)
                if framer.pending:
                    yield framer.flush()
                break

            for reply in framer.feed(decoder.decode(data)):
                yield reply


class MockClientTransport(BaseClientTransport):
    """Mock transport for testing.

    Records writes and lets tests inject replies. No actual I/O.

    Usage:
        transport = MockClientTransport()
        client = OMPClient(transport=transport)
        await client.connect()
        future = client.get_all_targets()
        transport.feed('<get_targets_response status="200" status_text="OK"/>')
        result = await future
    """

    def __init__(
        self,
        authorized: bool = True,
        responder: Callable[[str], str | None] | None = None,
        connect_error: Exception | None = None,
    ) -> None:
        super().__init__(ClientTransportConfig(host="mock"))
        self._mock_authorized = authorized
        self._responder = responder
        self._connect_error = connect_error
        self._writes: list[str] = []
        self._remote_closed: asyncio.Event | None = None

    @property
    def writes(self) -> list[str]:
        """Everything written through this transport, in order."""
        return self._writes.copy()

    def feed(self, text: str) -> None:
        """Deliver one inbound reply synchronously."""
        if not self.is_connected:
            raise NotConnectedError("Mock transport not connected")
        self._dispatch(text)

    def close_remote(self, reason: str = REMOTE_CLOSED) -> None:
        """Simulate the server dropping the connection."""
        self._connection_lost(reason)
        if self._remote_closed:
            self._remote_closed.set()

    async def _do_connect(self) -> bool:
        if self._connect_error:
            raise self._connect_error
        self._remote_closed = asyncio.Event()
        return self._mock_authorized

    async def _do_disconnect(self) -> None:
        pass

    def _do_write(self, text: str) -> None:
        self._writes.append(text)
        if self._responder:
            reply = self._responder(text)
            if reply is not None:
                asyncio.get_running_loop().call_soon(self._deliver, reply)

    def _deliver(self, text: str) -> None:
        if self.is_connected:
            self._dispatch(text)

    async def _receive_chunks(self) -> AsyncIterator[str]:
        if self._remote_closed:
            await self._remote_closed.wait()
        return
        yield  # Make this a generator


# Factory functions


def create_tls_transport(
    host: str | None = None,
    port: int | None = None,
    verify: bool | None = None,
    config: ClientTransportConfig | None = None,
) -> TLSClientTransport:
    """Create a TLS transport, filling unset values from the environment."""
    if config is None:
        config = ClientTransportConfig.from_env(host=host, port=port, verify=verify)
    return TLSClientTransport(config)


def create_mock_transport(
    responder: Callable[[str], str | None] | None = None,
) -> MockClientTransport:
    """Create a mock transport for testing."""
    return MockClientTransport(responder=responder)
