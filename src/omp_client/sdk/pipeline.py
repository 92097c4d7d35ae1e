"""Command pipeline and reply dispatcher.

The protocol has no correlation identifier: the server answers every
command exactly once, in the order the commands were sent. Correlation is
therefore purely positional and rests on two invariants kept here:

- at most one command is on the wire at any time (``transmitting``)
- the continuation awaiting a reply is the one dequeued with the most
  recent transmission (``awaiting`` holds it, FIFO)

Every submitted command's future settles exactly once: with the
interpreted result, with the error the interpretation raised, or with
MalformedReplyError, CommandTimeoutError or ConnectionClosedError.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..errors import (
    CommandTimeoutError,
    ConnectionClosedError,
    MalformedReplyError,
    NotConnectedError,
    OMPError,
)
from ..protocol.codec import DecodedTree, decode
from .transport import ClientTransport

logger = logging.getLogger(__name__)

Interpreter = Callable[[DecodedTree], Any]
ErrorListener = Callable[[str], None]


@dataclass
class Continuation:
    """One outstanding caller: how to read its reply and where to deliver it."""

    interpret: Interpreter
    future: asyncio.Future[Any]
    label: str = ""

    def on_success(self, value: Any) -> None:
        # Skip callers that already gave up (cancelled)
        if not self.future.done():
            self.future.set_result(value)

    def on_failure(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


@dataclass
class PendingCommand:
    """A rendered command waiting for its turn on the wire."""

    wire_message: str
    continuation: Continuation = field(repr=False)


class CommandPipeline:
    """Serializes commands onto one connection and routes replies back.

    All state is touched only from the event loop thread: ``submit`` by
    callers, ``on_reply_received`` and ``on_closed`` by the transport.
    """

    def __init__(
        self,
        transport: ClientTransport,
        command_timeout: float | None = None,
        error_listener: ErrorListener | None = None,
    ):
        self._transport = transport
        self.command_timeout = command_timeout
        self._error_listener = error_listener
        self._outgoing: deque[PendingCommand] = deque()
        self._awaiting: deque[Continuation] = deque()
        self._transmitting = False
        self._timeout_handle: asyncio.TimerHandle | None = None
        self.sent = 0
        self.received = 0

    @property
    def transmitting(self) -> bool:
        return self._transmitting

    @property
    def queued(self) -> int:
        """Commands not yet written."""
        return len(self._outgoing)

    @property
    def pending(self) -> int:
        """Commands whose future has not been settled by the pipeline yet."""
        return len(self._outgoing) + len(self._awaiting)

    def submit(self, wire_message: str, continuation: Continuation) -> None:
        """Queue a command; its reply is delivered through the continuation.

        Raises:
            NotConnectedError: If the transport is not connected
        """
        if not self._transport.is_connected:
            raise NotConnectedError("Cannot submit a command before the session is connected")
        self._outgoing.append(PendingCommand(wire_message, continuation))
        self._pump()

    def request(self, wire_message: str, interpret: Interpreter, label: str = "") -> asyncio.Future[Any]:
        """Submit a command and return a future for its interpreted reply."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self.submit(wire_message, Continuation(interpret, future, label))
        return future

    def _pump(self) -> None:
        """Write the next queued command unless one is already in flight."""
        while not self._transmitting and self._outgoing:
            command = self._outgoing.popleft()
            continuation = command.continuation
            if continuation.future.done():
                # Cancelled before it reached the wire; nothing will answer it
                logger.debug(f"Dropping cancelled command {continuation.label!r}")
                continue

            self._transmitting = True
            self._awaiting.append(continuation)
            try:
                self._transport.write(command.wire_message)
            except Exception as e:
                logger.error(f"Failed to write {continuation.label!r}: {e}")
                self._awaiting.pop()
                self._transmitting = False
                self._fail(continuation, e if isinstance(e, OMPError) else ConnectionClosedError(str(e)))
                continue

            self.sent += 1
            logger.debug(f"Sent {continuation.label!r} ({len(self._outgoing)} queued)")
            self._arm_timeout(continuation)

    def on_reply_received(self, chunk: str) -> None:
        """Dispatch one complete reply. Never raises."""
        self._cancel_timeout()
        self.received += 1
        continuation = self._awaiting.popleft() if self._awaiting else None
        try:
            if continuation is None:
                logger.warning(f"Discarding unsolicited reply: {chunk[:200]!r}")
                return
            self._resolve(continuation, chunk)
        finally:
            self._transmitting = False
            self._pump()

    def _resolve(self, continuation: Continuation, chunk: str) -> None:
        try:
            tree = decode(chunk)
        except MalformedReplyError as e:
            logger.error(f"Malformed reply for {continuation.label!r}: {e}")
            logger.debug(f"Raw reply: {chunk[:500]!r}")
            self._fail(continuation, e)
            return

        try:
            result = continuation.interpret(tree)
        except OMPError as e:
            logger.debug(f"{continuation.label!r} failed: {e}")
            self._fail(continuation, e)
        except Exception as e:
            logger.exception(f"Interpreting reply for {continuation.label!r} failed")
            self._fail(continuation, e)
        else:
            continuation.on_success(result)

    def on_closed(self, reason: str) -> None:
        """Reject every queued and in-flight command with ConnectionClosedError."""
        self._cancel_timeout()
        stranded = list(self._awaiting) + [command.continuation for command in self._outgoing]
        self._awaiting.clear()
        self._outgoing.clear()
        self._transmitting = False

        if stranded:
            logger.warning(f"{reason}; rejecting {len(stranded)} pending command(s)")
        for continuation in stranded:
            continuation.on_failure(ConnectionClosedError(reason))

    def _fail(self, continuation: Continuation, error: BaseException) -> None:
        if self._error_listener:
            self._error_listener(str(error))
        continuation.on_failure(error)

    def _arm_timeout(self, continuation: Continuation) -> None:
        if not self.command_timeout:
            return
        loop = asyncio.get_running_loop()
        self._timeout_handle = loop.call_later(self.command_timeout, self._on_timeout, continuation)

    def _cancel_timeout(self) -> None:
        if self._timeout_handle:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _on_timeout(self, continuation: Continuation) -> None:
        self._timeout_handle = None
        if not self._awaiting or self._awaiting[0] is not continuation:
            return

        # A reply that still arrives for this command would be matched to the
        # next one; the interpreter's root element check catches that case.
        self._awaiting.popleft()
        self._transmitting = False
        logger.warning(f"No reply to {continuation.label!r} within {self.command_timeout}s")
        self._fail(
            continuation,
            CommandTimeoutError(f"No reply to {continuation.label or 'command'} within {self.command_timeout}s"),
        )
        self._pump()
