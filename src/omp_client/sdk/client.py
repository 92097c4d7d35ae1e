"""OMP client.

Each operation builds a request tree, submits it through the command
pipeline and returns a future for the typed result. Operations are plain
methods so that argument errors are raised at call time and the order of
calls is the order commands go on the wire:

    async with OMPClient(config) as client:
        login = client.login("admin", "secret")
        targets = client.get_all_targets()
        user, result = await login, await targets
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from ..errors import InvalidArgumentError
from ..protocol import commands
from ..protocol.codec import DecodedTree, encode
from ..protocol.commands import CommandName, TargetOptions
from ..protocol.nodes import RequestNode
from ..protocol.replies import Reply, as_text
from .pipeline import CommandPipeline
from .session import Session
from .transport import ClientTransport, ClientTransportConfig, TLSClientTransport
from .types import AuthState, CreateResult, Target, TargetList

logger = logging.getLogger(__name__)


def _parse_count(value: str, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _to_target(raw: Any) -> Target:
    if not isinstance(raw, dict):
        return Target(name=as_text(raw))
    return Target(
        id=raw.get("id", ""),
        name=as_text(raw.get("name")),
        hosts=as_text(raw.get("hosts")),
        comment=as_text(raw.get("comment")),
        raw=raw,
    )


class OMPClient:
    """Client for an OMP manager over one persistent TLS connection.

    Usage:
        client = OMPClient(ClientTransportConfig(host="scanner.local"))
        await client.connect()
        user = await client.login("admin", "secret")
        created = await client.create_target(name="web", hosts="10.0.0.0/24")
        await client.close()

    For testing:
        transport = MockClientTransport()
        client = OMPClient(transport=transport)
    """

    def __init__(
        self,
        config: ClientTransportConfig | None = None,
        transport: ClientTransport | None = None,
        username: str | None = None,
        password: str | None = None,
    ):
        if transport is None:
            config = config or ClientTransportConfig.from_env()
            transport = TLSClientTransport(config)
        self.config = config or getattr(transport, "config", None) or ClientTransportConfig()
        self.username = username or os.getenv("OMP_USERNAME")
        self.password = password or os.getenv("OMP_PASSWORD")

        self.session = Session(transport=transport)
        self._pipeline = CommandPipeline(
            transport,
            command_timeout=self.config.command_timeout,
            error_listener=self.session.record_error,
        )
        transport.on_data(self._pipeline.on_reply_received)
        transport.on_close(self._on_closed)

    @property
    def transport(self) -> ClientTransport:
        return self.session.transport

    @property
    def pipeline(self) -> CommandPipeline:
        return self._pipeline

    @property
    def user(self) -> AuthState:
        return self.session.auth

    # Lifecycle

    async def connect(self) -> bool:
        """Open the connection. Returns whether the peer certificate was verified."""
        authorized = await self.transport.connect()
        self.session.closed_reason = None
        return authorized

    async def close(self) -> None:
        await self.transport.disconnect()

    async def __aenter__(self) -> OMPClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _on_closed(self, reason: str) -> None:
        logger.info(reason)
        self.session.mark_closed(reason)
        self._pipeline.on_closed(reason)

    def _submit(self, node: RequestNode, interpret: Callable[[DecodedTree], Any]) -> asyncio.Future[Any]:
        return self._pipeline.request(encode(node), interpret, label=node.name)

    # Operations

    def login(self, username: str | None = None, password: str | None = None) -> asyncio.Future[AuthState]:
        """Authenticate the session. Falls back to the credentials given at construction."""
        node = commands.authenticate(username or self.username, password or self.password)
        return self._submit(node, self._interpret_login)

    def get_all_targets(self) -> asyncio.Future[TargetList]:
        return self._submit(commands.get_targets(), self._interpret_targets)

    def get_target(self, target_id: str) -> asyncio.Future[TargetList]:
        commands.require(target_id, "target_id")
        return self._submit(commands.get_targets(target_id), self._interpret_targets)

    def create_target(self, options: TargetOptions | None = None, **fields: Any) -> asyncio.Future[CreateResult]:
        """Create a scan target.

        Accepts either a TargetOptions instance or its fields as keywords.
        """
        if options is not None and fields:
            raise InvalidArgumentError(
                f"Pass either options or keyword fields, not both (got {', '.join(sorted(fields))})"
            )
        if options is None:
            try:
                options = TargetOptions(**fields)
            except ValidationError as e:
                raise InvalidArgumentError(f"Invalid target options: {e}") from e
        node = commands.create_target(options)
        return self._submit(node, self._created(CommandName.CREATE_TARGET))

    def create_agent(
        self,
        name: str,
        installer: str,
        installer_signature: str | None = None,
        comment: str | None = None,
        howto_install: str | None = None,
        howto_use: str | None = None,
    ) -> asyncio.Future[CreateResult]:
        node = commands.create_agent(name, installer, installer_signature, comment, howto_install, howto_use)
        return self._submit(node, self._created(CommandName.CREATE_AGENT))

    def create_group(
        self,
        name: str,
        comment: str | None = None,
        users: list[str] | None = None,
        full: bool = False,
        copy: str | None = None,
    ) -> asyncio.Future[CreateResult]:
        node = commands.create_group(name, comment=comment, users=users, full=full, copy=copy)
        return self._submit(node, self._created(CommandName.CREATE_GROUP))

    def create_permission(
        self,
        name: str,
        subject_id: str,
        subject_type: str,
        resource_id: str | None = None,
        resource_type: str | None = None,
        comment: str | None = None,
        copy: str | None = None,
    ) -> asyncio.Future[CreateResult]:
        node = commands.create_permission(
            name,
            subject_id,
            subject_type,
            resource_id=resource_id,
            resource_type=resource_type,
            comment=comment,
            copy=copy,
        )
        return self._submit(node, self._created(CommandName.CREATE_PERMISSION))

    def create_port_list(
        self,
        name: str,
        port_range: str,
        comment: str | None = None,
        copy: str | None = None,
    ) -> asyncio.Future[CreateResult]:
        node = commands.create_port_list(name, port_range, comment=comment, copy=copy)
        return self._submit(node, self._created(CommandName.CREATE_PORT_LIST))

    def add_port_range(
        self,
        port_list_id: str,
        start: int,
        end: int,
        port_type: str = "tcp",
        comment: str | None = None,
    ) -> asyncio.Future[CreateResult]:
        """Add a port range to an existing port list."""
        node = commands.create_port_range(port_list_id, start, end, port_type, comment=comment)
        return self._submit(node, self._created(CommandName.CREATE_PORT_RANGE))

    # Reply interpretation

    def _interpret_login(self, tree: DecodedTree) -> AuthState:
        reply = Reply.from_tree(tree).expect(CommandName.AUTHENTICATE.response)
        if not reply.ok:
            self.session.reset_auth()
        reply.raise_for_status()
        return self.session.mark_authenticated(
            role=reply.text("role"),
            timezone=reply.text("timezone"),
            severity=reply.text("severity"),
        ).model_copy()

    def _interpret_targets(self, tree: DecodedTree) -> TargetList:
        reply = Reply.from_tree(tree).expect(CommandName.GET_TARGETS.response).raise_for_status()
        targets = [_to_target(raw) for raw in reply.items("target")]
        return TargetList(
            targets=targets,
            filters=reply.get("filters"),
            target_count=_parse_count(reply.text("target_count"), len(targets)),
        )

    @staticmethod
    def _created(command: CommandName) -> Callable[[DecodedTree], CreateResult]:
        def interpret(tree: DecodedTree) -> CreateResult:
            reply = Reply.from_tree(tree).expect(command.response).raise_for_status()
            return CreateResult(
                id=as_text(reply.get("id")),
                status=reply.status,
                status_text=reply.status_text,
                command=command.value,
            )

        return interpret
