"""Request builders, one per protocol command.

Each builder validates its required fields and emits children in the fixed
order the server documents for that command. Optional fields are only
emitted when set.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from ..errors import InvalidArgumentError
from .nodes import RequestNode


class CommandName(str, Enum):
    """Supported commands and the response element each one produces."""

    AUTHENTICATE = "authenticate"
    GET_TARGETS = "get_targets"
    CREATE_TARGET = "create_target"
    CREATE_AGENT = "create_agent"
    CREATE_GROUP = "create_group"
    CREATE_PERMISSION = "create_permission"
    CREATE_PORT_LIST = "create_port_list"
    CREATE_PORT_RANGE = "create_port_range"

    @property
    def response(self) -> str:
        return f"{self.value}_response"


SUBJECT_TYPES = ("user", "group", "role")
PORT_TYPES = ("tcp", "udp")


def require(value: object, field: str) -> None:
    """Raise InvalidArgumentError when a required field is missing or empty."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgumentError(f"`{field}` is a required option")


def _check_choice(value: str, field: str, choices: tuple[str, ...]) -> str:
    normalized = value.strip().lower()
    if normalized not in choices:
        raise InvalidArgumentError(f"`{field}` must be one of {', '.join(choices)}, got {value!r}")
    return normalized


def _check_port(value: int, field: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"`{field}` must be an integer port") from e
    if not 1 <= port <= 65535:
        raise InvalidArgumentError(f"`{field}` must be in 1-65535, got {port}")
    return port


class SshCredential(BaseModel):
    """SSH credential reference for target creation."""

    model_config = ConfigDict(extra="forbid")

    id: str
    port: str | None = None


class TargetOptions(BaseModel):
    """Fields accepted by create_target."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    hosts: str = ""
    comment: str | None = None
    exclude_hosts: str | None = None
    ssh_credential: SshCredential | None = None
    smb_credential: str | None = None
    esxi_credential: str | None = None
    alive_tests: str | None = None
    reverse_lookup_only: bool = False
    reverse_lookup_unify: bool = False
    port_range: str | None = None
    port_list: str | None = None


def authenticate(username: str | None, password: str | None) -> RequestNode:
    require(username, "username")
    require(password, "password")
    node = RequestNode(name=CommandName.AUTHENTICATE.value)
    credentials = node.add("credentials")
    credentials.add("username", username)
    credentials.add("password", password)
    return node


def get_targets(target_id: str | None = None) -> RequestNode:
    """Build get_targets, optionally restricted to one target."""
    if target_id is not None:
        require(target_id, "target_id")
    return RequestNode.create(CommandName.GET_TARGETS.value, target_id=target_id)


def create_target(options: TargetOptions) -> RequestNode:
    """Build create_target.

    Child order: name, hosts, comment, exclude_hosts, ssh/smb/esxi
    credentials, alive_tests, reverse lookup flags, port_range, port_list.
    """
    require(options.name, "name")
    node = RequestNode(name=CommandName.CREATE_TARGET.value)
    node.add("name", options.name)
    node.add("hosts", options.hosts or "")

    if options.comment:
        node.add("comment", options.comment)
    if options.exclude_hosts:
        node.add("exclude_hosts", options.exclude_hosts)
    if options.ssh_credential:
        require(options.ssh_credential.id, "ssh_credential.id")
        ssh = node.add("ssh_lsc_credential", id=options.ssh_credential.id)
        if options.ssh_credential.port:
            ssh.add("port", options.ssh_credential.port)
    if options.smb_credential:
        node.add("smb_lsc_credential", id=options.smb_credential)
    if options.esxi_credential:
        node.add("esxi_lsc_credential", id=options.esxi_credential)
    if options.alive_tests:
        node.add("alive_tests", options.alive_tests)
    if options.reverse_lookup_only:
        node.add("reverse_lookup_only", True)
    if options.reverse_lookup_unify:
        node.add("reverse_lookup_unify", True)
    if options.port_range:
        node.add("port_range", options.port_range)
    if options.port_list:
        node.add("port_list", id=options.port_list)
    return node


def create_agent(
    name: str | None,
    installer: str | None,
    installer_signature: str | None = None,
    comment: str | None = None,
    howto_install: str | None = None,
    howto_use: str | None = None,
) -> RequestNode:
    """Build create_agent. The installer is the base64 encoded package."""
    require(name, "name")
    require(installer, "installer")
    node = RequestNode(name=CommandName.CREATE_AGENT.value)
    node.add("name", name)
    installer_node = node.add("installer", installer)
    if installer_signature:
        installer_node.add("signature", installer_signature)
    if comment:
        node.add("comment", comment)
    if howto_install:
        node.add("howto_install", howto_install)
    if howto_use:
        node.add("howto_use", howto_use)
    return node


def create_group(
    name: str | None,
    comment: str | None = None,
    users: list[str] | None = None,
    full: bool = False,
    copy: str | None = None,
) -> RequestNode:
    require(name, "name")
    node = RequestNode(name=CommandName.CREATE_GROUP.value)
    node.add("name", name)
    if comment:
        node.add("comment", comment)
    if users:
        node.add("users", ",".join(users))
    if full:
        node.add("special").add("full")
    if copy:
        node.add("copy", copy)
    return node


def create_permission(
    name: str | None,
    subject_id: str | None,
    subject_type: str | None,
    resource_id: str | None = None,
    resource_type: str | None = None,
    comment: str | None = None,
    copy: str | None = None,
) -> RequestNode:
    """Build create_permission granting ``name`` to a user, group or role."""
    require(name, "name")
    require(subject_id, "subject_id")
    require(subject_type, "subject_type")
    subject_type = _check_choice(subject_type, "subject_type", SUBJECT_TYPES)

    node = RequestNode(name=CommandName.CREATE_PERMISSION.value)
    node.add("name", name)
    node.add("subject", id=subject_id).add("type", subject_type)
    if resource_id:
        require(resource_type, "resource_type")
        node.add("resource", id=resource_id).add("type", resource_type)
    if comment:
        node.add("comment", comment)
    if copy:
        node.add("copy", copy)
    return node


def create_port_list(
    name: str | None,
    port_range: str | None,
    comment: str | None = None,
    copy: str | None = None,
) -> RequestNode:
    """Build create_port_list. ``port_range`` looks like ``T:1-1024,U:53``."""
    require(name, "name")
    require(port_range, "port_range")
    node = RequestNode(name=CommandName.CREATE_PORT_LIST.value)
    node.add("name", name)
    node.add("port_range", port_range)
    if comment:
        node.add("comment", comment)
    if copy:
        node.add("copy", copy)
    return node


def create_port_range(
    port_list_id: str | None,
    start: int | None,
    end: int | None,
    port_type: str | None,
    comment: str | None = None,
) -> RequestNode:
    """Build create_port_range, adding a range to an existing port list."""
    require(port_list_id, "port_list_id")
    require(start, "start")
    require(end, "end")
    require(port_type, "port_type")
    first = _check_port(start, "start")
    last = _check_port(end, "end")
    if first > last:
        raise InvalidArgumentError(f"`start` ({first}) must not exceed `end` ({last})")
    port_type = _check_choice(port_type, "port_type", PORT_TYPES)

    node = RequestNode(name=CommandName.CREATE_PORT_RANGE.value)
    node.add("port_list", id=port_list_id)
    node.add("start", first)
    node.add("end", last)
    node.add("type", port_type)
    if comment:
        node.add("comment", comment)
    return node
