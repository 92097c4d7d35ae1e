"""Read-only view over a decoded reply.

Every reply carries a ``status`` code and a ``status_text`` message. Codes
in 200-299 mean success. Field access is explicit: ``get`` returns a default
for missing fields, ``require`` raises ``MalformedReplyError``.
"""

from __future__ import annotations

from typing import Any

from ..errors import MalformedReplyError, ProtocolFailureError
from .codec import TEXT_KEY, DecodedTree

_MISSING = object()


def is_success_status(status: str | None) -> bool:
    """Return True for three-digit codes in the 2xx range."""
    if not status:
        return False
    status = status.strip()
    return len(status) == 3 and status.isdigit() and status.startswith("2")


def as_list(value: Any) -> list[Any]:
    """Normalize a decoded field to a list (missing -> [])."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def as_text(value: Any, default: str = "") -> str:
    """Return the text of a decoded field, looking through attribute dicts."""
    if value is None:
        return default
    if isinstance(value, dict):
        return value.get(TEXT_KEY, default)
    if isinstance(value, list):
        return as_text(value[0], default) if value else default
    return value


class Reply:
    """A decoded reply with one root element."""

    def __init__(self, name: str, body: dict[str, Any]):
        self.name = name
        self.body = body

    @classmethod
    def from_tree(cls, tree: DecodedTree) -> Reply:
        if len(tree) != 1:
            raise MalformedReplyError(f"Expected one root element, got {len(tree)}")
        name, value = next(iter(tree.items()))
        if isinstance(value, str):
            # An element with no attributes carries no status at all
            value = {TEXT_KEY: value} if value.strip() else {}
        elif not isinstance(value, dict):
            raise MalformedReplyError(f"Unexpected root value for <{name}>")
        return cls(name, value)

    def expect(self, name: str) -> Reply:
        """Check the root element is the response the caller is waiting for."""
        if self.name != name:
            raise MalformedReplyError(f"Expected <{name}> but received <{self.name}>")
        return self

    @property
    def status(self) -> str:
        return as_text(self.body.get("status"))

    @property
    def status_text(self) -> str:
        return as_text(self.body.get("status_text"))

    @property
    def ok(self) -> bool:
        return is_success_status(self.status)

    def raise_for_status(self) -> Reply:
        if not self.ok:
            raise ProtocolFailureError(self.status, self.status_text, command=self.name)
        return self

    def get(self, name: str, default: Any = None) -> Any:
        return self.body.get(name, default)

    def text(self, name: str, default: str = "") -> str:
        return as_text(self.body.get(name), default)

    def items(self, name: str) -> list[Any]:
        return as_list(self.body.get(name))

    def require(self, name: str) -> Any:
        value = self.body.get(name, _MISSING)
        if value is _MISSING:
            raise MalformedReplyError(f"<{self.name}> is missing required field '{name}'")
        return value

    def __repr__(self) -> str:
        return f"Reply(name={self.name!r}, status={self.status!r})"
