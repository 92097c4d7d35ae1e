"""Request tree nodes.

A request is a single top-level element built from nodes. Each node has a
name, ordered attributes, optional text and an ordered list of children.
Children are only ever added through ``append`` (``add`` is a shortcut that
builds the child first).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


def _to_text(value: Any) -> str:
    """Render a scalar the way the server expects it."""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


class RequestNode(BaseModel):
    """One element of a request tree.

    Example:
        node = RequestNode(name="authenticate")
        creds = node.add("credentials")
        creds.add("username", "admin")
        creds.add("password", "secret")
    """

    name: str
    attrs: dict[str, str] = Field(default_factory=dict)
    text: str | None = None
    children: list[RequestNode] = Field(default_factory=list)

    @classmethod
    def create(cls, name: str, text: Any = None, **attrs: Any) -> RequestNode:
        """Factory that converts text and attribute values to strings."""
        return cls(
            name=name,
            attrs={k: _to_text(v) for k, v in attrs.items() if v is not None},
            text=None if text is None else _to_text(text),
        )

    def append(self, child: RequestNode) -> RequestNode:
        """Append a child node and return it."""
        self.children.append(child)
        return child

    def add(self, name: str, text: Any = None, **attrs: Any) -> RequestNode:
        """Create a child node, append it and return it."""
        return self.append(RequestNode.create(name, text, **attrs))

    def find(self, name: str) -> RequestNode | None:
        """Return the first direct child with the given name."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def child_names(self) -> list[str]:
        return [child.name for child in self.children]


RequestNode.model_rebuild()
