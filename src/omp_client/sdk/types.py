"""SDK type definitions."""

from typing import Any

from pydantic import BaseModel, Field


class AuthState(BaseModel):
    """Authentication state of a session, filled in by a successful login."""

    role: str = ""
    timezone: str = ""
    severity: str = ""
    is_authenticated: bool = False


class Target(BaseModel):
    """A scan target as returned by get_targets."""

    id: str = ""
    name: str = ""
    hosts: str = ""
    comment: str = ""
    # Full decoded element for fields not modelled here
    raw: dict[str, Any] = Field(default_factory=dict)


class TargetList(BaseModel):
    """Result of get_targets."""

    targets: list[Target] = Field(default_factory=list)
    filters: Any = None
    target_count: int = 0


class CreateResult(BaseModel):
    """Result of any create_* command."""

    id: str
    status: str
    status_text: str = ""
    command: str = ""
