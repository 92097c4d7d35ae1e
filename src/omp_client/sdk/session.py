"""Per-client session state.

One Session exists per client instance. It holds the transport handle, the
authentication state and the text of the most recent error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .transport import ClientTransport
from .types import AuthState

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """The single logical connection of a client."""

    transport: ClientTransport
    auth: AuthState = field(default_factory=AuthState)
    last_error: str | None = None
    closed_reason: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    @property
    def is_authenticated(self) -> bool:
        return self.auth.is_authenticated

    def record_error(self, message: str) -> None:
        self.last_error = message

    def mark_authenticated(self, role: str, timezone: str, severity: str) -> AuthState:
        self.auth = AuthState(role=role, timezone=timezone, severity=severity, is_authenticated=True)
        logger.info(f"Authenticated with role {role or 'unknown'}")
        return self.auth

    def reset_auth(self) -> None:
        self.auth = AuthState()

    def mark_closed(self, reason: str) -> None:
        self.closed_reason = reason
        self.reset_auth()
