"""OMP SDK - Client for an OMP manager daemon.

Provides:
- OMPClient: operation layer (login, targets, create_* commands)
- CommandPipeline: ordered, single-in-flight command submission
- Transports: TLS for real connections, mock for testing
"""

from .client import OMPClient
from .pipeline import CommandPipeline, Continuation, PendingCommand
from .session import Session
from .transport import (
    BaseClientTransport,
    ClientTransport,
    ClientTransportConfig,
    MockClientTransport,
    ReplyFramer,
    TLSClientTransport,
    TransportState,
    create_mock_transport,
    create_tls_transport,
)
from .types import AuthState, CreateResult, Target, TargetList

__all__ = [
    # Client
    "OMPClient",
    "Session",
    # Pipeline
    "CommandPipeline",
    "Continuation",
    "PendingCommand",
    # Transport Protocol & Base
    "ClientTransport",
    "BaseClientTransport",
    "ClientTransportConfig",
    "TransportState",
    "ReplyFramer",
    # Transport Implementations
    "TLSClientTransport",
    "MockClientTransport",
    # Transport Factory Functions
    "create_tls_transport",
    "create_mock_transport",
    # Types
    "AuthState",
    "CreateResult",
    "Target",
    "TargetList",
]
