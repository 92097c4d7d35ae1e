"""Client for OMP-style vulnerability scanner management protocols."""

from .errors import (
    CommandTimeoutError,
    ConnectionClosedError,
    InvalidArgumentError,
    MalformedReplyError,
    NotConnectedError,
    OMPError,
    ProtocolFailureError,
    TransportConnectError,
)
from .protocol import RequestNode, SshCredential, TargetOptions
from .sdk import ClientTransportConfig, MockClientTransport, OMPClient, TLSClientTransport

__version__ = "0.1.0"

__all__ = [
    "OMPClient",
    "ClientTransportConfig",
    "TLSClientTransport",
    "MockClientTransport",
    "RequestNode",
    "TargetOptions",
    "SshCredential",
    "OMPError",
    "InvalidArgumentError",
    "NotConnectedError",
    "TransportConnectError",
    "ConnectionClosedError",
    "MalformedReplyError",
    "ProtocolFailureError",
    "CommandTimeoutError",
]
