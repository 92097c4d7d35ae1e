"""Wire protocol layer.

Defines the request trees, the XML codec and the reply view used by the
command pipeline.

Key concepts:
- Requests: one top-level element per command, children in a fixed order
- Replies: one top-level ``<command>_response`` element with a status code
- Correlation: positional, replies arrive in the order commands were sent
"""

from . import commands
from .codec import TEXT_KEY, DecodedTree, decode, encode, parse
from .commands import CommandName, SshCredential, TargetOptions
from .nodes import RequestNode
from .replies import Reply, as_list, as_text, is_success_status

__all__ = [
    "commands",
    "CommandName",
    "DecodedTree",
    "Reply",
    "RequestNode",
    "SshCredential",
    "TargetOptions",
    "TEXT_KEY",
    "as_list",
    "as_text",
    "decode",
    "encode",
    "is_success_status",
    "parse",
]
