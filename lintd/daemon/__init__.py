"""Daemon architecture for lintd.

This module provides a long-running background process that removes the
linter's import and setup cost from every CLI invocation.

Architecture:
- Connection: one half-duplex request/response exchange over TCP
- DaemonServer: asyncio server dispatching lint/stop/restart commands
- DaemonState: in-memory cache of resolved linter modules
- DaemonClient: discovers or spawns the daemon and runs commands on it
"""

from lintd.daemon.client import ClientResult, DaemonClient
from lintd.daemon.connection import Connection
from lintd.daemon.protocol import Command, decode, encode, split_into_chunks
from lintd.daemon.server import DaemonEvent, DaemonServer, DaemonStatus
from lintd.daemon.state import DaemonState

__all__ = [
    "ClientResult",
    "Command",
    "Connection",
    "DaemonClient",
    "DaemonEvent",
    "DaemonServer",
    "DaemonState",
    "DaemonStatus",
    "decode",
    "encode",
    "split_into_chunks",
]
