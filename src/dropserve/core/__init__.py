"""
Socket-level building blocks: the listening server and client connections.
"""

from .connection import ClientDisconnected, Connection, ConnectionState
from .socket_server import SocketServer

__all__ = [
    "ClientDisconnected",
    "Connection",
    "ConnectionState",
    "SocketServer",
]
