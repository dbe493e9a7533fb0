"""
=============================================================================
CORE NETWORKING
=============================================================================

Everything below HTTP:

    SocketServer   listening socket + accept loop, signal handling
    Connection     one client socket; buffers complete requests
    ThreadPool     workers that run one connection each

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, MalformedChunkedBody, RequestTooLarge
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "MalformedChunkedBody",
    "RequestTooLarge",
    "ThreadPool",
]
