"""
Core server components: TCP listener, connections, worker pool, request
ids and the reader/writer lock shared by the registries.
"""

from .connection import Connection
from .request_id import RequestIdSource, default_source
from .rwlock import RWLock
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "Connection",
    "RequestIdSource",
    "default_source",
    "RWLock",
    "SocketServer",
    "ThreadPool",
]
