"""Transport implementations exposed to users."""

from .adapter import TransportAdapter, create_adapter
from .base import Backend, TransportOptions, TransportResponse
from .http import HttpxBackend
from .memory import IdentityStore, MemoryBackend, RouteTable, crud_routes, default_routes

__all__ = [
    "Backend",
    "HttpxBackend",
    "IdentityStore",
    "MemoryBackend",
    "RouteTable",
    "TransportAdapter",
    "TransportOptions",
    "TransportResponse",
    "create_adapter",
    "crud_routes",
    "default_routes",
]
