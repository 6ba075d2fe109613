"""Public surface for nebula."""

from .client import NebulaClient, client_from_env
from .config import NebulaSettings
from .errors import (
    NebulaError,
    ParseError,
    StateError,
    TransportError,
    ValidationError,
)
from .events import Event, EventDispatcher
from .headers import HeaderPolicy, HeaderSet
from .requestor import (
    HttpMessage,
    HttpResult,
    http_delete,
    http_get,
    http_post,
    http_put,
    http_requestor,
)
from .safety import SafetyWrapper, check_receiver, check_requestor, check_requestors, get_safety_wrapper
from .transaction import ReadyState, Transaction
from .transport import HttpxBackend, IdentityStore, MemoryBackend, RouteTable, TransportAdapter
from .types import Result
from .version import __version__

__all__ = [
    "__version__",
    "Event",
    "EventDispatcher",
    "HeaderPolicy",
    "HeaderSet",
    "HttpMessage",
    "HttpResult",
    "HttpxBackend",
    "IdentityStore",
    "MemoryBackend",
    "NebulaClient",
    "NebulaError",
    "NebulaSettings",
    "ParseError",
    "ReadyState",
    "Result",
    "RouteTable",
    "SafetyWrapper",
    "StateError",
    "Transaction",
    "TransportAdapter",
    "TransportError",
    "ValidationError",
    "check_receiver",
    "check_requestor",
    "check_requestors",
    "client_from_env",
    "get_safety_wrapper",
    "http_delete",
    "http_get",
    "http_post",
    "http_put",
    "http_requestor",
]
