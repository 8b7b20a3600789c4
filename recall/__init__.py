"""
Recall — typed, resilient client for remote memory stores.

Public API:
    from recall import RemoteMemoryClient, RecallConfig
"""

__version__ = "0.1.0"

# Core
from recall.core.config import RecallConfig, RetryPolicy
from recall.core.errors import (
    BatchPartialFailure,
    ConfigError,
    ErrorKind,
    MemoryOperationError,
    Network,
    NotFound,
    RateLimited,
    RecallError,
    Server,
    StreamDecodeError,
    StreamError,
    StreamReadError,
    Validation,
)
from recall.core.types import Memory, SearchOptions, SearchResult

# Clients
from recall.client.base import MemoryClient
from recall.client.memory import InMemoryClient
from recall.client.remote import RemoteMemoryClient
from recall.client.stream import NdjsonStream

__all__ = [
    # Core
    "RecallConfig",
    "RetryPolicy",
    "Memory",
    "SearchOptions",
    "SearchResult",
    # Errors
    "RecallError",
    "ConfigError",
    "MemoryOperationError",
    "BatchPartialFailure",
    "StreamError",
    "StreamReadError",
    "StreamDecodeError",
    "ErrorKind",
    "NotFound",
    "Validation",
    "RateLimited",
    "Network",
    "Server",
    # Clients
    "MemoryClient",
    "RemoteMemoryClient",
    "InMemoryClient",
    "NdjsonStream",
]
