"""
Memory Client interface.

Namespace-scoped key-value storage of string values.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from recall.core.errors import MemoryOperationError, Validation
from recall.core.types import MAX_KEY_LENGTH


class MemoryClient(ABC):
    """
    Abstract base class for memory clients.

    Every operation is scoped to the namespace fixed at construction.

    Implementations:
        RemoteMemoryClient — HTTP API with retries and streaming
        InMemoryClient — dict-backed, for testing
    """

    @property
    @abstractmethod
    def namespace(self) -> str:
        ...

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Create or overwrite a value."""
        ...

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get a value by key. Returns None if not found."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True whether or not it existed."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Delete every key in the namespace."""
        ...

    @abstractmethod
    async def put_many(self, items: Mapping[str, str] | Sequence[tuple[str, str]]) -> None:
        """Store several values. Raises BatchPartialFailure on partial success."""
        ...

    @abstractmethod
    async def delete_many(self, keys: Sequence[str]) -> None:
        """Delete several keys. Raises BatchPartialFailure on partial success."""
        ...

    @abstractmethod
    async def get_many(self, keys: Sequence[str]) -> dict[str, str | None]:
        """Read several keys. Absent keys map to None; every key is present."""
        ...

    async def get_or_default(self, key: str, default: str) -> str:
        value = await self.get(key)
        return default if value is None else value

    async def close(self) -> None:
        """Release resources held by the client."""
        return None

    async def __aenter__(self) -> MemoryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def validate_key(key: str) -> str:
    """Reject empty or oversized keys before any request is made."""
    if not isinstance(key, str) or not key:
        raise MemoryOperationError(Validation("Key must be a non-empty string"), operation="validate")
    if len(key) > MAX_KEY_LENGTH:
        raise MemoryOperationError(
            Validation(f"Key must be {MAX_KEY_LENGTH} characters or less"),
            operation="validate",
        )
    return key


def validate_value(value: str) -> str:
    if not isinstance(value, str):
        raise MemoryOperationError(
            Validation(f"Value must be a string, got {type(value).__name__}"),
            operation="validate",
        )
    return value


def normalize_items(items: Mapping[str, str] | Sequence[tuple[str, str]]) -> list[tuple[str, str]]:
    pairs = list(items.items()) if isinstance(items, Mapping) else list(items)
    for key, value in pairs:
        validate_key(key)
        validate_value(value)
    return pairs
