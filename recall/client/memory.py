"""
In-memory memory client — for testing.

Dict-based storage, scoped by namespace. Data lost when process exits.
Several clients may share one backing dict to model a shared server.
An optional TTL expires entries lazily, on the next access.
"""

from __future__ import annotations

import time
from typing import Callable, Mapping, Optional, Sequence

from recall.client.base import MemoryClient, normalize_items, validate_key, validate_value

# scoped key -> (value, expiry on the client's clock or None)
Entry = tuple[str, Optional[float]]


class InMemoryClient(MemoryClient):
    """
    In-memory client with the same semantics as RemoteMemoryClient.

    Usage:
        client = InMemoryClient("tests", ttl_ms=60_000)
        await client.put("key", "value")
        assert await client.get("key") == "value"
    """

    def __init__(
        self,
        namespace: str,
        store: dict[str, Entry] | None = None,
        ttl_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_ms is not None and ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        self._namespace = namespace
        self._data = store if store is not None else {}
        self._ttl_ms = ttl_ms
        self._clock = clock

    @property
    def namespace(self) -> str:
        return self._namespace

    def _scoped(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _write(self, key: str, value: str) -> None:
        expires_at = None
        if self._ttl_ms is not None:
            expires_at = self._clock() + self._ttl_ms / 1000
        self._data[self._scoped(key)] = (value, expires_at)

    def _read(self, scoped: str) -> str | None:
        entry = self._data.get(scoped)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[scoped]
            return None
        return value

    async def put(self, key: str, value: str) -> None:
        validate_key(key)
        self._write(key, validate_value(value))

    async def get(self, key: str) -> str | None:
        return self._read(self._scoped(validate_key(key)))

    async def delete(self, key: str) -> bool:
        self._data.pop(self._scoped(validate_key(key)), None)
        return True

    async def exists(self, key: str) -> bool:
        return self._read(self._scoped(validate_key(key))) is not None

    async def clear(self) -> None:
        prefix = f"{self._namespace}:"
        for scoped in [k for k in self._data if k.startswith(prefix)]:
            del self._data[scoped]

    async def put_many(self, items: Mapping[str, str] | Sequence[tuple[str, str]]) -> None:
        for key, value in normalize_items(items):
            self._write(key, value)

    async def delete_many(self, keys: Sequence[str]) -> None:
        for key in keys:
            await self.delete(key)

    async def get_many(self, keys: Sequence[str]) -> dict[str, str | None]:
        return {key: await self.get(key) for key in keys}

    async def list_keys(self) -> list[str]:
        prefix = f"{self._namespace}:"
        scoped = [k for k in self._data if k.startswith(prefix)]
        return sorted(k[len(prefix):] for k in scoped if self._read(k) is not None)
