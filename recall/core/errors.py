"""
Recall error taxonomy.

Every error raised by the library inherits from RecallError.

Request failures are classified into a closed set of kinds. A kind is a
plain frozen dataclass, not an exception; it travels inside
MemoryOperationError so callers can dispatch on it:

    try:
        await client.put("k", "v")
    except MemoryOperationError as e:
        if isinstance(e.kind, RateLimited):
            await asyncio.sleep((e.kind.retry_after_ms or 1000) / 1000)
    except BatchPartialFailure as e:
        for key, kind in e.failures:
            ...

Stream failures (after a successful connection) are StreamError subclasses,
kept separate from the request taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


# ━━━ Error Kinds ━━━


@dataclass(frozen=True, slots=True)
class NotFound:
    """The addressed key does not exist (HTTP 404 with a key context)."""

    key: str


@dataclass(frozen=True, slots=True)
class Validation:
    """Bad input, authorization failure, or any unclassified 4xx."""

    message: str
    details: Any = None


@dataclass(frozen=True, slots=True)
class RateLimited:
    """HTTP 429. retry_after_ms comes from the retry-after header."""

    retry_after_ms: int | None = None


@dataclass(frozen=True, slots=True)
class Network:
    """Connection, timeout, or other transport-level failure."""

    cause: str


@dataclass(frozen=True, slots=True)
class Server:
    """HTTP 5xx."""

    status: int
    message: str = ""


ErrorKind = Union[NotFound, Validation, RateLimited, Network, Server]


def describe(kind: ErrorKind) -> str:
    """Render an error kind as a short human-readable string."""
    if isinstance(kind, NotFound):
        return f"Memory '{kind.key}' not found"
    if isinstance(kind, Validation):
        return kind.message
    if isinstance(kind, RateLimited):
        if kind.retry_after_ms is None:
            return "Rate limited"
        return f"Rate limited (retry after {kind.retry_after_ms}ms)"
    if isinstance(kind, Network):
        return f"Network error: {kind.cause}"
    if kind.message:
        return f"Server error ({kind.status}): {kind.message}"
    return f"Server error ({kind.status})"


# ━━━ Exceptions ━━━


class RecallError(Exception):
    """Base exception for all Recall errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(RecallError):
    """Configuration is invalid, missing, or malformed."""

    pass


class MemoryOperationError(RecallError):
    """A single operation failed with a classified error kind."""

    def __init__(self, kind: ErrorKind, operation: str = ""):
        self.kind = kind
        self.operation = operation
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}{describe(kind)}")


class BatchPartialFailure(RecallError):
    """Some items of a batch request failed.

    failures keeps encounter order and is not deduplicated.
    """

    def __init__(
        self,
        success_count: int,
        failures: list[tuple[str, ErrorKind]],
        correlation_id: str | None = None,
    ):
        self.success_count = success_count
        self.failures = failures
        self.correlation_id = correlation_id
        super().__init__(
            f"Batch partially failed: {success_count} succeeded, "
            f"{len(failures)} failed",
            details={"correlation_id": correlation_id} if correlation_id else None,
        )

    @property
    def failed_keys(self) -> list[str]:
        return [key for key, _ in self.failures]


class StreamError(RecallError):
    """Failure while consuming an NDJSON response stream."""

    pass


class StreamReadError(StreamError):
    """The underlying byte stream broke after the connection succeeded."""

    pass


class StreamDecodeError(StreamError):
    """A line in the stream could not be decoded."""

    def __init__(self, message: str, raw_line: str = ""):
        self.raw_line = raw_line
        super().__init__(message, details={"raw_line": raw_line})
