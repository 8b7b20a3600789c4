"""
NDJSON stream decoding.

NdjsonStream turns an async byte iterator into an async iterator of parsed
records. Bytes are buffered only until a line boundary is found; each
complete line is decoded on its own and yielded in server order.

A malformed line raises StreamDecodeError at that position. Records already
yielded stay delivered; the stream is closed and yields nothing further.

The underlying response is released when the stream is exhausted, fails,
or is closed early by the consumer. A bare `async for ... break` does not
release it; stop early inside `async with` or through take():

    stream = await client.list_all_keys()
    async with stream:
        async for key in stream:
            if key == "stop":
                break      # connection released on exit
"""

from __future__ import annotations

import codecs
import json
import logging
import warnings
from collections import deque
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, TypeVar

import httpx

from recall.core.codec import decode_value
from recall.core.errors import (
    MemoryOperationError,
    StreamDecodeError,
    StreamReadError,
)
from recall.core.types import Memory, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NdjsonStream(Generic[T]):
    """
    Lazy, single-pass iterator over newline-delimited JSON records.

    Close it with `async with`, take(), collect() or aclose(). A stream
    dropped while still open emits a ResourceWarning.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        parse: Callable[[Any], T],
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._chunks = chunks
        self._parse = parse
        self._on_close = on_close
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._lines: deque[str] = deque()
        self._exhausted = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            warnings.warn(
                "NDJSON stream was never closed; use `async with` or take()",
                ResourceWarning,
                stacklevel=2,
            )

    def __aiter__(self) -> NdjsonStream[T]:
        return self

    async def __anext__(self) -> T:
        while not self._closed:
            if self._lines:
                line = self._lines.popleft()
                if not line.strip():
                    continue
                return await self._decode(line)

            if self._exhausted:
                await self.aclose()
                break

            await self._fill()

        raise StopAsyncIteration

    async def __aenter__(self) -> NdjsonStream[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def take(self, n: int) -> list[T]:
        """Collect at most n records, then release the stream."""
        items: list[T] = []
        try:
            if n <= 0:
                return items
            async for item in self:
                items.append(item)
                if len(items) >= n:
                    break
        finally:
            await self.aclose()
        return items

    async def collect(self) -> list[T]:
        """Collect every record until the server ends the stream."""
        async with self:
            return [item async for item in self]

    async def aclose(self) -> None:
        """Release the underlying connection. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        self._lines.clear()
        self._buffer = ""

        close_chunks = getattr(self._chunks, "aclose", None)
        try:
            if close_chunks is not None:
                await close_chunks()
        finally:
            if self._on_close is not None:
                await self._on_close()
        logger.debug("NDJSON stream closed")

    # ━━━ Internals ━━━

    async def _fill(self) -> None:
        """Pull one chunk and split off any complete lines."""
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._exhausted = True
            tail = self._buffer + self._decoder.decode(b"", final=True)
            self._buffer = ""
            if tail.strip():
                self._lines.append(tail)
            return
        except httpx.HTTPError as e:
            await self.aclose()
            raise StreamReadError(f"Stream read failed: {e}") from e

        try:
            text = self._decoder.decode(chunk)
        except UnicodeDecodeError as e:
            await self.aclose()
            raise StreamReadError(f"Invalid UTF-8 in stream: {e}") from e

        parts = (self._buffer + text).split("\n")
        self._buffer = parts.pop()
        self._lines.extend(parts)

    async def _decode(self, line: str) -> T:
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            await self.aclose()
            raise StreamDecodeError(f"Failed to parse JSON line: {e}", raw_line=line) from e

        try:
            return self._parse(data)
        except (KeyError, TypeError, ValueError, MemoryOperationError) as e:
            await self.aclose()
            raise StreamDecodeError(f"Unexpected record shape: {e}", raw_line=line) from e


# ━━━ Record Parsers ━━━


def parse_key_record(data: Any) -> str:
    """{"key": "..."} → "..." """
    key = data["key"]
    if not isinstance(key, str):
        raise TypeError(f"key must be a string, got {type(key).__name__}")
    return key


def parse_search_record(data: Any) -> SearchResult:
    """{"id", "value" (base64), "relevanceScore", "metadata"?} → SearchResult"""
    key = data["id"]
    if not isinstance(key, str):
        raise TypeError(f"id must be a string, got {type(key).__name__}")
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise TypeError("metadata must be an object")
    return SearchResult(
        memory=Memory(key=key, value=decode_value(data["value"], key=key)),
        relevance_score=float(data["relevanceScore"]),
        metadata=metadata,
    )
