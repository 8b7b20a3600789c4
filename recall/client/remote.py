"""
Remote Memory Client — typed, retried, namespace-scoped access to the
memory HTTP API.

This client:
- Encodes values as base64 on the wire and decodes them on read
- Retries Network / Server / RateLimited failures per the RetryPolicy
- Recovers NotFound locally for get (None), delete (True) and exists (False)
- Reconciles batch responses into BatchPartialFailure with per-key kinds
- Streams key listings and search results as NDJSON

Endpoints:
    POST   /api/v1/memories                    put
    GET    /api/v1/memories/{key}              get / exists
    DELETE /api/v1/memories/{key}              delete
    DELETE /api/v1/memories?namespace={ns}     clear
    POST   /api/v1/memories/batch              put_many
    DELETE /api/v1/memories/batch              delete_many
    POST   /api/v1/memories/batchGet           get_many
    GET    /v1/keys/{namespace}                list_all_keys (NDJSON)
    GET    /v1/search/{namespace}/stream?q=    stream_search (NDJSON)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Sequence, TypeVar
from urllib.parse import quote

import httpx

from recall.client.base import MemoryClient, normalize_items, validate_key, validate_value
from recall.client.batch import collect_values, parse_batch_body, reconcile
from recall.client.stream import NdjsonStream, parse_key_record, parse_search_record
from recall.core.classify import classify_response, classify_transport_error, response_body
from recall.core.codec import decode_value, encode_value
from recall.core.config import RecallConfig
from recall.core.errors import (
    BatchPartialFailure,
    ErrorKind,
    MemoryOperationError,
    NotFound,
    Validation,
)
from recall.core.retry import RetryScheduler, Sleeper
from recall.core.types import BatchOutcome, SearchOptions, SearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0
MEMORIES_PATH = "/api/v1/memories"
NDJSON = "application/x-ndjson"
NAMESPACE_HEADER = "X-Supermemory-Namespace"


class RemoteMemoryClient(MemoryClient):
    """
    Memory client backed by the remote HTTP API.

    Usage:
        config = RecallConfig(
            namespace="notes",
            base_url="https://memory.example.com",
            api_key="...",
            retries={"attempts": 3, "delay_ms": 200},
        )
        async with RemoteMemoryClient(config) as client:
            await client.put("greeting", "hello")
            assert await client.get("greeting") == "hello"

            stream = await client.list_all_keys()
            async with stream:
                async for key in stream:
                    print(key)

    An httpx.AsyncClient may be injected; the caller then owns its lifecycle.
    """

    def __init__(
        self,
        config: RecallConfig,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._config = config
        self._client = http_client
        self._owns_client = http_client is None
        self._retry = RetryScheduler(config.retries, sleep=sleep)

    @property
    def namespace(self) -> str:
        return self._config.namespace

    @property
    def config(self) -> RecallConfig:
        return self._config

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            timeout = self._config.timeout_seconds or DEFAULT_TIMEOUT_SECONDS
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    # ━━━ CRUD ━━━

    async def put(self, key: str, value: str) -> None:
        validate_key(key)
        validate_value(value)
        await self._request(
            "POST",
            MEMORIES_PATH,
            operation="put",
            json=self._memory_payload(key, value),
        )

    async def get(self, key: str) -> str | None:
        validate_key(key)
        try:
            response = await self._request("GET", self._memory_path(key), operation="get", key=key)
        except MemoryOperationError as e:
            if isinstance(e.kind, NotFound):
                return None
            raise

        body = response_body(response)
        if not isinstance(body, dict) or "value" not in body:
            raise MemoryOperationError(
                Validation(f"Malformed memory response for '{key}'", details=body),
                operation="get",
            )
        return decode_value(body["value"], key=key)

    async def delete(self, key: str) -> bool:
        validate_key(key)
        try:
            await self._request("DELETE", self._memory_path(key), operation="delete", key=key)
        except MemoryOperationError as e:
            if isinstance(e.kind, NotFound):
                return True
            raise
        return True

    async def exists(self, key: str) -> bool:
        validate_key(key)
        try:
            await self._request("GET", self._memory_path(key), operation="exists", key=key)
        except MemoryOperationError as e:
            if isinstance(e.kind, NotFound):
                return False
            raise
        return True

    async def clear(self) -> None:
        await self._request(
            "DELETE",
            MEMORIES_PATH,
            operation="clear",
            params={"namespace": self.namespace},
        )

    # ━━━ Batches ━━━

    async def put_many(self, items: Mapping[str, str] | Sequence[tuple[str, str]]) -> None:
        pairs = normalize_items(items)
        if not pairs:
            return
        response = await self._request(
            "POST",
            f"{MEMORIES_PATH}/batch",
            operation="put_many",
            json=[self._memory_payload(key, value) for key, value in pairs],
        )
        self._raise_for_outcome(self._reconcile(response, [key for key, _ in pairs]))

    async def delete_many(self, keys: Sequence[str]) -> None:
        keys = [validate_key(key) for key in keys]
        if not keys:
            return
        response = await self._request(
            "DELETE",
            f"{MEMORIES_PATH}/batch",
            operation="delete_many",
            json=[{"id": key, "namespace": self.namespace} for key in keys],
        )
        self._raise_for_outcome(self._reconcile(response, keys))

    async def get_many(self, keys: Sequence[str]) -> dict[str, str | None]:
        keys = [validate_key(key) for key in keys]
        if not keys:
            return {}
        response = await self._request(
            "POST",
            f"{MEMORIES_PATH}/batchGet",
            operation="get_many",
            json=[{"id": key, "namespace": self.namespace} for key in keys],
        )
        results, correlation_id = parse_batch_body(response_body(response))
        self._raise_for_outcome(
            reconcile(keys, results, correlation_id=correlation_id, absent_ok=True)
        )
        return collect_values(keys, results)

    # ━━━ Streaming ━━━

    async def list_all_keys(self) -> NdjsonStream[str]:
        """Open the key listing. Connection errors raise before any key is read."""
        return await self._open_stream(
            f"/v1/keys/{quote(self.namespace, safe='')}",
            parse_key_record,
            operation="list_all_keys",
        )

    async def stream_search(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> NdjsonStream[SearchResult]:
        """Open a streamed search over the namespace."""
        if not isinstance(query, str) or not query.strip():
            raise MemoryOperationError(
                Validation("Query must be a non-empty string"), operation="stream_search"
            )
        params = {"q": query, **(options or SearchOptions()).to_params()}
        return await self._open_stream(
            f"/v1/search/{quote(self.namespace, safe='')}/stream",
            parse_search_record,
            operation="stream_search",
            params=params,
        )

    # ━━━ Internals ━━━

    def _headers(self, accept: str = "application/json") -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key.get_secret_value()}",
            "Content-Type": "application/json",
            "Accept": accept,
            NAMESPACE_HEADER: self.namespace,
        }

    def _timeout(self) -> Any:
        """Configured per-request timeout, else whatever the client was built with."""
        if self._config.timeout_seconds is None:
            return httpx.USE_CLIENT_DEFAULT
        return httpx.Timeout(self._config.timeout_seconds)

    def _url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    def _memory_path(self, key: str) -> str:
        return f"{MEMORIES_PATH}/{quote(key, safe='')}"

    def _memory_payload(self, key: str, value: str) -> dict[str, str]:
        return {"id": key, "value": encode_value(value), "namespace": self.namespace}

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        key: str | None = None,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one logical request through the retry scheduler."""
        client = await self._get_client()
        url = self._url(path)
        headers = self._headers()
        timeout = self._timeout()

        async def send() -> httpx.Response:
            logger.debug(f"{operation}: {method} {path}")
            return await client.request(
                method, url, headers=headers, json=json, params=params, timeout=timeout
            )

        return await self._retry.execute(send, key=key, operation_name=operation)

    def _reconcile(self, response: httpx.Response, keys: list[str]) -> BatchOutcome:
        results, correlation_id = parse_batch_body(response_body(response))
        return reconcile(keys, results, correlation_id=correlation_id)

    @staticmethod
    def _raise_for_outcome(outcome: BatchOutcome) -> None:
        if not outcome.ok:
            raise BatchPartialFailure(
                success_count=outcome.success_count,
                failures=outcome.failures,
                correlation_id=outcome.correlation_id,
            )

    async def _open_stream(
        self,
        path: str,
        parse: Callable[[Any], T],
        operation: str,
        params: dict[str, str] | None = None,
    ) -> NdjsonStream[T]:
        client = await self._get_client()
        request = client.build_request(
            "GET",
            self._url(path),
            headers=self._headers(accept=NDJSON),
            params=params,
            timeout=self._timeout(),
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.RequestError as e:
            raise MemoryOperationError(classify_transport_error(e), operation=operation) from e

        if not response.is_success:
            kind: ErrorKind
            try:
                await response.aread()
                kind = classify_response(response)
            except httpx.RequestError as e:
                kind = classify_transport_error(e)
            finally:
                await response.aclose()
            raise MemoryOperationError(kind, operation=operation)

        logger.debug(f"{operation}: stream opened ({response.status_code})")
        return NdjsonStream(response.aiter_bytes(), parse, on_close=response.aclose)
