"""Shared test fixtures for Recall."""

from __future__ import annotations

import base64
import json
import time
from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio

from recall.client.remote import RemoteMemoryClient
from recall.core.config import RecallConfig, RetryPolicy


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def unb64(value: str) -> str:
    return base64.b64decode(value).decode("utf-8")


class FakeMemoryServer:
    """
    In-process stand-in for the memory API, served via httpx.MockTransport.

    Stores values per namespace (taken from the namespace header or body).
    Tracks every request and its arrival time for assertions.

    Queue failures with fail_next(); each queued outcome answers exactly one
    request before normal routing resumes:
        server.fail_next(500, "network", 429)
    """

    def __init__(self) -> None:
        self.store: dict[str, dict[str, str]] = {}
        self.requests: list[httpx.Request] = []
        self.call_times: list[float] = []
        self._queued: list[Any] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def fail_next(self, *outcomes: int | str | httpx.Response) -> None:
        self._queued.extend(outcomes)

    def seed(self, namespace: str, **values: str) -> None:
        ns = self.store.setdefault(namespace, {})
        for key, value in values.items():
            ns[key] = b64(value)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.call_times.append(time.monotonic())

        if self._queued:
            outcome = self._queued.pop(0)
            if isinstance(outcome, httpx.Response):
                return outcome
            if outcome == "network":
                raise httpx.ConnectError("connection refused", request=request)
            if outcome == "timeout":
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(outcome, json={"message": f"injected {outcome}"})

        return self._route(request)

    # ━━━ Routing ━━━

    def _route(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        method = request.method
        namespace = request.headers.get("X-Supermemory-Namespace", "")
        ns = self.store.setdefault(namespace, {})

        if path == "/api/v1/memories/batch" and method == "POST":
            items = json.loads(request.content)
            for item in items:
                self.store.setdefault(item["namespace"], {})[item["id"]] = item["value"]
            return httpx.Response(
                200, json={"results": [{"id": i["id"], "status": 201} for i in items]}
            )

        if path == "/api/v1/memories/batch" and method == "DELETE":
            results = []
            for item in json.loads(request.content):
                existed = self.store.setdefault(item["namespace"], {}).pop(item["id"], None)
                results.append({"id": item["id"], "status": 200 if existed else 404})
            return httpx.Response(200, json={"results": results})

        if path == "/api/v1/memories/batchGet" and method == "POST":
            results = []
            for item in json.loads(request.content):
                value = self.store.get(item["namespace"], {}).get(item["id"])
                if value is None:
                    results.append({"id": item["id"], "status": 404})
                else:
                    results.append({"id": item["id"], "status": 200, "value": value})
            return httpx.Response(200, json={"results": results})

        if path == "/api/v1/memories" and method == "POST":
            item = json.loads(request.content)
            self.store.setdefault(item["namespace"], {})[item["id"]] = item["value"]
            return httpx.Response(201, json={"id": item["id"], "status": "success"})

        if path == "/api/v1/memories" and method == "DELETE":
            self.store.pop(request.url.params["namespace"], None)
            return httpx.Response(204)

        if path.startswith("/api/v1/memories/"):
            key = path[len("/api/v1/memories/"):]
            if key not in ns:
                return httpx.Response(404, json={"message": "Memory not found"})
            if method == "GET":
                return httpx.Response(
                    200, json={"id": key, "value": ns[key], "namespace": namespace}
                )
            if method == "DELETE":
                del ns[key]
                return httpx.Response(204)

        if path.startswith("/v1/keys/"):
            lines = [json.dumps({"key": key}) for key in sorted(self.store.get(path[len("/v1/keys/"):], {}))]
            return ndjson_response(lines)

        if path.startswith("/v1/search/") and path.endswith("/stream"):
            search_ns = path[len("/v1/search/"):-len("/stream")]
            query = request.url.params["q"]
            lines = [
                json.dumps({"id": key, "value": value, "relevanceScore": 0.9})
                for key, value in sorted(self.store.get(search_ns, {}).items())
                if query in unb64(value)
            ]
            return ndjson_response(lines)

        return httpx.Response(400, json={"message": f"Unknown route {method} {path}"})


def ndjson_response(lines: list[str], status: int = 200) -> httpx.Response:
    body = "".join(f"{line}\n" for line in lines)
    return httpx.Response(
        status, content=body.encode("utf-8"), headers={"content-type": "application/x-ndjson"}
    )


def make_config(**overrides: Any) -> RecallConfig:
    values: dict[str, Any] = {
        "namespace": "test-ns",
        "base_url": "https://memory.test",
        "api_key": "sk-test-secret",
    }
    values.update(overrides)
    return RecallConfig(**values)


@pytest.fixture
def config():
    """Create a config with no retries."""
    return make_config()


@pytest.fixture
def server():
    """Create a fresh fake memory server."""
    return FakeMemoryServer()


@pytest_asyncio.fixture
async def make_client(server):
    """Factory for clients wired to the fake server. Closes them afterwards."""
    http_clients: list[httpx.AsyncClient] = []

    def factory(
        retries: RetryPolicy | dict | None = None,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
        **overrides: Any,
    ) -> RemoteMemoryClient:
        transport = httpx.MockTransport(handler) if handler else server.transport()
        http_client = httpx.AsyncClient(transport=transport)
        http_clients.append(http_client)
        return RemoteMemoryClient(make_config(retries=retries, **overrides), http_client=http_client)

    yield factory

    for http_client in http_clients:
        await http_client.aclose()
