import json
from typing import Any, Optional

import httpx
import pytest

import main
from server_registry import JsonFileStore, ServerProfile, ServerRegistry


class FakeN8n:
    """In-memory stand-in for an n8n server, served through httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.fail_with: Optional[Exception] = None

    def add(self, method: str, path: str, status: int = 200, json_body: Any = None, text: Optional[str] = None):
        if text is not None:
            response = httpx.Response(status, text=text)
        else:
            response = httpx.Response(status, json=json_body if json_body is not None else {})
        self.routes[(method, "/api/v1" + path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, text="not found")
        return response

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def registry(tmp_path) -> ServerRegistry:
    return ServerRegistry(JsonFileStore(tmp_path / "servers.json"))


@pytest.fixture
def fake_n8n(monkeypatch) -> FakeN8n:
    fake = FakeN8n()
    monkeypatch.setattr(main, "HTTP_TRANSPORT", httpx.MockTransport(fake.handler))
    return fake


@pytest.fixture
def tool_registry(monkeypatch, registry) -> ServerRegistry:
    monkeypatch.setattr(main, "registry", registry)
    return registry


@pytest.fixture
def prod_server(tool_registry) -> ServerProfile:
    return tool_registry.upsert(ServerProfile("prod", "http://n8n.local:5678/", "secret-api-key-123"))
