"""
Shared fixtures for the API connector tests.

Routes are exercised through TestClient with the log store, token client
and outbound HTTP client replaced via dependency overrides. Graph traffic
goes to an httpx.MockTransport whose responses each test registers.
"""

import json
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest
from fastapi.testclient import TestClient

from connector.app.auth.tokens import PasswordGrantResult, get_http_client, get_token_client
from connector.app.config import Settings, get_settings
from connector.app.db.crud import get_log_store
from connector.app.main import create_app


GRAPH_BASE_URL = "https://graph.test/v1.0"


# ============================================================================
# Fakes
# ============================================================================

class FakeLogStore:
    """Collects log rows in memory; set ``fail`` to simulate a database error."""

    def __init__(self):
        self.records: List[Tuple[str, str]] = []
        self.fail = False

    async def add(self, message: str, log_level: str = "Info"):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.records.append((log_level, message))


class FakeTokenClient:
    def __init__(self):
        self.grant_result = PasswordGrantResult(
            ok=True,
            status_code=200,
            body={"token_type": "Bearer", "access_token": "user-token", "expires_in": "3599"},
        )
        self.graph_error: Exception = None
        self.password_calls: List[Tuple[str, str]] = []
        self.graph_token_calls = 0

    async def password_grant(self, email: str, password: str) -> PasswordGrantResult:
        self.password_calls.append((email, password))
        return self.grant_result

    async def acquire_graph_token(self) -> str:
        self.graph_token_calls += 1
        if self.graph_error:
            raise self.graph_error
        return "graph-token"


Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class GraphStub:
    """
    Route table for the mocked Graph API.

    Register responses with ``stub.on("GET", "/users/abc", httpx.Response(...))``.
    Unregistered routes answer 404 with a Graph-style error body.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Responder] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method, path)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/v1.0", "", 1)
        responder = self.routes.get((request.method, path))
        if responder is None:
            return httpx.Response(
                404,
                json={"error": {"code": "Request_ResourceNotFound", "message": f"No route {path}"}},
            )
        if callable(responder):
            return responder(request)
        return responder

    def json_bodies(self, method: str, path: str) -> List[Any]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == method and r.url.path.endswith(path)
        ]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        AZURE_AD={
            "TENANT_ID": "11111111-2222-3333-4444-555555555555",
            "TENANT_NAME": "contoso",
            "CLIENT_ID": "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee",
            "CLIENT_SECRET": "test-client-secret",
            "DOMAIN": "contoso.onmicrosoft.com",
        },
        AUTH={"USER": "connector", "PASS": "s3cret"},
        GRAPH={"BASE_URL": GRAPH_BASE_URL},
        ENROLMENT_RETRY_ATTEMPTS=3,
        ENROLMENT_RETRY_DELAY_SECONDS=0,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def log_store() -> FakeLogStore:
    return FakeLogStore()


@pytest.fixture
def token_client() -> FakeTokenClient:
    return FakeTokenClient()


@pytest.fixture
def graph() -> GraphStub:
    return GraphStub()


@pytest.fixture
def client(test_settings, log_store, token_client, graph):
    """TestClient with every outbound dependency replaced."""
    app = create_app()
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(graph.handler))

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_log_store] = lambda: log_store
    app.dependency_overrides[get_token_client] = lambda: token_client
    app.dependency_overrides[get_http_client] = lambda: http_client

    return TestClient(app)
