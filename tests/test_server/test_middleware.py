"""Tests for server middleware."""

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from faas_core.observability import partition_key_var, request_id_var
from faas_core.server.middleware import (
    ForwardedForResolver,
    IdentityResolver,
    PartitionKeyMiddleware,
)


@pytest.fixture
def simple_app() -> Starlette:
    """Create a simple test application."""

    async def handler(request: Request) -> JSONResponse:
        """Simple handler that returns request state and logging context."""
        return JSONResponse({
            "partition_key": getattr(request.state, "partition_key", None),
            "context_partition_key": partition_key_var.get(),
            "context_request_id": request_id_var.get(),
        })

    return Starlette(routes=[Route("/test", handler)])


class TestPartitionKeyMiddleware:
    """Tests for PartitionKeyMiddleware."""

    def test_partition_from_forwarded_for(self, simple_app: Starlette) -> None:
        """The first forwarded address is the partition key."""
        simple_app.add_middleware(PartitionKeyMiddleware)
        client = TestClient(simple_app)

        response = client.get("/test", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

        assert response.status_code == 200
        assert response.json()["partition_key"] == "203.0.113.7"
        assert response.json()["context_partition_key"] == "203.0.113.7"

    def test_falls_back_to_client_host(self, simple_app: Starlette) -> None:
        """Without the header the socket peer is used."""
        simple_app.add_middleware(PartitionKeyMiddleware)
        client = TestClient(simple_app)

        response = client.get("/test")

        assert response.json()["partition_key"] == "testclient"

    def test_request_id_header(self, simple_app: Starlette) -> None:
        """The request id is echoed and visible to handlers."""
        simple_app.add_middleware(PartitionKeyMiddleware)
        client = TestClient(simple_app)

        response = client.get("/test", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        assert response.json()["context_request_id"] == "req-42"

    def test_generates_request_id(self, simple_app: Starlette) -> None:
        """A request id is generated when none is sent."""
        simple_app.add_middleware(PartitionKeyMiddleware)
        client = TestClient(simple_app)

        response = client.get("/test")

        assert response.headers["X-Request-ID"]

    def test_custom_resolver(self, simple_app: Starlette) -> None:
        """A custom resolver can be configured."""

        class HeaderResolver:
            def resolve(self, request: Request) -> str:
                return request.headers.get("X-Team", "none")

        assert isinstance(HeaderResolver(), IdentityResolver)
        simple_app.add_middleware(PartitionKeyMiddleware, resolver=HeaderResolver())
        client = TestClient(simple_app)

        response = client.get("/test", headers={"X-Team": "team-a"})

        assert response.json()["partition_key"] == "team-a"


class TestForwardedForResolver:
    """Tests for ForwardedForResolver."""

    def test_custom_header(self, simple_app: Starlette) -> None:
        """Custom header name can be configured."""
        simple_app.add_middleware(
            PartitionKeyMiddleware,
            resolver=ForwardedForResolver(header="x-real-ip"),
        )
        client = TestClient(simple_app)

        response = client.get("/test", headers={"X-Real-IP": "198.51.100.4"})

        assert response.json()["partition_key"] == "198.51.100.4"

    def test_blank_header_uses_client(self, simple_app: Starlette) -> None:
        """An empty header falls through to the client address."""
        simple_app.add_middleware(PartitionKeyMiddleware)
        client = TestClient(simple_app)

        response = client.get("/test", headers={"X-Forwarded-For": " "})

        assert response.json()["partition_key"] == "testclient"
