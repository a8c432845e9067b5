"""Caller identity middleware for the HTTP server."""

from typing import Any, Callable, Protocol, runtime_checkable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from faas_core.observability import RequestContext


@runtime_checkable
class IdentityResolver(Protocol):
    """Derives the partition key that scopes a caller's deployments."""

    def resolve(self, request: Request) -> str:
        ...


class ForwardedForResolver:
    """Partition by client address.

    Uses the first entry of the forwarding header, then the socket peer,
    then a fixed fallback.
    """

    def __init__(self, header: str = "x-forwarded-for", fallback: str = "anonymous") -> None:
        self.header = header
        self.fallback = fallback

    def resolve(self, request: Request) -> str:
        forwarded = request.headers.get(self.header, "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
        if request.client and request.client.host:
            return request.client.host
        return self.fallback


class PartitionKeyMiddleware(BaseHTTPMiddleware):
    """Resolves the caller's partition key into ``request.state.partition_key``.

    Also sets the request id and partition key logging context.
    """

    def __init__(
        self,
        app: Any,
        resolver: IdentityResolver | None = None,
    ) -> None:
        """Initialize partition key middleware.

        Args:
            app: The ASGI application
            resolver: Identity resolver (defaults to ForwardedForResolver)
        """
        super().__init__(app)
        self.resolver = resolver or ForwardedForResolver()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        partition_key = self.resolver.resolve(request)
        request.state.partition_key = partition_key

        with RequestContext(
            request_id=request.headers.get("x-request-id"),
            partition_key=partition_key,
        ) as ctx:
            response = await call_next(request)
        response.headers["X-Request-ID"] = ctx.request_id
        return response
