"""ASGI application for standalone deployment."""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from faas_core.server.middleware import ForwardedForResolver, IdentityResolver, PartitionKeyMiddleware

if TYPE_CHECKING:
    from faas_core.service import Playground


def create_app(
    playground: "Playground",
    resolver: IdentityResolver | None = None,
) -> Starlette:
    """Create the ASGI application.

    Args:
        playground: The configured Playground instance
        resolver: Caller identity resolver (defaults to the configured
            forwarding header)

    Returns:
        Starlette application
    """
    from faas_core.server.routes import create_routes

    routes = create_routes(playground)

    identity = playground.config.identity
    resolver = resolver or ForwardedForResolver(header=identity.header, fallback=identity.fallback)

    # Executed in reverse order: CORS -> PartitionKey -> Route handler
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=playground.config.server.cors_origins or ["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        ),
        Middleware(PartitionKeyMiddleware, resolver=resolver),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        yield
        await playground.close()

    return Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
    )
