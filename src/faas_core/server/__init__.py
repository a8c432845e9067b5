"""HTTP server for faas-core."""

from faas_core.server.app import create_app
from faas_core.server.middleware import ForwardedForResolver, IdentityResolver, PartitionKeyMiddleware
from faas_core.server.routes import SSEResponse, create_routes

__all__ = [
    "ForwardedForResolver",
    "IdentityResolver",
    "PartitionKeyMiddleware",
    "SSEResponse",
    "create_app",
    "create_routes",
]
