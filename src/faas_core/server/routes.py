"""HTTP route handlers with server-sent-event streaming.

Run, build, deploy and deployment-log endpoints stream ``data: {...}``
blocks (``text/event-stream``). Validation failures are rejected with a JSON
body before any stream starts.
"""

import json
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from faas_core.events import StreamEvent
from faas_core.exceptions import NotFoundError, SessionError, ValidationError
from faas_core.observability import get_logger

if TYPE_CHECKING:
    from faas_core.service import Playground

logger = get_logger(__name__)


class SSEResponse(StreamingResponse):
    """Server-sent-events streaming response.

    Each event is written as one ``data:`` block followed by a blank line.
    """

    media_type = "text/event-stream"

    def __init__(
        self,
        events: AsyncIterator[StreamEvent],
        status_code: int = 200,
        headers: dict | None = None,
    ) -> None:
        sse_headers = {
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
        if headers:
            sse_headers.update(headers)

        super().__init__(
            content=self._encode(events),
            status_code=status_code,
            headers=sse_headers,
            media_type=self.media_type,
        )

    @staticmethod
    async def _encode(events: AsyncIterator[StreamEvent]) -> AsyncIterator[bytes]:
        async for event in events:
            yield event.encode()


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def status_for(error: Exception) -> int:
    """HTTP status for a failed operation."""
    if isinstance(error, (SessionError, ValidationError)):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    return 500


async def read_json(request: Request, required: bool = True) -> dict[str, Any]:
    """Parse a JSON object body.

    Raises:
        ValidationError: If the body is not a JSON object (when required)
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        if required:
            raise ValidationError("Invalid JSON body")
        return {}
    if not isinstance(body, dict):
        if required:
            raise ValidationError("Request body must be a JSON object")
        return {}
    return body


def partition_key_of(request: Request) -> str:
    return getattr(request.state, "partition_key", None) or "anonymous"


def create_routes(playground: "Playground") -> list[Route]:
    """Create HTTP routes for the playground.

    Args:
        playground: The configured Playground instance

    Returns:
        List of Starlette routes
    """

    async def health(request: Request) -> Response:
        """Health check endpoint."""
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": time.time(),
            }
        )

    async def session_create(request: Request) -> Response:
        """Start a session on a fresh sandbox."""
        try:
            session = await playground.create_session()
        except Exception as e:
            logger.error("Failed to create session", error=e)
            return error_response("Failed to create sandbox", 500)

        return JSONResponse({"success": True, "session": session.to_dict(playground.clock())})

    async def session_get(request: Request) -> Response:
        """Session status with remainingTime (ms) and isActive."""
        session = playground.session_status()
        if session is None:
            return JSONResponse({"session": None})
        return JSONResponse({"session": session.to_dict(playground.clock())})

    async def session_delete(request: Request) -> Response:
        """Stop the sandbox and clear the session; always succeeds."""
        await playground.delete_session()
        return JSONResponse({"success": True})

    async def run(request: Request) -> Response:
        """Run code and stream stdout/stderr, then exit or error."""
        try:
            body = await read_json(request)
            events = await playground.run(body.get("code"))
        except (SessionError, ValidationError) as e:
            return error_response(str(e), 400)

        return SSEResponse(events)

    async def build(request: Request) -> Response:
        """Bundle code and stream log/error events, then done on success."""
        try:
            body = await read_json(request)
            events = await playground.build(body.get("code"))
        except (SessionError, ValidationError) as e:
            return error_response(str(e), 400)

        return SSEResponse(events)

    async def deploy(request: Request) -> Response:
        """Build, deploy and pause the sandbox, streaming both phases."""
        try:
            body = await read_json(request)
            events = await playground.deploy(
                partition_key_of(request),
                body.get("code"),
                function_name=body.get("functionName"),
                cron_schedule=body.get("cronSchedule"),
                regions=body.get("regions"),
            )
        except (SessionError, ValidationError) as e:
            return error_response(str(e), 400)

        return SSEResponse(events)

    async def snapshot(request: Request) -> Response:
        """Snapshot the sandbox and pause the session."""
        try:
            snapshot_id = await playground.snapshot()
        except Exception as e:
            logger.error("Failed to create snapshot", error=e)
            return error_response(str(e) or "Failed to create snapshot", status_for(e))

        return JSONResponse(
            {
                "success": True,
                "snapshotId": snapshot_id,
                "message": "Snapshot created. Sandbox has been stopped. Use Restore to resume.",
            }
        )

    async def restore(request: Request) -> Response:
        """Resume from the given snapshot, or the session's own."""
        body = await read_json(request, required=False)
        try:
            session = await playground.restore(body.get("snapshotId"))
        except Exception as e:
            logger.error("Failed to restore snapshot", error=e)
            return error_response(str(e) or "Failed to restore snapshot", status_for(e))

        return JSONResponse(
            {
                "success": True,
                "session": session.to_dict(playground.clock()),
                "message": "Sandbox restored from snapshot",
            }
        )

    async def stop(request: Request) -> Response:
        """Stop the sandbox without a snapshot and clear the session."""
        try:
            await playground.stop()
        except Exception as e:
            logger.error("Failed to stop sandbox", error=e)
            return error_response(str(e) or "Failed to stop sandbox", status_for(e))

        return JSONResponse({"success": True, "message": "Sandbox stopped and session cleared."})

    async def deployments_list(request: Request) -> Response:
        """The caller's deployments, newest first."""
        deployments = await playground.list_deployments(partition_key_of(request))
        return JSONResponse(
            {
                "success": True,
                "deployments": [d.to_api_dict() for d in deployments],
            }
        )

    async def deployment_get(request: Request) -> Response:
        deployment_id = request.path_params["deployment_id"]
        try:
            deployment = await playground.get_deployment(partition_key_of(request), deployment_id)
        except NotFoundError:
            return error_response("Deployment not found", 404)

        return JSONResponse({"success": True, "deployment": deployment.to_api_dict()})

    async def deployment_delete(request: Request) -> Response:
        """Delete remotely (best effort) and locally."""
        deployment_id = request.path_params["deployment_id"]
        try:
            await playground.delete_deployment(partition_key_of(request), deployment_id)
        except NotFoundError:
            return error_response("Deployment not found", 404)

        return JSONResponse({"success": True})

    async def deployment_logs(request: Request) -> Response:
        """Stream runtime logs: connected, log per entry, then done or error."""
        deployment_id = request.path_params["deployment_id"]
        try:
            events = await playground.stream_deployment_logs(
                partition_key_of(request),
                deployment_id,
            )
        except NotFoundError:
            return error_response("Deployment not found", 404)

        return SSEResponse(events)

    async def options(request: Request) -> Response:
        """Cron presets and region choices."""
        return JSONResponse(playground.options())

    return [
        # Health
        Route("/health", health, methods=["GET"]),
        # Session
        Route("/api/session", session_create, methods=["POST"]),
        Route("/api/session", session_get, methods=["GET"]),
        Route("/api/session", session_delete, methods=["DELETE"]),
        Route("/api/snapshot", snapshot, methods=["POST"]),
        Route("/api/restore", restore, methods=["POST"]),
        Route("/api/stop", stop, methods=["POST"]),
        # Streams
        Route("/api/run", run, methods=["POST"]),
        Route("/api/build", build, methods=["POST"]),
        Route("/api/deploy", deploy, methods=["POST"]),
        # Deployments
        Route("/api/deployments", deployments_list, methods=["GET"]),
        Route("/api/deployments/{deployment_id}", deployment_get, methods=["GET"]),
        Route("/api/deployments/{deployment_id}", deployment_delete, methods=["DELETE"]),
        Route("/api/deployments/{deployment_id}/logs", deployment_logs, methods=["GET"]),
        Route("/api/options", options, methods=["GET"]),
    ]
