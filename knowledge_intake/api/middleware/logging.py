"""Access logging for the operator API, tagged with session and source ids."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from knowledge_intake.utils.monitoring import observe_request

logger = logging.getLogger("knowledge_intake.api")

UNMATCHED_ROUTE = "unmatched"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log each request once it has been routed and record its latency.

    Path parameters only exist after routing, so they are read from the scope
    once the response is back. Metrics are labelled with the route template,
    never the raw path, to keep session ids out of label values.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        route = request.scope.get("route")
        template = getattr(route, "path", UNMATCHED_ROUTE)
        observe_request(request.method, template, response.status_code, duration)

        logger.info("request.completed", extra=request_context(request, template, response, duration))
        return response


def request_context(request: Request, template: str, response: Response, duration: float) -> Dict[str, Any]:
    path_params = request.scope.get("path_params") or {}
    return {
        "method": request.method,
        "route": template,
        "status": response.status_code,
        "duration_ms": round(duration * 1000, 2),
        "session_id": path_params.get("session_id"),
        "source_id": path_params.get("source_id"),
        "agent_id": path_params.get("agent_id"),
    }
