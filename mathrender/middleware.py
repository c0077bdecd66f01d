"""
Request tracing middleware for the mathrender service.

Tags every HTTP exchange with a short request id, echoes it and the
elapsed time as response headers and logs one line per render.
"""

import time
import uuid
from typing import Any

from loguru import logger

REQUEST_ID_HEADER = b"x-request-id"
RENDER_TIME_HEADER = b"x-render-time"


class RequestTracingMiddleware:
    """
    ASGI middleware that traces render requests.

    Requests slower than ``slow_threshold`` seconds are logged as warnings
    so that pathological formulas stand out in the service log.
    """

    def __init__(self, app: Any, slow_threshold: float = 5.0) -> None:
        """
        Initialize the tracing middleware.

        Args:
            app: ASGI application
            slow_threshold: Duration in seconds above which a render is reported as slow
        """
        self.app = app
        self.slow_threshold = slow_threshold

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex[:8]
        scope["request_id"] = request_id
        started = time.perf_counter()
        status_code = 500

        async def send_with_trace(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                elapsed_ms = (time.perf_counter() - started) * 1000
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, request_id.encode("ascii")))
                headers.append((RENDER_TIME_HEADER, f"{elapsed_ms:.1f}ms".encode("ascii")))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_trace)

        elapsed = time.perf_counter() - started
        line = f"[{request_id}] {scope['method']} {scope['path']} -> {status_code} in {elapsed:.3f}s"
        if elapsed > self.slow_threshold:
            logger.warning(f"Slow render {line}")
        else:
            logger.info(line)
