"""
Guildhall Backend — Access Log Middleware
===========================================

What:  One log line per HTTP request: method, path, status, duration,
       request id and, once the auth gate has run, the acting member.
When:  Registered after RequestIDMiddleware, so it executes inside it and
       sees the request id.

Level follows the status class: 5xx → ERROR, 4xx → WARNING, else INFO.
Request bodies are never logged; connection messages are member content.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from guildhall.middleware.request_id import request_id_var

logger = logging.getLogger("guildhall.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        member_id = getattr(request.state, "member_id", "-")
        client_ip = request.client.host if request.client else "unknown"

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] member=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            member_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "member_id": member_id,
            },
        )
        return response
