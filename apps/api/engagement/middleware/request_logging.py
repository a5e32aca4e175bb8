from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from engagement.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("engagement.request")


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One ``http.request`` line and one metrics observation per request.

    Only the route template is logged, never query strings or bodies.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        status_code = 500
        raised = False
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception:
            raised = True
            raise
        finally:
            elapsed = time.perf_counter() - started
            path = resolve_http_path_label(request)
            observe_http_request(method=request.method, path=path, status=status_code, duration=elapsed)
            logger.log(
                _level_for(status_code),
                "http.request",
                exc_info=raised,
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": status_code,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
