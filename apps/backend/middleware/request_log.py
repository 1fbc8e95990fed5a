"""Middleware: trace id per request, one access log line."""
import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("uvicorn.error")

SCOPE_KEY = "trace_id"
TRACE_HEADER = "X-Trace-Id"
_SKIP_PATHS = ("/health",)
_INBOUND_TRACE_RE = re.compile(r"^[A-Za-z0-9_-]{8,64}$")


def ensure_trace_id(scope: dict, inbound: str | None = None) -> str:
    """Trace id stored on the ASGI scope; a well-formed inbound id from a proxy is reused."""
    tid = scope.get(SCOPE_KEY)
    if tid and isinstance(tid, str):
        return tid
    if inbound and _INBOUND_TRACE_RE.match(inbound):
        tid = inbound
    else:
        tid = uuid.uuid4().hex[:16]
    scope[SCOPE_KEY] = tid
    return tid


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = ensure_trace_id(request.scope, request.headers.get(TRACE_HEADER))
        request.state.trace_id = trace_id
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        response.headers[TRACE_HEADER] = trace_id
        if request.url.path not in _SKIP_PATHS:
            logger.info(
                "request trace_id=%s method=%s path=%s status=%s latency_ms=%s",
                trace_id,
                request.method,
                request.url.path,
                response.status_code,
                latency_ms,
            )
        return response
