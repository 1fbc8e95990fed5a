"""JSON error bodies shared by every handler: {code, message, trace_id, detail?, error}."""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from apps.backend.middleware.request_log import ensure_trace_id


def error_envelope(*, code: str, message: str, trace_id: str, detail: str | None = None) -> dict:
    out = {"code": code, "message": message, "trace_id": trace_id}
    if detail:
        out["detail"] = detail
    # dashboard clients still read `error`
    out["error"] = code
    return out


def request_trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", None) or ensure_trace_id(request.scope)


def error_response(
    request: Request,
    status_code: int,
    *,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    trace_id = request_trace_id(request)
    resp = JSONResponse(
        content=error_envelope(code=code, message=message, trace_id=trace_id, detail=detail),
        status_code=status_code,
        headers=headers,
    )
    resp.headers["X-Trace-Id"] = trace_id
    return resp


def validation_message(errors: list) -> str:
    """First pydantic error as `field: msg`."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    msg = str(first.get("msg") or "Invalid value").removeprefix("Value error, ")
    return f"{'.'.join(loc)}: {msg}" if loc else msg
