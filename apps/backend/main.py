"""FastAPI entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.backend.config import get_settings
from apps.backend.middleware.request_log import RequestLogMiddleware
from apps.backend.routers import health, admin_auth, admin_settings
from apps.backend.routers import public_reports, integrations_oauth, reddit
from apps.backend.utils.api_errors import error_response, request_trace_id, validation_message

logger = logging.getLogger(__name__)


def _allowed_origins() -> list[str]:
    s = get_settings()
    origins = [u.rstrip("/") for u in (s.public_app_url, s.public_client_url) if u]
    return origins or ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # shutdown


app = FastAPI(
    title="SearchFit",
    description="AI search visibility: admin settings, public reports, integrations, Reddit agent",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["System"])
app.include_router(admin_auth.router, prefix="/v1/admin/auth", tags=["Admin Auth"])
app.include_router(admin_settings.router, prefix="/v1/admin/settings", tags=["Admin Settings"])
app.include_router(public_reports.router, prefix="/v1/public/reports", tags=["Public Reports"])
app.include_router(integrations_oauth.router, prefix="/api/integrations/oauth", tags=["Integrations"])
app.include_router(reddit.router, prefix="/v1/reddit", tags=["Reddit Agent"])


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Every HTTP error is JSON with trace_id; `detail` kept for existing clients."""
    detail = exc.detail
    if not isinstance(detail, str):
        detail = str(detail) if detail else "Error"
    return error_response(
        request,
        exc.status_code,
        code="http_error",
        message=detail,
        detail=detail,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = validation_message(exc.errors())
    logger.info("request_validation_failed trace_id=%s path=%s err=%s", request_trace_id(request), request.url.path, message)
    return error_response(request, 422, code="validation_error", message=message, detail=message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception trace_id=%s path=%s", request_trace_id(request), request.url.path)
    return error_response(request, 500, code="internal_error", message="Internal server error")
