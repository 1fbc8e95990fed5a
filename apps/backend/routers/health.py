"""Liveness and readiness probes."""
import logging

import redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from apps.backend.deps import get_db
from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "service": "searchfit"}


def _check_database(db: Session) -> str | None:
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        return str(e)[:200]
    return None


def _check_redis() -> str | None:
    s = get_settings()
    try:
        redis.Redis(host=s.redis_host, port=s.redis_port, socket_connect_timeout=2).ping()
    except redis.RedisError as e:
        return str(e)[:200]
    return None


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """503 with per-dependency errors when Postgres or Redis is unreachable."""
    errors = {"database": _check_database(db), "redis": _check_redis()}
    checks = {name: "error" if err else "ok" for name, err in errors.items()}
    failed = {name: err for name, err in errors.items() if err}
    if failed:
        logger.warning("readiness_failed %s", " ".join(f"{k}={v}" for k, v in failed.items()))
        return JSONResponse({"status": "error", "checks": checks, "errors": failed}, status_code=503)
    return {"status": "ok", "checks": checks}
