"""Public report unlock: email capture, unlock cookie and status checks."""
from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apps.backend.config import get_settings
from apps.backend.models.report import PublicReport, ReportUnlockRequest

logger = logging.getLogger(__name__)

UNLOCK_COOKIE_PREFIX = "report_unlocked_"
MSG_UNLOCK_FAILED = "Failed to unlock report. Please try again."


class UnlockReportError(Exception):
    def __init__(self, message: str = MSG_UNLOCK_FAILED, code: str = "unlock_failed") -> None:
        super().__init__(message)
        self.code = code


class UnlockReportInput(BaseModel):
    domain: str
    email: EmailStr
    first_name: str
    last_name: str
    company_name: str

    @field_validator("domain", "first_name", "last_name", "company_name")
    @classmethod
    def _required(cls, v: str, info) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError(f"{info.field_name.replace('_', ' ').capitalize()} is required")
        return v


def normalize_domain(domain: str) -> str:
    d = (domain or "").strip().lower()
    d = re.sub(r"^https?://", "", d)
    d = re.sub(r"^www\.", "", d)
    d = re.sub(r"/$", "", d)
    return d.strip()


def unlock_cookie_name(domain: str) -> str:
    return f"{UNLOCK_COOKIE_PREFIX}{normalize_domain(domain)}"


def unlock_cookie_value(email: str, first_name: str, last_name: str) -> str:
    return json.dumps({"email": email, "firstName": first_name, "lastName": last_name})


def parse_unlock_cookie(raw: str | None) -> dict | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict) or not data.get("email"):
        return None
    return data


def client_ip(headers) -> str:
    """First X-Forwarded-For hop, then X-Real-IP."""
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    return forwarded or (headers.get("x-real-ip") or "").strip() or "unknown"


def check_report_unlocked(db: Session, domain: str, email: str) -> bool:
    row = (
        db.query(ReportUnlockRequest)
        .filter(
            ReportUnlockRequest.domain == normalize_domain(domain),
            ReportUnlockRequest.email == (email or "").strip().lower(),
            ReportUnlockRequest.unlocked.is_(True),
        )
        .first()
    )
    return row is not None


def get_unlock_status(db: Session, domain: str, cookie_value: str | None) -> dict:
    """{unlocked, email?} from the unlock cookie, verified against stored requests."""
    data = parse_unlock_cookie(cookie_value)
    if not data:
        return {"unlocked": False}
    email = str(data["email"]).strip().lower()
    if not check_report_unlocked(db, domain, email):
        return {"unlocked": False}
    return {"unlocked": True, "email": email}


def unlock_report(
    db: Session,
    payload: UnlockReportInput,
    *,
    ip_address: str = "unknown",
    user_agent: str = "unknown",
) -> dict:
    """Record (or refresh) an unlock request. Returns the result for the client and notifications."""
    domain = normalize_domain(payload.domain)
    email = str(payload.email).lower()
    now = datetime.utcnow()
    try:
        row = (
            db.query(ReportUnlockRequest)
            .filter(ReportUnlockRequest.domain == domain, ReportUnlockRequest.email == email)
            .first()
        )
        already_unlocked = row is not None
        if row:
            row.first_name = payload.first_name
            row.last_name = payload.last_name
            row.company_name = payload.company_name
            row.unlocked = True
            row.unlocked_at = now
            row.updated_at = now
        else:
            row = ReportUnlockRequest(
                domain=domain,
                email=email,
                first_name=payload.first_name,
                last_name=payload.last_name,
                company_name=payload.company_name,
                ip_address=ip_address,
                user_agent=user_agent,
                unlocked=True,
                unlocked_at=now,
            )
            db.add(row)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("report_unlock_failed domain=%s", domain)
        raise UnlockReportError() from e
    logger.info("report_unlocked domain=%s already=%s", domain, already_unlocked)
    return {
        "success": True,
        "already_unlocked": already_unlocked,
        "domain": domain,
        "original_domain": payload.domain,
        "email": email,
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "company_name": payload.company_name,
    }


def unlock_cookie_kwargs(domain: str, email: str, first_name: str, last_name: str) -> dict:
    """Arguments for Response.set_cookie."""
    s = get_settings()
    return {
        "key": unlock_cookie_name(domain),
        "value": unlock_cookie_value(email, first_name, last_name),
        "max_age": s.unlock_cookie_max_age_days * 24 * 3600,
        "httponly": True,
        "secure": s.app_env == "production",
        "samesite": "lax",
    }


def extract_scores_from_report(data) -> dict:
    """Provider scores for the report email; overall is the rounded mean of non-zero scores."""
    scores = {"overall": 0, "chatgpt": 0, "perplexity": 0, "gemini": 0}
    if not isinstance(data, dict) or not isinstance(data.get("llmProviders"), list):
        return scores
    by_name = {
        p.get("name"): p.get("score") or 0
        for p in data["llmProviders"]
        if isinstance(p, dict)
    }
    scores["chatgpt"] = by_name.get("ChatGPT", 0)
    scores["perplexity"] = by_name.get("Perplexity", 0)
    scores["gemini"] = by_name.get("Gemini", 0)
    positive = [v for v in (scores["chatgpt"], scores["perplexity"], scores["gemini"]) if v > 0]
    if positive:
        scores["overall"] = math.floor(sum(positive) / len(positive) + 0.5)
    return scores


def get_report(db: Session, domain: str) -> PublicReport | None:
    return db.query(PublicReport).filter(PublicReport.domain == normalize_domain(domain)).first()
