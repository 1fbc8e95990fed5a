"""Public AEO report: unlock status, unlock form, gated PDF download."""
from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from apps.backend.deps import get_db, get_queue
from apps.backend.services.report_pdf import ReportPdfError, request_report_pdf
from apps.backend.services.report_unlock import (
    UnlockReportError,
    UnlockReportInput,
    client_ip,
    get_unlock_status,
    normalize_domain,
    unlock_cookie_kwargs,
    unlock_cookie_name,
    unlock_cookie_value,
    unlock_report,
)
from apps.backend.services.unlock_gate import ReportUnlockGate, UnlockEntry

logger = logging.getLogger(__name__)

router = APIRouter()


class UnlockRequest(BaseModel):
    email: str
    first_name: str
    last_name: str
    company_name: str
    entry: UnlockEntry = UnlockEntry.DOWNLOAD


class PdfRequest(BaseModel):
    email: str | None = None


def _pdf_or_http(db: Session, domain: str, email: str | None) -> dict:
    try:
        return request_report_pdf(db, domain, email)
    except ReportPdfError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


def _schedule_pdf(queue):
    def schedule(delay: timedelta, domain: str, email: str):
        try:
            return queue.enqueue_in(delay, "apps.worker.jobs.generate_report_pdf", domain, email)
        except Exception:
            logger.exception("report_pdf_schedule_failed domain=%s", domain)
            return None
    return schedule


@router.get("/{domain}/unlock-status")
def unlock_status(domain: str, request: Request, db: Session = Depends(get_db)):
    return get_unlock_status(db, domain, request.cookies.get(unlock_cookie_name(domain)))


@router.post("/{domain}/unlock")
def unlock(
    domain: str,
    payload: UnlockRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    queue=Depends(get_queue),
):
    """Store the lead, set the unlock cookie, notify and schedule the PDF."""
    try:
        data = UnlockReportInput(
            domain=domain,
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            company_name=payload.company_name,
        )
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        msg = str(first.get("msg") or "Invalid input").removeprefix("Value error, ")
        raise HTTPException(status_code=422, detail=msg)

    ip_address = client_ip(request.headers)
    user_agent = request.headers.get("user-agent") or "unknown"
    try:
        result = unlock_report(db, data, ip_address=ip_address, user_agent=user_agent)
    except UnlockReportError as e:
        raise HTTPException(status_code=500, detail=str(e))

    cookie = unlock_cookie_kwargs(result["domain"], result["email"], result["first_name"], result["last_name"])
    response.set_cookie(**cookie)
    try:
        queue.enqueue(
            "apps.worker.jobs.send_unlock_notifications",
            result,
            ip_address,
            user_agent,
        )
    except Exception:
        logger.exception("unlock_notifications_enqueue_failed domain=%s", result["domain"])

    # The browser has not seen the cookie yet; check against the value just issued.
    issued = unlock_cookie_value(result["email"], result["first_name"], result["last_name"])
    gate = ReportUnlockGate(
        result["domain"],
        check_status=lambda d: get_unlock_status(db, d, issued),
        request_pdf=lambda d, e: request_report_pdf(db, d, e),
        schedule=_schedule_pdf(queue),
    )
    gate_result = gate.on_unlock_success(payload.entry)
    return {
        "success": True,
        "already_unlocked": result["already_unlocked"],
        "email": result["email"],
        "first_name": result["first_name"],
        "last_name": result["last_name"],
        **gate_result,
    }


@router.post("/{domain}/download")
def download(domain: str, request: Request, db: Session = Depends(get_db)):
    """Download button: asks for unlock while locked, otherwise returns the PDF URL."""
    normalized = normalize_domain(domain)
    cookie = request.cookies.get(unlock_cookie_name(normalized))
    gate = ReportUnlockGate(
        normalized,
        check_status=lambda d: get_unlock_status(db, d, cookie),
        request_pdf=lambda d, e: _pdf_or_http(db, d, e),
        schedule=lambda *_: None,
    )
    gate.load()
    return gate.request_download()


@router.post("/{domain}/request-pdf")
def request_pdf(domain: str, payload: PdfRequest, db: Session = Depends(get_db)):
    return _pdf_or_http(db, domain, payload.email)
