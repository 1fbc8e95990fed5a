"""RQ jobs."""
import logging

logger = logging.getLogger(__name__)


def generate_report_pdf(domain: str, email: str) -> dict | None:
    """Build (or reuse) the report PDF after an unlock."""
    from apps.backend.database import get_session_factory
    from apps.backend.services.report_pdf import ReportPdfError, request_report_pdf

    factory = get_session_factory()
    with factory() as db:
        try:
            result = request_report_pdf(db, domain, email)
        except ReportPdfError as e:
            logger.warning("report_pdf_job_failed domain=%s code=%s", domain, e.code)
            return None
    logger.info("report_pdf_job_done domain=%s cached=%s", domain, bool(result.get("cached")))
    return result


def send_unlock_notifications(unlock: dict, ip_address: str | None, user_agent: str | None) -> dict:
    from apps.backend.database import get_session_factory
    from apps.backend.services.notifications import send_unlock_notifications as _send

    factory = get_session_factory()
    with factory() as db:
        result = _send(db, unlock, ip_address=ip_address, user_agent=user_agent)
    if not result["slack"]["ok"] or not result["email"]["ok"]:
        logger.warning(
            "unlock_notifications_partial domain=%s slack_err=%s email_err=%s",
            unlock.get("domain"),
            result["slack"]["error"],
            result["email"]["error"],
        )
    return result


def run_reddit_scan(brand_id: int) -> dict:
    """Scan one brand. Errors propagate so RQ's Retry gets its second attempt."""
    from apps.backend.database import get_session_factory
    from apps.backend.services.reddit_scanner import run_brand_scan

    factory = get_session_factory()
    with factory() as db:
        try:
            return run_brand_scan(db, brand_id)
        except Exception:
            db.rollback()
            logger.exception("reddit_scan_job_failed brand_id=%s", brand_id)
            raise


def scheduled_reddit_scan() -> dict:
    from apps.backend.services.reddit_schedule import run_scheduled_scan_cycle

    return run_scheduled_scan_cycle()
