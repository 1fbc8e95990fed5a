"""Lead notifications for report unlocks: Slack webhook and report-link email."""
from __future__ import annotations

import logging
from datetime import datetime
from urllib.parse import urlparse

import httpx

from apps.backend.config import get_settings
from apps.backend.services.email import send_email
from apps.backend.services.report_unlock import extract_scores_from_report, get_report

logger = logging.getLogger(__name__)

SLACK_USERNAME = "SearchFit Bot"
SLACK_ICON = ":robot_face:"
COLOR_SUCCESS = "#2ecc71"
COLOR_INFO = "#3498db"


def _environment() -> tuple[str, str]:
    s = get_settings()
    host = urlparse(s.public_client_url).netloc or s.public_client_url
    if s.app_env == "production":
        return "Production", host
    if "staging" in host:
        return "Staging", host
    return "Development", host


def build_unlock_slack_message(
    *,
    domain: str,
    domain_url: str,
    email: str,
    first_name: str,
    last_name: str,
    company_name: str,
    report_url: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    already_unlocked: bool = False,
) -> dict:
    env_name, env_host = _environment()
    status = "Returning User" if already_unlocked else "New Lead"
    fields = [
        {"title": "Environment", "value": f"*{env_name}*\n`{env_host}`", "short": True},
        {"title": "Report Domain", "value": f"*{domain}*", "short": True},
        {"title": "Contact", "value": f"*{first_name} {last_name}*\n{email}", "short": True},
        {"title": "Company", "value": f"*{company_name}*", "short": True},
        {"title": "Status", "value": status, "short": True},
    ]
    if ip_address:
        fields.append({"title": "IP Address", "value": ip_address, "short": True})
    if user_agent:
        fields.append({"title": "User Agent", "value": user_agent[:150], "short": False})
    return {
        "text": f"*{env_name.upper()}* | Report Unlocked",
        "username": SLACK_USERNAME,
        "icon_emoji": SLACK_ICON,
        "attachments": [
            {
                "color": COLOR_INFO if already_unlocked else COLOR_SUCCESS,
                "title": f"{status}: {domain_url}",
                "title_link": report_url,
                "fields": fields,
                "footer": "SearchFit",
                "ts": int(datetime.utcnow().timestamp()),
            }
        ],
    }


def send_slack_message(message: dict) -> tuple[bool, str | None]:
    url = get_settings().slack_webhook_url
    if not url:
        return False, "missing_webhook"
    try:
        with httpx.Client(timeout=10) as c:
            r = c.post(url, json=message)
    except httpx.HTTPError as e:
        logger.warning("slack_send_failed err=%s", str(e)[:200])
        return False, str(e)[:200]
    if r.status_code >= 400:
        logger.warning("slack_send_failed status=%s", r.status_code)
        return False, f"http_{r.status_code}"
    return True, None


def report_link_email(
    *,
    first_name: str,
    domain: str,
    report_url: str,
    waitlist_url: str,
    scores: dict,
    report_date: str,
) -> tuple[str, str, str]:
    """(subject, html, text) for the report-link email."""
    subject = f"Your AI visibility report for {domain}"
    lines = [
        f"Hi {first_name},",
        "",
        f"Your AEO report for {domain} (generated {report_date}) is ready:",
        report_url,
        "",
        f"Overall score: {scores['overall']}",
        f"ChatGPT: {scores['chatgpt']}",
        f"Perplexity: {scores['perplexity']}",
        f"Gemini: {scores['gemini']}",
        "",
        f"Want to improve these numbers? Join the SearchFit waitlist: {waitlist_url}",
    ]
    text = "\n".join(lines)
    html = (
        f"<p>Hi {first_name},</p>"
        f"<p>Your AEO report for <strong>{domain}</strong> (generated {report_date}) is ready.</p>"
        f'<p><a href="{report_url}">Open your report</a></p>'
        "<table>"
        f"<tr><td>Overall score</td><td><strong>{scores['overall']}</strong></td></tr>"
        f"<tr><td>ChatGPT</td><td>{scores['chatgpt']}</td></tr>"
        f"<tr><td>Perplexity</td><td>{scores['perplexity']}</td></tr>"
        f"<tr><td>Gemini</td><td>{scores['gemini']}</td></tr>"
        "</table>"
        f'<p>Want to improve these numbers? <a href="{waitlist_url}">Join the SearchFit waitlist</a>.</p>'
    )
    return subject, html, text


def send_report_link_email(to_email: str, subject: str, html: str, text: str) -> tuple[bool, str | None]:
    return send_email(to_email=to_email, subject=subject, html=html, text=text, settings=get_settings())


def send_unlock_notifications(
    db,
    unlock: dict,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    """Slack lead alert and report-link email for one unlock. Failures are logged, not raised."""
    s = get_settings()
    base = s.public_client_url.rstrip("/")
    domain = unlock["domain"]
    report_url = f"{base}/report/{domain}"
    slack_ok, slack_err = send_slack_message(
        build_unlock_slack_message(
            domain=domain,
            domain_url=unlock.get("original_domain") or domain,
            email=unlock["email"],
            first_name=unlock["first_name"],
            last_name=unlock["last_name"],
            company_name=unlock["company_name"],
            report_url=report_url,
            ip_address=ip_address,
            user_agent=user_agent,
            already_unlocked=bool(unlock.get("already_unlocked")),
        )
    )
    report = get_report(db, domain)
    created = report.created_at if report and report.created_at else datetime.utcnow()
    subject, html, text = report_link_email(
        first_name=unlock["first_name"],
        domain=domain,
        report_url=report_url,
        waitlist_url=f"{base}/waitlist",
        scores=extract_scores_from_report(report.data if report else None),
        report_date=f"{created:%B} {created.day}, {created.year}",
    )
    email_ok, email_err = send_report_link_email(unlock["email"], subject, html, text)
    if not email_ok:
        logger.warning("report_email_failed domain=%s err=%s", domain, email_err)
    return {
        "slack": {"ok": slack_ok, "error": slack_err},
        "email": {"ok": email_ok, "error": email_err},
    }
