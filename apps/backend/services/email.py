"""Transactional email over SMTP, configured from SMTP_* settings."""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 10


def build_message(*, from_email: str, from_name: str, to_email: str, subject: str, html: str, text: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject or "SearchFit"
    msg["From"] = formataddr((from_name, from_email)) if from_name else from_email
    msg["To"] = to_email
    msg.set_content(text or "")
    if html:
        msg.add_alternative(html, subtype="html")
    return msg


def _connect(host: str, port: int, secure: str) -> smtplib.SMTP:
    # secure: "ssl" (implicit TLS, 465), "tls" (STARTTLS) or "none"
    if secure == "ssl":
        return smtplib.SMTP_SSL(host, port, timeout=SMTP_TIMEOUT_SECONDS)
    server = smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT_SECONDS)
    if secure == "tls":
        server.starttls()
    return server


def send_email(*, to_email: str, subject: str, html: str, text: str, settings=None) -> tuple[bool, str | None]:
    """(ok, error). Never raises; error is a short code or the SMTP message."""
    s = settings or get_settings()
    if not s.smtp_host or not s.smtp_port:
        return False, "missing_smtp"
    if not s.smtp_from_email:
        return False, "missing_from"
    if not to_email:
        return False, "missing_recipient"
    msg = build_message(
        from_email=s.smtp_from_email,
        from_name=s.smtp_from_name,
        to_email=to_email,
        subject=subject,
        html=html,
        text=text,
    )
    try:
        server = _connect(s.smtp_host, s.smtp_port, (s.smtp_secure or "tls").lower())
        try:
            if s.smtp_username:
                server.login(s.smtp_username, s.smtp_password or "")
            server.send_message(msg)
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("smtp_send_failed to=%s host=%s err=%s", to_email, s.smtp_host, str(e)[:200])
        return False, str(e)[:200]
    return True, None
