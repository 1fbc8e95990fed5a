"""Download gate for a public report: locked until the visitor leaves their details."""
from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Callable

from apps.backend.config import get_settings

logger = logging.getLogger(__name__)


class UnlockEntry(str, Enum):
    """Where the unlock form was submitted from."""

    DOWNLOAD = "download"  # modal opened by the download button
    OVERLAY = "overlay"  # in-content overlay


class GateAction(str, Enum):
    UNLOCK_REQUIRED = "unlock_required"
    DOWNLOAD = "download"


def unlock_delay(entry: UnlockEntry) -> timedelta:
    s = get_settings()
    ms = s.unlock_download_delay_ms if entry == UnlockEntry.DOWNLOAD else s.unlock_overlay_delay_ms
    return timedelta(milliseconds=ms)


class ReportUnlockGate:
    """
    check_status(domain) -> {"unlocked": bool, "email"?: str}
    request_pdf(domain, email) -> PDF result dict
    schedule(delay, domain, email) runs the PDF flow later (RQ enqueue_in in production).
    """

    def __init__(
        self,
        domain: str,
        *,
        check_status: Callable[[str], dict],
        request_pdf: Callable[[str, str], dict],
        schedule: Callable[[timedelta, str, str], Any],
    ) -> None:
        self.domain = domain
        self._check_status = check_status
        self._request_pdf = request_pdf
        self._schedule = schedule
        self.unlocked = False
        self.email: str | None = None
        self.unlock_requested = False

    def load(self) -> bool:
        """Query unlock status. Any failure keeps the gate locked."""
        try:
            status = self._check_status(self.domain) or {}
        except Exception:
            logger.exception("unlock_status_failed domain=%s", self.domain)
            status = {}
        self.unlocked = bool(status.get("unlocked"))
        self.email = (status.get("email") or None) if self.unlocked else None
        return self.unlocked

    def request_download(self) -> dict:
        if not self.unlocked:
            self.unlock_requested = True
            return {"action": GateAction.UNLOCK_REQUIRED.value}
        result = self._request_pdf(self.domain, self.email)
        return {"action": GateAction.DOWNLOAD.value, **result}

    def on_unlock_success(self, entry: UnlockEntry = UnlockEntry.DOWNLOAD) -> dict:
        """Re-check status after the form succeeded; schedule the PDF when unlocked."""
        if not self.load() or not self.email:
            return {"unlocked": False}
        self.unlock_requested = False
        delay = unlock_delay(entry)
        self._schedule(delay, self.domain, self.email)
        logger.info(
            "report_pdf_scheduled domain=%s entry=%s delay_ms=%s",
            self.domain,
            entry.value,
            int(delay.total_seconds() * 1000),
        )
        return {
            "unlocked": True,
            "email": self.email,
            "pdf_scheduled_in_ms": int(delay.total_seconds() * 1000),
        }
