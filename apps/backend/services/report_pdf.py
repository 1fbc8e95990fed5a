"""AEO report PDF: render with fpdf2, cache in R2, remember the URL on the report."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fpdf import FPDF
from sqlalchemy.orm import Session

from apps.backend.services.r2_storage import R2UploadError, upload_pdf_to_r2
from apps.backend.services.report_unlock import (
    check_report_unlocked,
    extract_scores_from_report,
    get_report,
    normalize_domain,
)

logger = logging.getLogger(__name__)

BRAND = (37, 99, 235)
DARK_TEXT = (17, 24, 39)
MUTED_TEXT = (107, 114, 128)
LIGHT_BG = (243, 244, 246)

_ASCII_REPLACEMENTS = {
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "–": "-",
    "—": "-",
    "…": "...",
    "•": "*",
    "\u00a0": " ",
}


class ReportPdfError(Exception):
    """Carries the HTTP status the request-pdf endpoint answers with."""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def sanitize_text(text: Any) -> str:
    """Core PDF fonts are latin-1 only."""
    if text is None:
        return ""
    out = str(text)
    for src, dst in _ASCII_REPLACEMENTS.items():
        out = out.replace(src, dst)
    return out.encode("latin-1", "replace").decode("latin-1")


class AEOReportPDF(FPDF):
    def __init__(self, domain: str) -> None:
        super().__init__()
        self.domain = domain
        self.set_margins(left=15, top=18, right=15)
        self.set_auto_page_break(auto=True, margin=20)

    def header(self):
        if self.page_no() > 1:
            self.set_font("Helvetica", "", 9)
            self.set_text_color(*MUTED_TEXT)
            self.cell(0, 8, sanitize_text(f"AI Visibility Report - {self.domain}"), align="L")
            self.set_draw_color(*BRAND)
            self.set_line_width(0.4)
            self.line(15, 20, 195, 20)
            self.ln(12)

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "", 8)
        self.set_text_color(*MUTED_TEXT)
        self.cell(0, 8, f"SearchFit | Page {self.page_no()}/{{nb}}", align="C")

    def section_header(self, title: str):
        self.ln(4)
        self.set_font("Helvetica", "B", 15)
        self.set_text_color(*BRAND)
        self.cell(0, 9, sanitize_text(title), new_x="LMARGIN", new_y="NEXT")
        self.ln(2)

    def paragraph(self, text: str, size: int = 10):
        self.set_font("Helvetica", "", size)
        self.set_text_color(*DARK_TEXT)
        self.multi_cell(0, 5, sanitize_text(text), new_x="LMARGIN", new_y="NEXT")

    def bullet(self, text: str):
        self.set_font("Helvetica", "", 10)
        self.set_text_color(*DARK_TEXT)
        self.set_x(self.l_margin + 4)
        self.multi_cell(0, 5, sanitize_text(f"- {text}"), new_x="LMARGIN", new_y="NEXT")


def _add_cover(pdf: AEOReportPDF, data: dict, scores: dict) -> None:
    pdf.add_page()
    pdf.ln(40)
    pdf.set_font("Helvetica", "B", 28)
    pdf.set_text_color(*BRAND)
    pdf.cell(0, 14, "AI Visibility Report", align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "B", 20)
    pdf.set_text_color(*DARK_TEXT)
    pdf.cell(0, 12, sanitize_text(pdf.domain), align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(10)
    pdf.set_font("Helvetica", "B", 48)
    pdf.set_text_color(*BRAND)
    pdf.cell(0, 24, str(scores["overall"]), align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 11)
    pdf.set_text_color(*MUTED_TEXT)
    pdf.cell(0, 6, "Overall AEO score", align="C", new_x="LMARGIN", new_y="NEXT")
    generated = data.get("generatedAt") or datetime.utcnow().strftime("%Y-%m-%d")
    pdf.ln(20)
    pdf.cell(0, 6, sanitize_text(f"Generated {generated}"), align="C", new_x="LMARGIN", new_y="NEXT")


def _add_providers(pdf: AEOReportPDF, providers: list) -> None:
    pdf.section_header("AI Provider Visibility")
    pdf.set_fill_color(*LIGHT_BG)
    pdf.set_font("Helvetica", "B", 10)
    pdf.set_text_color(*DARK_TEXT)
    for title, width in (("Provider", 70), ("Score", 30), ("Status", 50), ("Trend", 30)):
        pdf.cell(width, 8, title, border=1, fill=True)
    pdf.ln()
    pdf.set_font("Helvetica", "", 10)
    for p in providers:
        if not isinstance(p, dict):
            continue
        pdf.cell(70, 8, sanitize_text(p.get("name")), border=1)
        pdf.cell(30, 8, str(p.get("score", 0)), border=1)
        pdf.cell(50, 8, sanitize_text(p.get("status", "")), border=1)
        pdf.cell(30, 8, sanitize_text(p.get("trend", "")), border=1)
        pdf.ln()


def _add_summary(pdf: AEOReportPDF, summary: dict) -> None:
    pdf.section_header("Analysis Summary")
    for heading, key in (("Strengths", "strengths"), ("Opportunities", "opportunities")):
        entries = summary.get(key) or []
        if not entries:
            continue
        pdf.set_font("Helvetica", "B", 11)
        pdf.set_text_color(*DARK_TEXT)
        pdf.cell(0, 7, heading, new_x="LMARGIN", new_y="NEXT")
        for entry in entries:
            if isinstance(entry, dict):
                pdf.bullet(f"{entry.get('title', '')}: {entry.get('description', '')}")
    trajectory = summary.get("marketTrajectory")
    if isinstance(trajectory, dict) and trajectory.get("description"):
        pdf.ln(2)
        pdf.paragraph(f"Market trajectory ({trajectory.get('status', 'neutral')}): {trajectory['description']}")


def _add_content_ideas(pdf: AEOReportPDF, ideas: list) -> None:
    pdf.section_header("Content Ideas")
    for idea in ideas:
        if not isinstance(idea, dict):
            continue
        pdf.set_font("Helvetica", "B", 11)
        pdf.set_text_color(*DARK_TEXT)
        label = f"{idea.get('title', '')} [{idea.get('category', '')}, {idea.get('priority', '')}]"
        pdf.multi_cell(0, 6, sanitize_text(label), new_x="LMARGIN", new_y="NEXT")
        if idea.get("description"):
            pdf.paragraph(idea["description"])
        pdf.ln(1)


def build_report_pdf(domain: str, data: dict | None) -> bytes:
    data = data if isinstance(data, dict) else {}
    scores = extract_scores_from_report(data)
    pdf = AEOReportPDF(domain)
    pdf.alias_nb_pages()
    _add_cover(pdf, data, scores)
    pdf.add_page()
    _add_providers(pdf, data.get("llmProviders") or [])
    if isinstance(data.get("analysisSummary"), dict):
        _add_summary(pdf, data["analysisSummary"])
    themes = data.get("narrativeThemes") or []
    if themes:
        pdf.section_header("Narrative Themes")
        for theme in themes:
            pdf.bullet(str(theme))
    ideas = data.get("contentIdeas") or []
    if ideas:
        _add_content_ideas(pdf, ideas)
    return bytes(pdf.output())


def request_report_pdf(db: Session, domain: str, email: str | None) -> dict:
    """Return the cached PDF URL, or render, upload and store it. Raises ReportPdfError."""
    if not email:
        raise ReportPdfError(401, "email_required", "Email is required. Please unlock the report first.")
    normalized = normalize_domain(domain)
    if not check_report_unlocked(db, normalized, email):
        raise ReportPdfError(
            403,
            "report_locked",
            "Report not unlocked. Please provide your details to unlock the report first.",
        )
    report = get_report(db, normalized)
    if not report:
        raise ReportPdfError(404, "report_not_found", "Report not found. Please generate a report first.")
    if report.status != "COMPLETED":
        raise ReportPdfError(
            400,
            "report_not_ready",
            "Report is not ready yet. Please wait for report generation to complete.",
        )
    if report.pdf_url:
        logger.info("report_pdf_cache_hit domain=%s", normalized)
        return {
            "status": "ready",
            "pdf_url": report.pdf_url,
            "cached": True,
            "generated_at": report.pdf_generated_at.isoformat() if report.pdf_generated_at else None,
        }

    logger.info("report_pdf_generate domain=%s report_id=%s", normalized, report.id)
    try:
        pdf_bytes = build_report_pdf(normalized, report.data)
        url = upload_pdf_to_r2(report.id, normalized, pdf_bytes)
    except R2UploadError as e:
        raise ReportPdfError(500, "pdf_generation_failed", str(e)) from e
    now = datetime.utcnow()
    report.pdf_url = url
    report.pdf_generated_at = now
    report.updated_at = now
    db.commit()
    logger.info("report_pdf_ready domain=%s bytes=%s", normalized, len(pdf_bytes))
    return {"status": "ready", "pdf_url": url, "cached": False, "generated_at": now.isoformat()}
