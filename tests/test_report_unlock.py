"""Report unlock service and the download gate."""
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from apps.backend.database import Base, get_test_engine
from apps.backend.models.report import ReportUnlockRequest
from apps.backend.services import unlock_gate
from apps.backend.services.report_unlock import (
    UnlockReportInput,
    client_ip,
    extract_scores_from_report,
    get_unlock_status,
    normalize_domain,
    parse_unlock_cookie,
    unlock_cookie_kwargs,
    unlock_cookie_name,
    unlock_cookie_value,
    unlock_report,
)
from apps.backend.services.unlock_gate import ReportUnlockGate, UnlockEntry


@pytest.fixture
def test_db_session():
    engine = get_test_engine()
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _input(**overrides):
    data = {
        "domain": "https://www.Example.com/",
        "email": "Jane@Example.com",
        "first_name": "Jane",
        "last_name": "Doe",
        "company_name": "Acme",
    }
    data.update(overrides)
    return UnlockReportInput(**data)


@pytest.mark.timeout(10)
def test_normalize_domain():
    assert normalize_domain("https://www.Example.com/") == "example.com"
    assert normalize_domain("http://shop.example.com") == "shop.example.com"
    assert unlock_cookie_name("www.example.com") == "report_unlocked_example.com"


@pytest.mark.timeout(10)
def test_input_requires_fields():
    with pytest.raises(ValueError) as exc:
        _input(first_name="  ")
    assert "First name is required" in str(exc.value)
    with pytest.raises(ValueError):
        _input(email="not-an-email")


@pytest.mark.timeout(10)
def test_unlock_creates_then_refreshes(test_db_session):
    first = unlock_report(test_db_session, _input(), ip_address="1.2.3.4", user_agent="pytest")
    assert first["success"] is True
    assert first["already_unlocked"] is False
    assert first["domain"] == "example.com"
    assert first["email"] == "jane@example.com"

    second = unlock_report(test_db_session, _input(company_name="Acme Inc"))
    assert second["already_unlocked"] is True
    rows = test_db_session.query(ReportUnlockRequest).all()
    assert len(rows) == 1
    assert rows[0].company_name == "Acme Inc"
    assert rows[0].ip_address == "1.2.3.4"


@pytest.mark.timeout(10)
def test_unlock_status_from_cookie(test_db_session):
    unlock_report(test_db_session, _input())
    cookie = unlock_cookie_value("jane@example.com", "Jane", "Doe")
    assert get_unlock_status(test_db_session, "example.com", cookie) == {"unlocked": True, "email": "jane@example.com"}
    assert get_unlock_status(test_db_session, "other.com", cookie) == {"unlocked": False}
    assert get_unlock_status(test_db_session, "example.com", None) == {"unlocked": False}
    assert get_unlock_status(test_db_session, "example.com", "{broken") == {"unlocked": False}
    assert parse_unlock_cookie('{"firstName": "x"}') is None


@pytest.mark.timeout(10)
def test_cookie_kwargs_last_thirty_days():
    kw = unlock_cookie_kwargs("example.com", "jane@example.com", "Jane", "Doe")
    assert kw["key"] == "report_unlocked_example.com"
    assert kw["max_age"] == 30 * 24 * 3600
    assert kw["httponly"] is True
    assert kw["samesite"] == "lax"


@pytest.mark.timeout(10)
def test_client_ip_prefers_forwarded_for():
    assert client_ip({"x-forwarded-for": "9.9.9.9, 10.0.0.1", "x-real-ip": "8.8.8.8"}) == "9.9.9.9"
    assert client_ip({"x-real-ip": "8.8.8.8"}) == "8.8.8.8"
    assert client_ip({}) == "unknown"


@pytest.mark.timeout(10)
def test_extract_scores_rounds_mean_of_positive_scores():
    data = {"llmProviders": [
        {"name": "ChatGPT", "score": 70},
        {"name": "Perplexity", "score": 0},
        {"name": "Gemini", "score": 75},
    ]}
    assert extract_scores_from_report(data) == {"overall": 73, "chatgpt": 70, "perplexity": 0, "gemini": 75}
    assert extract_scores_from_report(None)["overall"] == 0


def _gate(status, pdf_calls, scheduled, domain="example.com"):
    def check_status(d):
        if isinstance(status, Exception):
            raise status
        return status

    def request_pdf(d, e):
        pdf_calls.append((d, e))
        return {"status": "ready", "pdf_url": "https://cdn/x.pdf", "cached": True}

    return ReportUnlockGate(
        domain,
        check_status=check_status,
        request_pdf=request_pdf,
        schedule=lambda delay, d, e: scheduled.append((delay, d, e)),
    )


@pytest.mark.timeout(10)
def test_locked_gate_asks_for_unlock():
    pdf_calls, scheduled = [], []
    gate = _gate({"unlocked": False}, pdf_calls, scheduled)
    assert gate.load() is False
    assert gate.request_download() == {"action": "unlock_required"}
    assert gate.unlock_requested is True
    assert pdf_calls == []


@pytest.mark.timeout(10)
def test_status_failure_keeps_gate_locked():
    gate = _gate(RuntimeError("db down"), [], [])
    assert gate.load() is False
    assert gate.request_download()["action"] == "unlock_required"


@pytest.mark.timeout(10)
def test_unlocked_gate_downloads_directly():
    pdf_calls = []
    gate = _gate({"unlocked": True, "email": "jane@example.com"}, pdf_calls, [])
    gate.load()
    result = gate.request_download()
    assert result["action"] == "download"
    assert result["pdf_url"] == "https://cdn/x.pdf"
    assert pdf_calls == [("example.com", "jane@example.com")]


@pytest.mark.timeout(10)
def test_unlock_success_schedules_pdf_with_entry_delay(monkeypatch):
    settings = type("S", (), {"unlock_download_delay_ms": 300, "unlock_overlay_delay_ms": 500})()
    monkeypatch.setattr(unlock_gate, "get_settings", lambda: settings)
    scheduled = []
    gate = _gate({"unlocked": True, "email": "jane@example.com"}, [], scheduled)

    out = gate.on_unlock_success(UnlockEntry.OVERLAY)
    assert out == {"unlocked": True, "email": "jane@example.com", "pdf_scheduled_in_ms": 500}
    assert scheduled == [(timedelta(milliseconds=500), "example.com", "jane@example.com")]

    gate.on_unlock_success(UnlockEntry.DOWNLOAD)
    assert scheduled[-1][0] == timedelta(milliseconds=300)


@pytest.mark.timeout(10)
def test_unlock_success_without_status_schedules_nothing():
    scheduled = []
    gate = _gate({"unlocked": False}, [], scheduled)
    assert gate.on_unlock_success() == {"unlocked": False}
    assert scheduled == []


@pytest.mark.timeout(10)
def test_unlocked_status_without_email_still_downloads():
    pdf_calls, scheduled = [], []
    gate = _gate({"unlocked": True}, pdf_calls, scheduled)
    assert gate.load() is True
    assert gate.email is None
    assert gate.request_download()["action"] == "download"
    assert pdf_calls == [("example.com", None)]
    assert gate.on_unlock_success() == {"unlocked": False}
    assert scheduled == []
