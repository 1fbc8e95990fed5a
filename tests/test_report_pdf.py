"""Report PDF rendering, R2 caching and the public report endpoints."""
from datetime import timedelta

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from apps.backend.main import app
from apps.backend.deps import get_db, get_queue
from apps.backend.database import Base, get_test_engine
from apps.backend.models.report import PublicReport, ReportUnlockRequest
from apps.backend.services import r2_storage
from apps.backend.services.report_pdf import ReportPdfError, build_report_pdf, request_report_pdf

REPORT_DATA = {
    "generatedAt": "2026-10-01",
    "llmProviders": [
        {"name": "ChatGPT", "score": 80, "status": "Strong", "trend": "up"},
        {"name": "Perplexity", "score": 60, "status": "Fair", "trend": "flat"},
        {"name": "Gemini", "score": 0, "status": "Absent", "trend": "down"},
    ],
    "analysisSummary": {
        "strengths": [{"title": "Docs", "description": "Clear product docs — cited often"}],
        "opportunities": [{"title": "Reviews", "description": "Few third-party reviews"}],
        "marketTrajectory": {"status": "positive", "description": "Growing mentions"},
    },
    "narrativeThemes": ["Developer friendly", "Fast onboarding"],
    "contentIdeas": [{"title": "Comparison page", "category": "content", "priority": "high", "description": "X vs Y"}],
}


class FakeR2:
    def __init__(self, existing=()):
        self.puts = []
        self.existing = set(existing)

    def put_object(self, **kwargs):
        self.puts.append(kwargs)
        self.existing.add(kwargs["Key"])

    def head_object(self, Bucket, Key):
        if Key not in self.existing:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {}


class FailingR2(FakeR2):
    def put_object(self, **kwargs):
        raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")


class FakeQueue:
    def __init__(self):
        self.calls = []

    def enqueue(self, func, *args, **kwargs):
        self.calls.append(("enqueue", func, args))
        return type("J", (), {"id": "job-1"})()

    def enqueue_in(self, delay, func, *args, **kwargs):
        self.calls.append(("enqueue_in", func, (delay,) + args))
        return type("J", (), {"id": "job-2"})()


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


@pytest.fixture
def fake_r2():
    fake = FakeR2()
    r2_storage.set_r2_client(fake)
    try:
        yield fake
    finally:
        r2_storage.set_r2_client(None)


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def client(test_db_session, fake_queue):
    def _get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_queue] = lambda: fake_queue
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_queue, None)


def _report(db, status="COMPLETED", pdf_url=None):
    report = PublicReport(domain="example.com", status=status, data=REPORT_DATA, pdf_url=pdf_url)
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


def _unlocked(db, email="jane@example.com"):
    db.add(ReportUnlockRequest(
        domain="example.com", email=email, first_name="Jane", last_name="Doe",
        company_name="Acme", unlocked=True,
    ))
    db.commit()


@pytest.mark.timeout(10)
def test_build_report_pdf_produces_pdf_bytes():
    data = build_report_pdf("example.com", REPORT_DATA)
    assert data.startswith(b"%PDF")
    assert len(data) > 1000
    assert build_report_pdf("empty.com", None).startswith(b"%PDF")


@pytest.mark.timeout(10)
def test_r2_keys_and_urls(monkeypatch):
    settings = type("S", (), {"r2_pdf_base_path": "report", "r2_cdn_url": "https://cdn.test/", "r2_bucket": "b"})()
    monkeypatch.setattr(r2_storage, "get_settings", lambda: settings)
    assert r2_storage.pdf_key(7, "example.com") == "report/7/example.com-aeo-report.pdf"
    assert r2_storage.generate_pdf_url(7, "example.com") == "https://cdn.test/report/7/example.com-aeo-report.pdf"
    assert r2_storage.generate_og_image_url(7, "example.com") == "https://cdn.test/og-images/7/example.com-og-image.png"


@pytest.mark.timeout(10)
def test_r2_upload_and_exists(fake_r2):
    url = r2_storage.upload_pdf_to_r2(3, "example.com", b"%PDF-1.4")
    assert url.endswith("/report/3/example.com-aeo-report.pdf")
    put = fake_r2.puts[0]
    assert put["ContentType"] == "application/pdf"
    assert put["ContentDisposition"] == "inline"
    assert put["Metadata"]["x-report-id"] == "3"
    assert r2_storage.check_pdf_exists(3, "example.com") is True
    assert r2_storage.check_og_image_exists(3, "example.com") is False


@pytest.mark.timeout(10)
def test_r2_upload_failure_raises():
    r2_storage.set_r2_client(FailingR2())
    try:
        with pytest.raises(r2_storage.R2UploadError):
            r2_storage.upload_og_image_to_r2(1, "example.com", b"png")
    finally:
        r2_storage.set_r2_client(None)


@pytest.mark.timeout(10)
def test_request_pdf_errors(test_db_session):
    with pytest.raises(ReportPdfError) as exc:
        request_report_pdf(test_db_session, "example.com", None)
    assert exc.value.status_code == 401

    with pytest.raises(ReportPdfError) as exc:
        request_report_pdf(test_db_session, "example.com", "jane@example.com")
    assert (exc.value.status_code, exc.value.code) == (403, "report_locked")

    _unlocked(test_db_session)
    with pytest.raises(ReportPdfError) as exc:
        request_report_pdf(test_db_session, "example.com", "jane@example.com")
    assert (exc.value.status_code, exc.value.code) == (404, "report_not_found")

    _report(test_db_session, status="PROCESSING")
    with pytest.raises(ReportPdfError) as exc:
        request_report_pdf(test_db_session, "example.com", "jane@example.com")
    assert (exc.value.status_code, exc.value.code) == (400, "report_not_ready")


@pytest.mark.timeout(10)
def test_request_pdf_generates_once_then_hits_cache(test_db_session, fake_r2):
    _unlocked(test_db_session)
    report = _report(test_db_session)

    first = request_report_pdf(test_db_session, "www.example.com", "Jane@Example.com")
    assert first["status"] == "ready"
    assert first["cached"] is False
    assert len(fake_r2.puts) == 1
    test_db_session.refresh(report)
    assert report.pdf_url == first["pdf_url"]
    assert report.pdf_generated_at is not None

    second = request_report_pdf(test_db_session, "example.com", "jane@example.com")
    assert second["cached"] is True
    assert second["pdf_url"] == first["pdf_url"]
    assert len(fake_r2.puts) == 1


@pytest.mark.timeout(10)
def test_request_pdf_upload_failure_is_500(test_db_session):
    _unlocked(test_db_session)
    _report(test_db_session)
    r2_storage.set_r2_client(FailingR2())
    try:
        with pytest.raises(ReportPdfError) as exc:
            request_report_pdf(test_db_session, "example.com", "jane@example.com")
    finally:
        r2_storage.set_r2_client(None)
    assert (exc.value.status_code, exc.value.code) == (500, "pdf_generation_failed")


@pytest.mark.timeout(10)
def test_unlock_endpoint_sets_cookie_and_schedules_work(client, test_db_session, fake_queue):
    _report(test_db_session, pdf_url="https://cdn.test/report/1/example.com-aeo-report.pdf")
    r = client.post(
        "/v1/public/reports/example.com/unlock",
        json={
            "email": "Jane@Example.com",
            "first_name": "Jane",
            "last_name": "Doe",
            "company_name": "Acme",
            "entry": "overlay",
        },
        headers={"x-forwarded-for": "9.9.9.9"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["unlocked"] is True
    assert body["email"] == "jane@example.com"
    assert body["pdf_scheduled_in_ms"] == 500
    assert "report_unlocked_example.com=" in r.headers.get("set-cookie", "")

    kinds = [(c[0], c[1]) for c in fake_queue.calls]
    assert ("enqueue", "apps.worker.jobs.send_unlock_notifications") in kinds
    assert ("enqueue_in", "apps.worker.jobs.generate_report_pdf") in kinds
    scheduled = next(c for c in fake_queue.calls if c[0] == "enqueue_in")
    assert scheduled[2] == (timedelta(milliseconds=500), "example.com", "jane@example.com")
    notify = next(c for c in fake_queue.calls if c[0] == "enqueue")
    assert notify[2][1] == "9.9.9.9"


@pytest.mark.timeout(10)
def test_unlock_endpoint_validation_message(client):
    r = client.post(
        "/v1/public/reports/example.com/unlock",
        json={"email": "jane@example.com", "first_name": "", "last_name": "Doe", "company_name": "Acme"},
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "First name is required"


@pytest.mark.timeout(10)
def test_download_requires_unlock_then_returns_pdf(client, test_db_session):
    _report(test_db_session, pdf_url="https://cdn.test/report/1/example.com-aeo-report.pdf")
    r = client.post("/v1/public/reports/example.com/download")
    assert r.json() == {"action": "unlock_required"}

    _unlocked(test_db_session)
    cookie = 'report_unlocked_example.com={"email":"jane@example.com","firstName":"Jane","lastName":"Doe"}'
    r = client.post("/v1/public/reports/example.com/download", headers={"Cookie": cookie})
    body = r.json()
    assert body["action"] == "download"
    assert body["cached"] is True
    assert body["pdf_url"].endswith("example.com-aeo-report.pdf")

    status = client.get("/v1/public/reports/example.com/unlock-status", headers={"Cookie": cookie})
    assert status.json() == {"unlocked": True, "email": "jane@example.com"}


@pytest.mark.timeout(10)
def test_request_pdf_endpoint_maps_errors(client, test_db_session):
    r = client.post("/v1/public/reports/example.com/request-pdf", json={})
    assert r.status_code == 401
    r = client.post("/v1/public/reports/example.com/request-pdf", json={"email": "x@example.com"})
    assert r.status_code == 403


class DownQueue(FakeQueue):
    def enqueue_in(self, delay, func, *args, **kwargs):
        raise ConnectionError("redis down")


@pytest.mark.timeout(10)
def test_unlock_keeps_cookie_when_pdf_scheduling_fails(client, test_db_session):
    app.dependency_overrides[get_queue] = lambda: DownQueue()
    r = client.post(
        "/v1/public/reports/example.com/unlock",
        json={"email": "jane@example.com", "first_name": "Jane", "last_name": "Doe", "company_name": "Acme"},
    )
    assert r.status_code == 200
    assert r.json()["unlocked"] is True
    assert "report_unlocked_example.com=" in r.headers.get("set-cookie", "")
    assert test_db_session.query(ReportUnlockRequest).count() == 1
