"""Reddit agent endpoints for brand owners."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from apps.backend.main import app
from apps.backend.deps import get_db, get_queue
from apps.backend.database import Base, get_test_engine
from apps.backend.auth import create_user_token
from apps.backend.models.brand import Brand
from apps.backend.models.reddit import RedditOpportunity


class FakeQueue:
    def __init__(self):
        self.jobs = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append((func, args, kwargs))
        return type("J", (), {"id": "job-1"})()


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
def queue():
    return FakeQueue()


@pytest.fixture
def client(test_db_session, queue):
    def _get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_queue] = lambda: queue
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_queue, None)


@pytest.fixture
def brand(test_db_session):
    b = Brand(owner_user_id="user-1", brand_name="Acme")
    test_db_session.add(b)
    test_db_session.commit()
    test_db_session.refresh(b)
    return b


def _auth(user="user-1"):
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.mark.timeout(10)
def test_trigger_scan_enqueues_job(client, brand, queue):
    r = client.post(f"/v1/reddit/brands/{brand.id}/scan", headers=_auth())
    assert r.status_code == 200
    assert r.json() == {"queued": True, "job_id": "job-1"}
    assert queue.jobs[0][0] == "apps.worker.jobs.run_reddit_scan"
    assert queue.jobs[0][1] == (brand.id,)


@pytest.mark.timeout(10)
def test_trigger_scan_for_foreign_brand_is_404(client, brand, queue):
    r = client.post(f"/v1/reddit/brands/{brand.id}/scan", headers=_auth("user-2"))
    assert r.status_code == 404
    assert queue.jobs == []


@pytest.mark.timeout(10)
def test_list_opportunities_sorted_and_filtered(client, brand, test_db_session):
    for pid, score, status in (("t3_a", 60, "pending"), ("t3_b", 90, "pending"), ("t3_c", 99, "dismissed")):
        test_db_session.add(RedditOpportunity(
            brand_id=brand.id, post_id=pid, post_title=pid, post_url="u", subreddit="SEO",
            relevance_score=score, status=status,
        ))
    test_db_session.commit()

    r = client.get(f"/v1/reddit/brands/{brand.id}/opportunities", params={"status": "pending"}, headers=_auth())
    assert r.status_code == 200
    assert [i["post_id"] for i in r.json()["items"]] == ["t3_b", "t3_a"]

    assert client.get(
        f"/v1/reddit/brands/{brand.id}/opportunities", params={"status": "bogus"}, headers=_auth()
    ).status_code == 422
    assert client.get(f"/v1/reddit/brands/{brand.id}/opportunities").status_code == 401
