"""OAuth integrations: connect redirect, callback outcomes, token refresh."""
import time
from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from apps.backend.main import app
from apps.backend.deps import get_db
from apps.backend.database import Base, get_test_engine
from apps.backend.auth import create_user_token
from apps.backend.models.brand import Brand
from apps.backend.models.integration import Integration, IntegrationOAuthToken
from apps.backend.clients import oauth as oauth_client
from apps.backend.services import oauth_integrations
from apps.backend.services.oauth_integrations import (
    OAuthError,
    decode_state,
    encode_state,
    get_valid_access_token,
    handle_callback,
    refresh_integration_token,
    save_integration_tokens,
)
from apps.backend.services.token_crypto import decrypt_token, encrypt_token

ENC_KEY = "x" * 32


def _settings(**overrides):
    values = {
        "public_app_url": "https://app.searchfit.test",
        "token_encryption_key": ENC_KEY,
        "secret_key": "y" * 32,
        "integration_google_client_id": "gid",
        "integration_google_client_secret": "gsecret",
        "oauth_state_max_age_seconds": 600,
    }
    values.update(overrides)
    return type("S", (), values)()


@pytest.fixture
def stub_settings(monkeypatch):
    s = _settings()
    monkeypatch.setattr(oauth_integrations, "get_settings", lambda: s)
    return s


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
def brand(test_db_session):
    b = Brand(owner_user_id="user-1", brand_name="Acme")
    test_db_session.add(b)
    test_db_session.commit()
    test_db_session.refresh(b)
    return b


@pytest.fixture
def client(test_db_session):
    def _get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


def _callback(db, state, stored=None, user="user-1", **kw):
    return handle_callback(
        db,
        "google",
        code=kw.get("code", "auth-code"),
        state=state,
        error=kw.get("error"),
        stored_state=state if stored is None else stored,
        current_user_id=user,
    )


@pytest.mark.timeout(10)
def test_state_round_trip_and_garbage():
    state = encode_state(5, "user-1", timestamp_ms=1700000000000)
    assert "=" not in state
    assert decode_state(state) == {"brandId": 5, "userId": "user-1", "timestamp": 1700000000000}
    with pytest.raises(OAuthError) as exc:
        decode_state("%%%not-base64")
    assert exc.value.code == "invalid_oauth_state"


@pytest.mark.timeout(10)
def test_connect_redirects_anonymous_to_sign_in(client):
    r = client.get("/api/integrations/oauth/google/connect", params={"brandId": 1}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"].endswith("/sign-in")


@pytest.mark.timeout(10)
def test_connect_sets_state_cookie_and_redirects_to_provider(client, brand, stub_settings):
    token = create_user_token("user-1")
    r = client.get(
        "/api/integrations/oauth/google/connect",
        params={"brandId": brand.id},
        headers={"Authorization": f"Bearer {token}"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    location = urlparse(r.headers["location"])
    assert location.netloc == "accounts.google.com"
    query = parse_qs(location.query)
    assert query["client_id"] == ["gid"]
    assert query["access_type"] == ["offline"]
    assert query["redirect_uri"] == ["https://app.searchfit.test/api/integrations/oauth/google/callback"]
    assert "oauth_state_google=" in r.headers.get("set-cookie", "")
    assert decode_state(query["state"][0])["brandId"] == brand.id


@pytest.mark.timeout(10)
def test_connect_rejects_foreign_brand(client, brand, stub_settings):
    token = create_user_token("someone-else")
    r = client.get(
        "/api/integrations/oauth/google/connect",
        params={"brandId": brand.id},
        headers={"Authorization": f"Bearer {token}"},
        follow_redirects=False,
    )
    assert r.status_code == 404


@pytest.mark.timeout(10)
def test_callback_error_redirects(test_db_session, brand, stub_settings):
    base = "https://app.searchfit.test/dashboard?error="
    state = encode_state(brand.id, "user-1")
    assert _callback(test_db_session, state, error="access_denied") == base + "google_oauth_access_denied"
    assert _callback(test_db_session, None) == base + "invalid_oauth_callback"
    assert _callback(test_db_session, state, stored="other") == base + "oauth_state_expired"
    assert _callback(test_db_session, state, user="user-2") == base + "oauth_user_mismatch"
    assert _callback(test_db_session, state, user=None) == base + "oauth_user_mismatch"
    old = encode_state(brand.id, "user-1", timestamp_ms=int((time.time() - 3600) * 1000))
    assert _callback(test_db_session, old) == base + "oauth_state_expired"
    assert _callback(test_db_session, "bm90LWpzb24") == base + "invalid_oauth_state"
    assert handle_callback(
        test_db_session, "dropbox", code="c", state=state, error=None, stored_state=state, current_user_id="user-1"
    ) == base + "unsupported_provider"


@pytest.mark.timeout(10)
def test_callback_exchange_failure(monkeypatch, test_db_session, brand, stub_settings):
    monkeypatch.setattr(oauth_client, "exchange_code", lambda *a: (None, 400, "invalid_grant"))
    state = encode_state(brand.id, "user-1")
    assert _callback(test_db_session, state).endswith("error=oauth_token_exchange_failed")


@pytest.mark.timeout(10)
def test_callback_not_configured(monkeypatch, test_db_session, brand):
    s = _settings(integration_google_client_secret="")
    monkeypatch.setattr(oauth_integrations, "get_settings", lambda: s)
    state = encode_state(brand.id, "user-1")
    assert _callback(test_db_session, state).endswith("error=oauth_not_configured")


@pytest.mark.timeout(10)
def test_callback_success_stores_encrypted_tokens(monkeypatch, test_db_session, brand, stub_settings):
    tokens = {
        "access_token": "at-1",
        "refresh_token": "rt-1",
        "expires_in": 3600,
        "token_type": "Bearer",
        "scope": "openid email",
    }
    monkeypatch.setattr(oauth_client, "exchange_code", lambda *a: (tokens, 200, ""))
    monkeypatch.setattr(oauth_client, "get_google_user_info", lambda at: {"email": "owner@acme.test"})
    state = encode_state(brand.id, "user-1")

    target = _callback(test_db_session, state)
    assert target == (
        f"https://app.searchfit.test/dashboard/brands/{brand.id}/settings"
        "?tab=integrations&integration=google&status=connected"
    )
    integration = test_db_session.query(Integration).one()
    assert integration.status == "active"
    assert integration.config == {"email": "owner@acme.test"}
    token = test_db_session.query(IntegrationOAuthToken).one()
    assert token.access_token != "at-1"
    assert decrypt_token(token.access_token, ENC_KEY) == "at-1"
    assert decrypt_token(token.refresh_token, ENC_KEY) == "rt-1"
    assert "access_token" not in token.raw_response
    assert token.raw_response["scope"] == "openid email"


@pytest.mark.timeout(10)
def test_reconnect_replaces_tokens(test_db_session, brand, stub_settings):
    save_integration_tokens(test_db_session, brand.id, "google", {"access_token": "a1", "refresh_token": "r1"})
    integration = test_db_session.query(Integration).one()
    integration.status = "error"
    test_db_session.commit()
    save_integration_tokens(test_db_session, brand.id, "google", {"access_token": "a2"})
    assert test_db_session.query(Integration).count() == 1
    assert test_db_session.query(Integration).one().status == "active"
    tokens = test_db_session.query(IntegrationOAuthToken).all()
    assert len(tokens) == 1
    assert decrypt_token(tokens[0].access_token, ENC_KEY) == "a2"


def _stored_integration(db, brand, expires_at, refresh="rt-1"):
    integration = Integration(brand_id=brand.id, name="Google", type="google", auth_type="oauth", status="active", config={})
    db.add(integration)
    db.flush()
    db.add(IntegrationOAuthToken(
        integration_id=integration.id,
        provider="google",
        access_token=encrypt_token("at-old", ENC_KEY),
        refresh_token=encrypt_token(refresh, ENC_KEY) if refresh else None,
        expires_at=expires_at,
    ))
    db.commit()
    return integration


@pytest.mark.timeout(10)
def test_valid_token_is_returned_without_refresh(monkeypatch, test_db_session, brand, stub_settings):
    integration = _stored_integration(test_db_session, brand, datetime.utcnow() + timedelta(hours=1))

    def boom(*a):
        raise AssertionError("refresh must not be called")

    monkeypatch.setattr(oauth_client, "refresh_access_token", boom)
    assert get_valid_access_token(test_db_session, integration.id) == "at-old"


@pytest.mark.timeout(10)
def test_token_near_expiry_is_refreshed(monkeypatch, test_db_session, brand, stub_settings):
    integration = _stored_integration(test_db_session, brand, datetime.utcnow() + timedelta(minutes=2))
    calls = []

    def fake_refresh(token_url, client_id, client_secret, refresh_token):
        calls.append(refresh_token)
        return {"access_token": "at-new", "expires_in": 3600}, 200, ""

    monkeypatch.setattr(oauth_client, "refresh_access_token", fake_refresh)
    assert get_valid_access_token(test_db_session, integration.id) == "at-new"
    assert calls == ["rt-1"]
    token = test_db_session.query(IntegrationOAuthToken).one()
    assert decrypt_token(token.access_token, ENC_KEY) == "at-new"
    assert decrypt_token(token.refresh_token, ENC_KEY) == "rt-1"


@pytest.mark.timeout(10)
def test_refresh_failure_marks_integration_error(monkeypatch, test_db_session, brand, stub_settings):
    integration = _stored_integration(test_db_session, brand, datetime.utcnow() - timedelta(minutes=1))
    monkeypatch.setattr(oauth_client, "refresh_access_token", lambda *a: (None, 400, "invalid_grant"))
    with pytest.raises(OAuthError) as exc:
        refresh_integration_token(test_db_session, integration.id)
    assert exc.value.code == "token_refresh_failed"
    test_db_session.refresh(integration)
    assert integration.status == "error"
    assert integration.last_error == "Token refresh failed"
    assert get_valid_access_token(test_db_session, integration.id) is None


@pytest.mark.timeout(10)
def test_refresh_error_codes(test_db_session, brand, stub_settings):
    with pytest.raises(OAuthError) as exc:
        refresh_integration_token(test_db_session, 999)
    assert (exc.value.code, exc.value.status_code) == ("integration_not_found", 404)

    integration = _stored_integration(test_db_session, brand, datetime.utcnow(), refresh=None)
    with pytest.raises(OAuthError) as exc:
        refresh_integration_token(test_db_session, integration.id)
    assert exc.value.code == "no_refresh_token"


@pytest.mark.timeout(10)
def test_refresh_endpoint_checks_ownership(monkeypatch, client, test_db_session, brand, stub_settings):
    integration = _stored_integration(test_db_session, brand, datetime.utcnow())
    monkeypatch.setattr(
        oauth_client, "refresh_access_token", lambda *a: ({"access_token": "at-new", "expires_in": 60}, 200, "")
    )
    url = "/api/integrations/oauth/google/refresh"
    assert client.post(url, json={"integrationId": integration.id}).status_code == 401

    other = {"Authorization": f"Bearer {create_user_token('user-2')}"}
    assert client.post(url, json={"integrationId": integration.id}, headers=other).status_code == 404

    owner = {"Authorization": f"Bearer {create_user_token('user-1')}"}
    r = client.post(url, json={"integrationId": integration.id}, headers=owner)
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["expiresAt"]


@pytest.mark.timeout(10)
def test_short_encryption_key_falls_back_to_secret_key():
    from apps.backend.services.token_crypto import resolve_encryption_key

    assert resolve_encryption_key(_settings()) == ENC_KEY
    assert resolve_encryption_key(_settings(token_encryption_key="short")) == "y" * 32
    cipher = encrypt_token("at-1", ENC_KEY)
    assert decrypt_token(cipher, "z" * 32) is None
