"""Brand integrations over OAuth: connect URL, callback, encrypted tokens, refresh."""
from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from apps.backend.clients import oauth as oauth_client
from apps.backend.config import get_settings
from apps.backend.models.brand import Brand
from apps.backend.models.integration import Integration, IntegrationOAuthToken
from apps.backend.services.token_crypto import decrypt_token, encrypt_token, resolve_encryption_key

logger = logging.getLogger(__name__)

REFRESH_BUFFER = timedelta(minutes=5)
STATE_COOKIE_PREFIX = "oauth_state_"


@dataclass(frozen=True)
class OAuthProvider:
    auth_url: str
    token_url: str
    scopes: tuple[str, ...]
    client_id_setting: str
    client_secret_setting: str


OAUTH_PROVIDERS: dict[str, OAuthProvider] = {
    "google": OAuthProvider(
        auth_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        scopes=(
            "openid",
            "email",
            "profile",
            "https://www.googleapis.com/auth/webmasters.readonly",
            "https://www.googleapis.com/auth/analytics.readonly",
            "https://www.googleapis.com/auth/drive.readonly",
        ),
        client_id_setting="integration_google_client_id",
        client_secret_setting="integration_google_client_secret",
    ),
}


class OAuthError(Exception):
    def __init__(self, code: str, detail: str = "", status_code: int = 400) -> None:
        super().__init__(detail or code)
        self.code = code
        self.detail = detail or code
        self.status_code = status_code


def _get_enc_key() -> str:
    return resolve_encryption_key(get_settings())


def state_cookie_name(provider: str) -> str:
    return f"{STATE_COOKIE_PREFIX}{provider}"


def callback_url(provider: str) -> str:
    base = get_settings().public_app_url.rstrip("/")
    return f"{base}/api/integrations/oauth/{provider}/callback"


def error_redirect(code: str) -> str:
    base = get_settings().public_app_url.rstrip("/")
    return f"{base}/dashboard?error={code}"


def success_redirect(brand_id: int | str, provider: str) -> str:
    base = get_settings().public_app_url.rstrip("/")
    return f"{base}/dashboard/brands/{brand_id}/settings?tab=integrations&integration={provider}&status=connected"


def encode_state(brand_id: int | str, user_id: str, timestamp_ms: int | None = None) -> str:
    raw = json.dumps({
        "brandId": brand_id,
        "userId": user_id,
        "timestamp": timestamp_ms if timestamp_ms is not None else int(time.time() * 1000),
    })
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


def decode_state(state: str) -> dict:
    try:
        padded = state + "=" * (-len(state) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode()).decode())
    except (binascii.Error, ValueError, UnicodeDecodeError) as e:
        raise OAuthError("invalid_oauth_state") from e
    if not isinstance(data, dict) or "brandId" not in data or "userId" not in data:
        raise OAuthError("invalid_oauth_state")
    return data


def _provider(provider: str) -> OAuthProvider:
    cfg = OAUTH_PROVIDERS.get(provider)
    if not cfg:
        raise OAuthError("unsupported_provider", f"Unsupported OAuth provider: {provider}")
    return cfg


def _credentials(cfg: OAuthProvider) -> tuple[str, str]:
    s = get_settings()
    return getattr(s, cfg.client_id_setting, ""), getattr(s, cfg.client_secret_setting, "")


def build_authorization_url(db: Session, provider: str, brand_id: int, user_id: str) -> tuple[str, str]:
    """Returns (authorization_url, state). State goes into the state cookie."""
    cfg = _provider(provider)
    brand = db.get(Brand, brand_id)
    if not brand or brand.owner_user_id != user_id:
        raise OAuthError("brand_not_found", "Brand not found", status_code=404)
    client_id, _ = _credentials(cfg)
    if not client_id:
        logger.error("oauth_not_configured provider=%s", provider)
        raise OAuthError("oauth_not_configured", "OAuth not configured", status_code=500)
    state = encode_state(brand_id, user_id)
    params = {
        "client_id": client_id,
        "redirect_uri": callback_url(provider),
        "response_type": "code",
        "scope": " ".join(cfg.scopes),
        "state": state,
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{cfg.auth_url}?{urlencode(params)}", state


def _strip_tokens(payload: dict) -> dict:
    return {k: v for k, v in payload.items() if k not in ("access_token", "refresh_token", "id_token")}


def save_integration_tokens(
    db: Session,
    brand_id: int,
    provider: str,
    tokens: dict,
    user_email: str | None = None,
) -> Integration:
    """Create or reactivate the brand integration and replace its tokens."""
    now = datetime.utcnow()
    integration = (
        db.query(Integration)
        .filter(Integration.brand_id == brand_id, Integration.type == provider)
        .first()
    )
    if integration:
        integration.status = "active"
        integration.last_sync_at = now
        integration.last_error = None
        integration.updated_at = now
        db.query(IntegrationOAuthToken).filter(
            IntegrationOAuthToken.integration_id == integration.id
        ).delete(synchronize_session=False)
    else:
        integration = Integration(
            brand_id=brand_id,
            name=provider[:1].upper() + provider[1:],
            type=provider,
            auth_type="oauth",
            status="active",
            config={"email": user_email} if user_email else {},
            last_sync_at=now,
        )
        db.add(integration)
        db.flush()
    enc = _get_enc_key()
    expires_in = int(tokens.get("expires_in") or 3600)
    db.add(
        IntegrationOAuthToken(
            integration_id=integration.id,
            provider=provider,
            access_token=encrypt_token(tokens.get("access_token") or "", enc) or None,
            refresh_token=encrypt_token(tokens.get("refresh_token") or "", enc) or None,
            token_type=tokens.get("token_type"),
            scope=tokens.get("scope"),
            expires_at=now + timedelta(seconds=expires_in),
            raw_response=_strip_tokens(tokens),
        )
    )
    db.commit()
    db.refresh(integration)
    return integration


def handle_callback(
    db: Session,
    provider: str,
    *,
    code: str | None,
    state: str | None,
    error: str | None,
    stored_state: str | None,
    current_user_id: str | None,
) -> str:
    """Process the provider redirect. Returns the dashboard URL to send the user to."""
    if error:
        logger.warning("oauth_provider_error provider=%s error=%s", provider, error)
        return error_redirect(f"{provider}_oauth_{error}")
    if not code or not state:
        return error_redirect("invalid_oauth_callback")
    cfg = OAUTH_PROVIDERS.get(provider)
    if not cfg:
        return error_redirect("unsupported_provider")
    if not stored_state or stored_state != state:
        logger.warning("oauth_state_mismatch provider=%s", provider)
        return error_redirect("oauth_state_expired")
    try:
        data = decode_state(state)
    except OAuthError as e:
        return error_redirect(e.code)
    max_age_ms = get_settings().oauth_state_max_age_seconds * 1000
    ts = data.get("timestamp")
    if isinstance(ts, (int, float)) and time.time() * 1000 - ts > max_age_ms:
        return error_redirect("oauth_state_expired")
    if not current_user_id or str(data["userId"]) != str(current_user_id):
        return error_redirect("oauth_user_mismatch")
    client_id, client_secret = _credentials(cfg)
    if not client_id or not client_secret:
        logger.error("oauth_not_configured provider=%s", provider)
        return error_redirect("oauth_not_configured")

    tokens, status, err = oauth_client.exchange_code(
        cfg.token_url, client_id, client_secret, code, callback_url(provider)
    )
    if not tokens:
        logger.warning("oauth_token_exchange_failed provider=%s status=%s err=%s", provider, status, err)
        return error_redirect("oauth_token_exchange_failed")

    user_email = None
    if provider == "google":
        info = oauth_client.get_google_user_info(tokens["access_token"])
        user_email = (info or {}).get("email")

    brand_id = data["brandId"]
    try:
        brand_id = int(brand_id)
    except (TypeError, ValueError):
        return error_redirect("invalid_oauth_state")
    if not db.get(Brand, brand_id):
        return error_redirect("oauth_integration_create_failed")
    integration = save_integration_tokens(db, brand_id, provider, tokens, user_email)
    logger.info("oauth_connected provider=%s brand_id=%s integration_id=%s", provider, brand_id, integration.id)
    return success_redirect(brand_id, provider)


def _mark_refresh_failed(db: Session, integration: Integration) -> None:
    now = datetime.utcnow()
    integration.status = "error"
    integration.last_error = "Token refresh failed"
    integration.last_error_at = now
    integration.updated_at = now
    db.commit()


def refresh_integration_token(db: Session, integration_id: int) -> dict:
    """Refresh the access token now. Raises OAuthError; marks the integration on failure."""
    integration = db.get(Integration, integration_id)
    if not integration:
        raise OAuthError("integration_not_found", "Integration not found", status_code=404)
    cfg = _provider(integration.type)
    token = (
        db.query(IntegrationOAuthToken)
        .filter(IntegrationOAuthToken.integration_id == integration.id)
        .first()
    )
    if not token:
        raise OAuthError("token_not_found", "OAuth token not found", status_code=404)
    enc = _get_enc_key()
    refresh_plain = decrypt_token(token.refresh_token or "", enc)
    if not refresh_plain:
        raise OAuthError("no_refresh_token", "No refresh token available")
    client_id, client_secret = _credentials(cfg)
    if not client_id or not client_secret:
        raise OAuthError("oauth_not_configured", "OAuth not configured", status_code=500)

    payload, status, err = oauth_client.refresh_access_token(cfg.token_url, client_id, client_secret, refresh_plain)
    if not payload:
        logger.warning("oauth_refresh_failed integration_id=%s status=%s err=%s", integration.id, status, err)
        _mark_refresh_failed(db, integration)
        raise OAuthError("token_refresh_failed", "Token refresh failed")

    now = datetime.utcnow()
    expires_at = now + timedelta(seconds=int(payload.get("expires_in") or 3600))
    token.access_token = encrypt_token(payload["access_token"], enc)
    if payload.get("refresh_token"):
        token.refresh_token = encrypt_token(payload["refresh_token"], enc)
    token.token_type = payload.get("token_type") or token.token_type
    token.scope = payload.get("scope") or token.scope
    token.expires_at = expires_at
    token.updated_at = now
    integration.status = "active"
    integration.last_sync_at = now
    integration.updated_at = now
    db.commit()
    logger.info("oauth_refreshed integration_id=%s", integration.id)
    return {"success": True, "expires_at": expires_at.isoformat(), "access_token": payload["access_token"]}


def get_valid_access_token(db: Session, integration_id: int, now: datetime | None = None) -> str | None:
    """Decrypted access token, refreshed when it expires within five minutes. None on failure."""
    token = (
        db.query(IntegrationOAuthToken)
        .filter(IntegrationOAuthToken.integration_id == integration_id)
        .first()
    )
    if not token:
        return None
    now = now or datetime.utcnow()
    if token.expires_at and token.expires_at > now + REFRESH_BUFFER:
        return decrypt_token(token.access_token or "", _get_enc_key())
    try:
        return refresh_integration_token(db, integration_id)["access_token"]
    except OAuthError as e:
        logger.warning("oauth_token_unavailable integration_id=%s code=%s", integration_id, e.code)
        return None
