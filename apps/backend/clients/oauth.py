"""OAuth 2.0 token endpoint and userinfo calls. Tokens never logged."""
import logging

import httpx

logger = logging.getLogger(__name__)

GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


def _post_form(url: str, data: dict) -> tuple[dict | None, int, str]:
    try:
        with httpx.Client(timeout=30) as c:
            r = c.post(url, data=data, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        logger.warning("oauth_token_request_failed url=%s err=%s", url, str(e)[:200])
        return None, 0, str(e)[:200]
    try:
        payload = r.json()
    except ValueError:
        payload = None
    if r.status_code >= 400:
        err = ""
        if isinstance(payload, dict):
            err = str(payload.get("error_description") or payload.get("error") or "")[:200]
        return None, r.status_code, err or (r.text or "")[:200]
    if not isinstance(payload, dict) or not payload.get("access_token"):
        return None, r.status_code, "missing_access_token"
    return payload, r.status_code, ""


def exchange_code(
    token_url: str,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
) -> tuple[dict | None, int, str]:
    """Authorization code -> tokens. Returns (payload, status_code, error)."""
    return _post_form(
        token_url,
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        },
    )


def refresh_access_token(
    token_url: str,
    client_id: str,
    client_secret: str,
    refresh_token: str,
) -> tuple[dict | None, int, str]:
    return _post_form(
        token_url,
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
    )


def get_google_user_info(access_token: str) -> dict | None:
    try:
        with httpx.Client(timeout=15) as c:
            r = c.get(GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
    except httpx.HTTPError:
        return None
    if r.status_code >= 400:
        return None
    try:
        data = r.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
