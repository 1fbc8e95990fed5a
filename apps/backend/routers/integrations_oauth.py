"""OAuth connect/callback/refresh for brand integrations."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_user, get_optional_user
from apps.backend.config import get_settings
from apps.backend.deps import get_db
from apps.backend.models.brand import Brand
from apps.backend.models.integration import Integration
from apps.backend.services.oauth_integrations import (
    OAuthError,
    build_authorization_url,
    error_redirect,
    handle_callback,
    refresh_integration_token,
    state_cookie_name,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class RefreshRequest(BaseModel):
    integration_id: int = Field(..., alias="integrationId")

    model_config = {"populate_by_name": True}


@router.get("/{provider}/connect")
def connect(
    provider: str,
    brand_id: int | None = Query(None, alias="brandId"),
    db: Session = Depends(get_db),
    user_id: str | None = Depends(get_optional_user),
):
    s = get_settings()
    if not user_id:
        return RedirectResponse(f"{s.public_app_url.rstrip('/')}/sign-in", status_code=302)
    if brand_id is None:
        raise HTTPException(status_code=400, detail="Missing brandId parameter")
    try:
        url, state = build_authorization_url(db, provider, brand_id, user_id)
    except OAuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    resp = RedirectResponse(url, status_code=302)
    resp.set_cookie(
        state_cookie_name(provider),
        state,
        max_age=s.oauth_state_max_age_seconds,
        httponly=True,
        secure=s.app_env == "production",
        samesite="lax",
        path="/",
    )
    return resp


@router.get("/{provider}/callback")
def callback(
    provider: str,
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
    user_id: str | None = Depends(get_optional_user),
):
    try:
        target = handle_callback(
            db,
            provider,
            code=code,
            state=state,
            error=error,
            stored_state=request.cookies.get(state_cookie_name(provider)),
            current_user_id=user_id,
        )
    except Exception:
        logger.exception("oauth_callback_failed provider=%s", provider)
        db.rollback()
        target = error_redirect("oauth_failed")
    resp = RedirectResponse(target, status_code=302)
    resp.delete_cookie(state_cookie_name(provider), path="/")
    return resp


@router.post("/{provider}/refresh")
def refresh(
    provider: str,
    payload: RefreshRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    integration = db.get(Integration, payload.integration_id)
    if not integration or integration.type != provider:
        raise HTTPException(status_code=404, detail="Integration not found")
    brand = db.get(Brand, integration.brand_id)
    if not brand or brand.owner_user_id != user_id:
        raise HTTPException(status_code=404, detail="Brand not found")
    try:
        result = refresh_integration_token(db, integration.id)
    except OAuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return {"success": True, "expiresAt": result["expires_at"]}
