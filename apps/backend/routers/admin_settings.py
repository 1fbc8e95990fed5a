"""Admin: global settings (key -> JSON) and the toggle screen."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_admin
from apps.backend.deps import get_db
from apps.backend.services.admin_settings import (
    SettingNotFoundError,
    delete_setting,
    get_all_settings,
    get_setting,
    get_settings_by_category,
    seed_default_settings,
    serialize_setting,
    toggle_setting_active,
    update_setting_value,
    upsert_setting,
    with_default_settings,
)
from apps.backend.services.setting_toggles import (
    MalformedSettingError,
    SettingPathError,
    category_label,
    filter_items,
    flatten_settings,
    group_items,
    integration_categories,
)
from apps.backend.services.settings_changes import (
    ChangeResult,
    PendingChangeError,
    SettingUpdateError,
    cancel_pending,
    confirm_pending,
    get_pending,
    propose_change,
    serialize_pending,
)

router = APIRouter(dependencies=[Depends(get_current_admin)])


class SettingUpsert(BaseModel):
    value: Any
    category: str = "system"
    description: str | None = None
    is_active: bool | None = None
    metadata: dict | None = None


class SettingValueUpdate(BaseModel):
    value: Any


class ToggleChange(BaseModel):
    key: str = Field(..., min_length=1)
    path: list[str] = Field(..., min_length=1)
    value: bool


def _admin_id(admin: dict) -> str:
    return str(admin.get("sub") or "")


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, SettingNotFoundError):
        return HTTPException(status_code=404, detail="Setting not found")
    if isinstance(exc, MalformedSettingError):
        return HTTPException(status_code=422, detail=f"malformed_setting:{exc.key}")
    if isinstance(exc, SettingPathError):
        return HTTPException(status_code=422, detail=f"invalid_setting_path:{'.'.join(exc.path)}")
    if isinstance(exc, PendingChangeError):
        status = 409 if exc.code == "pending_change_exists" else 404
        return HTTPException(status_code=status, detail=exc.code)
    return HTTPException(status_code=500, detail=str(exc))


def _change_response(result: ChangeResult) -> dict:
    out: dict[str, Any] = {"state": result.state.value, "message": result.message}
    if result.setting is not None:
        out["setting"] = serialize_setting(result.setting)
    if result.confirmation is not None:
        out["confirmation"] = {
            "required": result.confirmation.required,
            "title": result.confirmation.title,
            "message": result.confirmation.message,
        }
    if result.pending is not None:
        out["pending"] = result.pending
    return out


@router.get("")
def list_settings(
    with_defaults: bool = Query(False),
    db: Session = Depends(get_db),
):
    """All settings, category descending then key."""
    rows = get_all_settings(db)
    if with_defaults:
        rows = with_default_settings(rows)
    return {"items": [serialize_setting(r) for r in rows]}


@router.get("/toggles")
def list_toggles(
    q: str = Query(""),
    integration_category: str = Query("all"),
    db: Session = Depends(get_db),
):
    """Settings flattened into switches, filtered and grouped by category."""
    try:
        items = flatten_settings(with_default_settings(get_all_settings(db)))
    except MalformedSettingError as e:
        raise _to_http(e)
    visible = filter_items(items, q, integration_category)
    groups = group_items(visible)
    return {
        "items": [i.to_dict() for i in visible],
        "groups": [
            {"category": cat, "label": category_label(cat), "items": [i.to_dict() for i in group]}
            for cat, group in groups.items()
        ],
        "integration_categories": integration_categories(items),
        "total": len(items),
    }


@router.get("/category/{category}")
def list_by_category(category: str, db: Session = Depends(get_db)):
    return {"items": [serialize_setting(r) for r in get_settings_by_category(db, category)]}


@router.post("/seed")
def seed_settings(db: Session = Depends(get_db)):
    return {"created": seed_default_settings(db)}


@router.get("/changes/pending")
def pending_change(db: Session = Depends(get_db), admin: dict = Depends(get_current_admin)):
    return serialize_pending(get_pending(db, _admin_id(admin)))


@router.post("/changes")
def submit_change(
    payload: ToggleChange,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin),
):
    """Flip a switch. Gated changes answer with state=pending and a confirmation prompt."""
    try:
        result = propose_change(db, _admin_id(admin), payload.key, payload.path, payload.value)
    except (SettingNotFoundError, MalformedSettingError, SettingPathError, PendingChangeError, SettingUpdateError) as e:
        raise _to_http(e)
    return _change_response(result)


@router.post("/changes/confirm")
def confirm_change(db: Session = Depends(get_db), admin: dict = Depends(get_current_admin)):
    try:
        result = confirm_pending(db, _admin_id(admin))
    except (SettingNotFoundError, SettingPathError, PendingChangeError, SettingUpdateError) as e:
        raise _to_http(e)
    return _change_response(result)


@router.post("/changes/cancel")
def cancel_change(db: Session = Depends(get_db), admin: dict = Depends(get_current_admin)):
    return _change_response(cancel_pending(db, _admin_id(admin)))


@router.get("/{key}")
def get_setting_by_key(key: str, db: Session = Depends(get_db)):
    row = get_setting(db, key)
    if not row:
        raise HTTPException(status_code=404, detail="Setting not found")
    return serialize_setting(row)


@router.put("/{key}")
def put_setting(
    key: str,
    payload: SettingUpsert,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin),
):
    row = upsert_setting(
        db,
        key=key,
        value=payload.value,
        category=payload.category,
        description=payload.description,
        is_active=payload.is_active,
        updated_by=_admin_id(admin),
        metadata=payload.metadata,
    )
    return serialize_setting(row)


@router.patch("/{key}/value")
def patch_setting_value(
    key: str,
    payload: SettingValueUpdate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin),
):
    try:
        row = update_setting_value(db, key, payload.value, updated_by=_admin_id(admin))
    except SettingNotFoundError as e:
        raise _to_http(e)
    return serialize_setting(row)


@router.post("/{key}/toggle-active")
def post_toggle_active(key: str, db: Session = Depends(get_db), admin: dict = Depends(get_current_admin)):
    try:
        row = toggle_setting_active(db, key, updated_by=_admin_id(admin))
    except SettingNotFoundError as e:
        raise _to_http(e)
    return serialize_setting(row)


@router.delete("/{key}")
def remove_setting(key: str, db: Session = Depends(get_db)):
    delete_setting(db, key)
    return {"success": True}
