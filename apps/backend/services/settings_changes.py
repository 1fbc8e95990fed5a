"""Apply admin toggle changes, holding gated ones until the admin confirms.

State per admin: idle -> pending -> applying -> idle, or pending -> idle on
cancel. The pending change lives in admin_pending_changes (one row per admin).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apps.backend.models.admin_setting import AdminSetting, AdminPendingChange
from apps.backend.services.admin_settings import (
    SettingNotFoundError,
    default_setting,
    get_setting,
    update_setting_value,
)
from apps.backend.services.setting_toggles import (
    Confirmation,
    requires_confirmation,
    schema_for,
    update_nested_value,
)

logger = logging.getLogger(__name__)

MSG_UPDATED = "Setting updated"
MSG_UPDATE_FAILED = "Failed to update setting"


class ChangeState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    APPLYING = "applying"


class SettingUpdateError(Exception):
    def __init__(self, key: str, message: str = MSG_UPDATE_FAILED) -> None:
        super().__init__(message)
        self.key = key
        self.code = "setting_update_failed"


class PendingChangeError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class ChangeResult:
    state: ChangeState
    message: str | None = None
    setting: AdminSetting | None = None
    confirmation: Confirmation | None = None
    pending: dict | None = field(default=None)


def _load_setting(db: Session, key: str) -> AdminSetting:
    row = get_setting(db, key) or default_setting(key)
    if row is None:
        raise SettingNotFoundError(key)
    return row


def apply_setting_change(
    db: Session,
    key: str,
    path: list[str],
    new_value: Any,
    updated_by: str | None = None,
) -> AdminSetting:
    """Write ``new_value`` at ``path`` and store the whole JSON value. Last write wins."""
    setting = _load_setting(db, key)
    new_json = update_nested_value(setting.value, path, new_value)
    try:
        return update_setting_value(db, key, new_json, updated_by=updated_by)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("admin_setting_update_failed key=%s path=%s", key, ".".join(path))
        raise SettingUpdateError(key) from e


def get_pending(db: Session, admin_id: str) -> AdminPendingChange | None:
    return db.query(AdminPendingChange).filter(AdminPendingChange.admin_id == admin_id).first()


def serialize_pending(row: AdminPendingChange | None) -> dict:
    if not row:
        return {"state": ChangeState.IDLE.value}
    return {
        "state": row.state,
        "setting_key": row.setting_key,
        "path": row.path_json,
        "new_value": row.new_value_json,
        "title": row.title,
        "message": row.message,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def propose_change(
    db: Session,
    admin_id: str,
    key: str,
    path: list[str],
    switched_on: bool,
) -> ChangeResult:
    """Admin flipped a switch: apply at once, or park it when confirmation is required."""
    setting = _load_setting(db, key)
    new_value = schema_for(key).stored_value(setting, list(path), switched_on)
    confirmation = requires_confirmation(setting, path, new_value)
    if not confirmation.required:
        row = apply_setting_change(db, key, path, new_value, updated_by=admin_id)
        return ChangeResult(state=ChangeState.IDLE, message=MSG_UPDATED, setting=row)

    if get_pending(db, admin_id):
        raise PendingChangeError("pending_change_exists", "Another change is awaiting confirmation")
    now = datetime.utcnow()
    pending = AdminPendingChange(
        admin_id=admin_id,
        setting_key=key,
        path_json=list(path),
        new_value_json=new_value,
        title=confirmation.title,
        message=confirmation.message,
        state=ChangeState.PENDING.value,
        created_at=now,
        updated_at=now,
    )
    db.add(pending)
    db.commit()
    db.refresh(pending)
    logger.info("admin_setting_change_pending admin=%s key=%s", admin_id, key)
    return ChangeResult(
        state=ChangeState.PENDING,
        confirmation=confirmation,
        pending=serialize_pending(pending),
    )


def confirm_pending(db: Session, admin_id: str) -> ChangeResult:
    row = get_pending(db, admin_id)
    if not row or row.state != ChangeState.PENDING.value:
        raise PendingChangeError("no_pending_change", "No change is awaiting confirmation")
    row.state = ChangeState.APPLYING.value
    row.updated_at = datetime.utcnow()
    db.commit()
    key, path, new_value = row.setting_key, list(row.path_json or []), row.new_value_json
    try:
        setting = apply_setting_change(db, key, path, new_value, updated_by=admin_id)
    finally:
        _clear_pending(db, admin_id)
    logger.info("admin_setting_change_confirmed admin=%s key=%s", admin_id, key)
    return ChangeResult(state=ChangeState.IDLE, message=MSG_UPDATED, setting=setting)


def cancel_pending(db: Session, admin_id: str) -> ChangeResult:
    """Drop the pending change without sending any mutation."""
    if _clear_pending(db, admin_id):
        logger.info("admin_setting_change_cancelled admin=%s", admin_id)
    return ChangeResult(state=ChangeState.IDLE)


def _clear_pending(db: Session, admin_id: str) -> bool:
    row = get_pending(db, admin_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True
