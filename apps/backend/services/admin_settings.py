"""Admin settings store (key -> JSON value, from DB, not .env)."""
from __future__ import annotations

import copy
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from apps.backend.models.admin_setting import AdminSetting

logger = logging.getLogger(__name__)

# Shown (and created on first write) when the row is missing.
DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    "app_features": {
        "category": "features",
        "description": "Enable or disable app features - disabled features show as 'Coming Soon'",
        "value": {
            "tasks": True,
            "workspace_prompts": True,
            "brands": {
                "content": True,
                "analytics": True,
                "ai_tracking": True,
                "backlinks": False,
                "technical_audit": True,
                "social_listening": True,
                "tasks": True,
            },
        },
    },
    "integrations": {
        "category": "integrations",
        "description": "Enable or disable third-party integrations - disabled integrations show as 'Coming Soon'",
        "value": {
            "google": True,
            "microsoft": False,
            "slack": False,
            "microsoft_teams": False,
            "linear": False,
            "adobe_analytics": False,
            "mixpanel": False,
            "wordpress": True,
            "webflow": True,
            "github": False,
            "twitter": False,
            "linkedin": False,
            "discord": False,
            "tiktok": False,
            "ahrefs": False,
            "moz": False,
            "semrush": False,
            "kw_finder": False,
            "zapier": False,
            "make": False,
            "n8n": False,
            "shopify": True,
            "meta_ads": False,
            "api": False,
            "mcp": False,
            "webhooks": True,
            "davinci": False,
            "fabriq": False,
            "klaviyo": False,
            "apifox": False,
            "airtable": False,
            "salesforce": False,
            "intercom": False,
            "hubspot": False,
            "perplexity": False,
            "gemini": False,
            "chatgpt": False,
        },
    },
}

# Written by the seed script only; never shown virtually.
SEED_SETTINGS: dict[str, dict[str, Any]] = {
    "auth_mode": {
        "category": "authentication",
        "description": "Signup mode: open signup or waitlist approval",
        "value": {"mode": "open"},
    },
    "maintenance_mode": {
        "category": "maintenance",
        "description": "Platform maintenance switches",
        "value": {
            "enabled": False,
            "subsections": {"dashboard": False, "api": False, "billing": False, "reports": False},
        },
    },
    "data_source": {
        "category": "system",
        "description": "Toggle between mock data and real production data",
        "value": {"use_mock_data": False},
    },
    **DEFAULT_SETTINGS,
}

# bind id -> (fingerprint, rows)
_cache: dict[int, tuple[tuple, list[AdminSetting]]] = {}


class SettingNotFoundError(Exception):
    def __init__(self, key: str) -> None:
        super().__init__(f"Setting not found: {key}")
        self.key = key
        self.code = "setting_not_found"


def invalidate_settings_cache() -> None:
    _cache.clear()


def _table_fingerprint(db: Session) -> tuple:
    """(row count, newest updated_at); changes on any insert, update or delete from any process."""
    count, newest = db.execute(select(func.count(AdminSetting.id), func.max(AdminSetting.updated_at))).one()
    return count, newest


def get_all_settings(db: Session, use_cache: bool = True) -> list[AdminSetting]:
    """All settings, category descending then key. The cached list is reused while the table is unchanged."""
    cache_key = id(db.get_bind())
    fingerprint = _table_fingerprint(db)
    cached = _cache.get(cache_key)
    if use_cache and cached and cached[0] == fingerprint:
        return list(cached[1])
    rows = db.execute(
        select(AdminSetting).order_by(desc(AdminSetting.category), AdminSetting.key)
    ).scalars().all()
    for row in rows:
        db.expunge(row)
    _cache[cache_key] = (fingerprint, list(rows))
    return list(rows)


def get_setting(db: Session, key: str) -> AdminSetting | None:
    return db.execute(select(AdminSetting).where(AdminSetting.key == key)).scalar_one_or_none()


def get_settings_by_category(db: Session, category: str) -> list[AdminSetting]:
    return list(
        db.execute(
            select(AdminSetting).where(AdminSetting.category == category).order_by(AdminSetting.key)
        ).scalars().all()
    )


def default_setting(key: str) -> AdminSetting | None:
    """Transient (not persisted) setting built from DEFAULT_SETTINGS."""
    entry = DEFAULT_SETTINGS.get(key)
    if not entry:
        return None
    return AdminSetting(
        key=key,
        category=entry["category"],
        description=entry["description"],
        value=copy.deepcopy(entry["value"]),
        is_active=True,
        metadata_json={},
    )


def with_default_settings(settings: list[AdminSetting]) -> list[AdminSetting]:
    """Append defaults for well-known keys that have no row yet."""
    present = {s.key for s in settings}
    out = list(settings)
    for key in DEFAULT_SETTINGS:
        if key not in present:
            out.append(default_setting(key))
    return out


def upsert_setting(
    db: Session,
    *,
    key: str,
    value: Any,
    category: str,
    description: str | None = None,
    is_active: bool | None = None,
    updated_by: str | None = None,
    metadata: dict | None = None,
) -> AdminSetting:
    row = get_setting(db, key)
    now = datetime.utcnow()
    if row:
        row.value = value
        row.category = category
        row.description = description
        if is_active is not None:
            row.is_active = is_active
        row.updated_by = updated_by
        if metadata is not None:
            row.metadata_json = metadata
        row.updated_at = now
    else:
        row = AdminSetting(
            key=key,
            value=value,
            category=category,
            description=description,
            is_active=True if is_active is None else is_active,
            updated_by=updated_by,
            metadata_json=metadata or {},
            created_at=now,
            updated_at=now,
        )
        db.add(row)
    db.commit()
    db.refresh(row)
    invalidate_settings_cache()
    return row


def update_setting_value(db: Session, key: str, value: Any, updated_by: str | None = None) -> AdminSetting:
    """Replace the whole JSON value of a setting. Creates well-known defaults on first write."""
    row = get_setting(db, key)
    if not row:
        entry = DEFAULT_SETTINGS.get(key)
        if not entry:
            raise SettingNotFoundError(key)
        return upsert_setting(
            db,
            key=key,
            value=value,
            category=entry["category"],
            description=entry["description"],
            updated_by=updated_by,
        )
    row.value = value
    row.updated_by = updated_by
    row.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(row)
    invalidate_settings_cache()
    logger.info("admin_setting_updated key=%s updated_by=%s", key, updated_by)
    return row


def toggle_setting_active(db: Session, key: str, updated_by: str | None = None) -> AdminSetting:
    row = get_setting(db, key)
    if not row:
        raise SettingNotFoundError(key)
    row.is_active = not row.is_active
    row.updated_by = updated_by
    row.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(row)
    invalidate_settings_cache()
    return row


def delete_setting(db: Session, key: str) -> None:
    row = get_setting(db, key)
    if row:
        db.delete(row)
        db.commit()
    invalidate_settings_cache()


def seed_default_settings(db: Session) -> list[str]:
    """Create missing well-known settings. Returns created keys."""
    created: list[str] = []
    for key, entry in SEED_SETTINGS.items():
        if get_setting(db, key):
            continue
        db.add(
            AdminSetting(
                key=key,
                category=entry["category"],
                description=entry["description"],
                value=copy.deepcopy(entry["value"]),
                is_active=True,
                metadata_json={},
            )
        )
        created.append(key)
    if created:
        db.commit()
        invalidate_settings_cache()
    return created


def serialize_setting(row: AdminSetting) -> dict:
    return {
        "id": row.id,
        "key": row.key,
        "category": row.category,
        "description": row.description,
        "value": row.value,
        "is_active": row.is_active if row.is_active is not None else True,
        "updated_by": row.updated_by,
        "metadata": row.metadata_json or {},
        "persisted": row.id is not None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }
