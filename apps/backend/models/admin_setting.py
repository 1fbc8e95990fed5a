"""Admin settings (key -> JSON value) and pending toggle confirmations."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from sqlalchemy.dialects.postgresql import JSONB

from apps.backend.database import Base


class AdminSetting(Base):
    __tablename__ = "admin_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(128), unique=True, nullable=False, index=True)
    category = Column(String(64), nullable=False, default="system", index=True)
    description = Column(Text, nullable=True)
    value = Column(JSONB, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_by = Column(String(128), nullable=True)
    metadata_json = Column(JSONB, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AdminPendingChange(Base):
    """At most one per admin: a toggle waiting for confirmation."""

    __tablename__ = "admin_pending_changes"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(String(128), unique=True, nullable=False, index=True)
    setting_key = Column(String(128), nullable=False)
    path_json = Column(JSONB, nullable=False)
    new_value_json = Column(JSONB, nullable=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    state = Column(String(32), nullable=False, default="pending")  # pending|applying
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
