"""Brands tracked by a workspace."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB

from apps.backend.database import Base


class Brand(Base):
    __tablename__ = "brands"

    id = Column(Integer, primary_key=True, index=True)
    owner_user_id = Column(String(128), nullable=False, index=True)
    brand_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    languages = Column(JSONB, nullable=False, default=list)
    target_audiences = Column(JSONB, nullable=False, default=list)
    business_keywords = Column(JSONB, nullable=False, default=list)
    competitors = Column(JSONB, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
