"""Brand integrations connected through OAuth."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from apps.backend.database import Base


class Integration(Base):
    __tablename__ = "integrations"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    type = Column(String(64), nullable=False)  # provider key, e.g. google
    auth_type = Column(String(32), nullable=False, default="oauth")
    status = Column(String(32), nullable=False, default="active")  # active|error|disconnected
    config = Column(JSONB, nullable=False, default=dict)
    last_sync_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    last_error_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tokens = relationship("IntegrationOAuthToken", back_populates="integration", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("brand_id", "type", name="uq_integrations_brand_type"),
    )


class IntegrationOAuthToken(Base):
    __tablename__ = "integration_oauth_tokens"

    id = Column(Integer, primary_key=True, index=True)
    integration_id = Column(Integer, ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(64), nullable=False)
    access_token = Column(Text, nullable=True)  # encrypted
    refresh_token = Column(Text, nullable=True)  # encrypted
    token_type = Column(String(32), nullable=True)
    scope = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    raw_response = Column(JSONB, nullable=True)  # token values stripped
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    integration = relationship("Integration", back_populates="tokens")
