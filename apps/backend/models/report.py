"""Public AEO reports and their unlock (email capture) requests."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from apps.backend.database import Base


class PublicReport(Base):
    __tablename__ = "public_reports"

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(255), unique=True, nullable=False, index=True)  # normalized
    status = Column(String(32), nullable=False, default="PENDING")  # PENDING|PROCESSING|COMPLETED|FAILED
    data = Column(JSONB, nullable=True)
    pdf_url = Column(Text, nullable=True)
    pdf_generated_at = Column(DateTime, nullable=True)
    og_image_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ReportUnlockRequest(Base):
    __tablename__ = "report_unlock_requests"

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    company_name = Column(String(255), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    unlocked = Column(Boolean, nullable=False, default=False)
    unlocked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("domain", "email", name="uq_report_unlock_domain_email"),
    )
