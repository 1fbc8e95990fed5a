"""Reddit listening: keywords, agent settings, found opportunities."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from apps.backend.database import Base


class RedditKeyword(Base):
    __tablename__ = "reddit_keywords"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    keyword = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    total_opportunities = Column(Integer, nullable=False, default=0)
    last_scan_at = Column(DateTime, nullable=True)
    last_opportunity_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class RedditAgentSettings(Base):
    __tablename__ = "reddit_agent_settings"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    is_enabled = Column(Boolean, nullable=False, default=True)
    scan_frequency_hours = Column(Integer, nullable=False, default=6)
    min_relevance_score = Column(Integer, nullable=False, default=50)
    default_subreddits = Column(JSONB, nullable=False, default=list)
    total_scans = Column(Integer, nullable=False, default=0)
    total_opportunities = Column(Integer, nullable=False, default=0)
    last_scan_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class RedditOpportunity(Base):
    __tablename__ = "reddit_opportunities"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    post_id = Column(String(32), nullable=False)  # reddit fullname, t3_xxx
    post_title = Column(Text, nullable=False)
    post_url = Column(Text, nullable=False)
    post_body = Column(Text, nullable=True)
    subreddit = Column(String(128), nullable=False)
    author = Column(String(128), nullable=True)
    upvotes = Column(Integer, nullable=True)
    comment_count = Column(Integer, nullable=True)
    posted_at = Column(DateTime, nullable=True)
    relevance_score = Column(Integer, nullable=True)
    matched_keywords = Column(JSONB, nullable=False, default=list)
    opportunity_type = Column(String(32), nullable=True)
    status = Column(String(16), nullable=False, default="pending")  # pending|completed|dismissed|expired
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("brand_id", "post_id", name="uq_reddit_opp_brand_post"),
        Index("ix_reddit_opp_brand_status", "brand_id", "status"),
        Index("ix_reddit_opp_brand_relevance", "brand_id", "relevance_score"),
    )
