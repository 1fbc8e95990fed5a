"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _jsonb():
    return postgresql.JSONB(astext_type=sa.Text())


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        "admin_settings",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("key", sa.String(128), unique=True, nullable=False, index=True),
        sa.Column("category", sa.String(64), nullable=False, server_default="system", index=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("value", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_by", sa.String(128), nullable=True),
        sa.Column("metadata_json", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(),
    )
    op.create_table(
        "admin_pending_changes",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("admin_id", sa.String(128), unique=True, nullable=False, index=True),
        sa.Column("setting_key", sa.String(128), nullable=False),
        sa.Column("path_json", _jsonb(), nullable=False),
        sa.Column("new_value_json", _jsonb(), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("state", sa.String(32), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_table(
        "public_reports",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("domain", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="PENDING"),
        sa.Column("data", _jsonb(), nullable=True),
        sa.Column("pdf_url", sa.Text(), nullable=True),
        sa.Column("pdf_generated_at", sa.DateTime(), nullable=True),
        sa.Column("og_image_url", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "report_unlock_requests",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("domain", sa.String(255), nullable=False, index=True),
        sa.Column("email", sa.String(255), nullable=False, index=True),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("unlocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("unlocked_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("domain", "email", name="uq_report_unlock_domain_email"),
    )
    op.create_table(
        "brands",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("owner_user_id", sa.String(128), nullable=False, index=True),
        sa.Column("brand_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("website_url", sa.Text(), nullable=True),
        sa.Column("languages", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("target_audiences", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("business_keywords", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("competitors", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        *_timestamps(),
    )
    op.create_table(
        "integrations",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("brand_id", sa.Integer(), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("auth_type", sa.String(32), nullable=False, server_default="oauth"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("config", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("last_sync_at", sa.DateTime(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_error_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("brand_id", "type", name="uq_integrations_brand_type"),
    )
    op.create_table(
        "integration_oauth_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column(
            "integration_id",
            sa.Integer(),
            sa.ForeignKey("integrations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("provider", sa.String(64), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_type", sa.String(32), nullable=True),
        sa.Column("scope", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("raw_response", _jsonb(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "reddit_keywords",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("brand_id", sa.Integer(), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("keyword", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("total_opportunities", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_scan_at", sa.DateTime(), nullable=True),
        sa.Column("last_opportunity_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "reddit_agent_settings",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column(
            "brand_id",
            sa.Integer(),
            sa.ForeignKey("brands.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
            index=True,
        ),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("scan_frequency_hours", sa.Integer(), nullable=False, server_default="6"),
        sa.Column("min_relevance_score", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("default_subreddits", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("total_scans", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_opportunities", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_scan_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "reddit_opportunities",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("brand_id", sa.Integer(), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False),
        sa.Column("post_id", sa.String(32), nullable=False),
        sa.Column("post_title", sa.Text(), nullable=False),
        sa.Column("post_url", sa.Text(), nullable=False),
        sa.Column("post_body", sa.Text(), nullable=True),
        sa.Column("subreddit", sa.String(128), nullable=False),
        sa.Column("author", sa.String(128), nullable=True),
        sa.Column("upvotes", sa.Integer(), nullable=True),
        sa.Column("comment_count", sa.Integer(), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("relevance_score", sa.Integer(), nullable=True),
        sa.Column("matched_keywords", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("opportunity_type", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.UniqueConstraint("brand_id", "post_id", name="uq_reddit_opp_brand_post"),
    )
    op.create_index("ix_reddit_opp_brand_status", "reddit_opportunities", ["brand_id", "status"])
    op.create_index("ix_reddit_opp_brand_relevance", "reddit_opportunities", ["brand_id", "relevance_score"])


def downgrade() -> None:
    op.drop_index("ix_reddit_opp_brand_relevance", table_name="reddit_opportunities")
    op.drop_index("ix_reddit_opp_brand_status", table_name="reddit_opportunities")
    op.drop_table("reddit_opportunities")
    op.drop_table("reddit_agent_settings")
    op.drop_table("reddit_keywords")
    op.drop_table("integration_oauth_tokens")
    op.drop_table("integrations")
    op.drop_table("brands")
    op.drop_table("report_unlock_requests")
    op.drop_table("public_reports")
    op.drop_table("admin_pending_changes")
    op.drop_table("admin_settings")
    op.drop_table("admin_users")
