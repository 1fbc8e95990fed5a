"""SQLAlchemy models."""
from apps.backend.models.admin import AdminUser
from apps.backend.models.admin_setting import AdminSetting, AdminPendingChange
from apps.backend.models.brand import Brand
from apps.backend.models.integration import Integration, IntegrationOAuthToken
from apps.backend.models.report import PublicReport, ReportUnlockRequest
from apps.backend.models.reddit import RedditKeyword, RedditAgentSettings, RedditOpportunity

__all__ = [
    "AdminUser",
    "AdminSetting",
    "AdminPendingChange",
    "Brand",
    "Integration",
    "IntegrationOAuthToken",
    "PublicReport",
    "ReportUnlockRequest",
    "RedditKeyword",
    "RedditAgentSettings",
    "RedditOpportunity",
]
