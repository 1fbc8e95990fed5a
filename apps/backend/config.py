"""Application configuration."""
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    app_env: str = "development"
    secret_key: str = "dev-secret-change-in-production"
    debug: bool = True
    public_app_url: str = "http://localhost:3000"
    public_client_url: str = "http://localhost:3000"

    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "searchfit"
    postgres_user: str = "searchfit"
    postgres_password: str = "changeme"
    database_url: str = ""
    db_pool_size: int = 5
    db_max_overflow: int = 10

    redis_host: str = "localhost"
    redis_port: int = 6379

    token_encryption_key: str = ""  # min 32 chars, encrypts stored OAuth tokens

    admin_default_email: str = "admin@localhost"
    admin_default_password: str = "changeme"

    jwt_secret: str = "your-jwt-secret-min-32-chars"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60
    session_cookie_name: str = "sf_session"

    integration_google_client_id: str = ""
    integration_google_client_secret: str = ""
    oauth_state_max_age_seconds: int = 600

    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket: str = "searchfit"
    r2_cdn_url: str = "https://cdn.searchfit.ai"
    r2_pdf_base_path: str = "report"

    integration_reddit_client_id: str = ""
    integration_reddit_client_secret: str = ""
    reddit_user_agent: str = "SearchFit/1.0 (Social Listening Tool)"

    llm_api_base: str = "https://api.openai.com/v1"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_secure: str = "tls"
    smtp_from_email: str = ""
    smtp_from_name: str = "SearchFit"
    slack_webhook_url: str = ""

    unlock_cookie_max_age_days: int = 30
    unlock_download_delay_ms: int = 300
    unlock_overlay_delay_ms: int = 500

    reddit_scan_enabled: bool = True
    reddit_scan_interval_seconds: int = 6 * 3600
    reddit_scan_job_timeout_seconds: int = 300
    rq_default_queue_name: str = "default"


@lru_cache
def get_settings() -> Settings:
    return Settings()
