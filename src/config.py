"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    app_secret_key: str
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # SendGrid (send_email action)
    sendgrid_api_key: str = ""
    sendgrid_from_email: str = "automation@example.com"
    sendgrid_from_name: str = "Workflow Automation"

    # Pabbly Connect account API (fallback when a tenant config has no base_url)
    pabbly_api_base_url: str = "https://connect.pabbly.com"

    # Outbound HTTP (api_request action, Pabbly account API)
    http_timeout_seconds: float = 15.0

    # Total wall-clock budget for one execution's action sequence. 0 disables it.
    execution_timeout_seconds: float = 0

    # Sentry
    sentry_dsn: str = ""

    allowed_origins: str = ""  # Comma-separated CORS origins

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
