from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True

    # Application
    app_name: str = "Tony's Toolbox"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Database
    database_url: str = "sqlite:///./toolbox.db"

    # Short links
    base_url: str = "http://127.0.0.1:8000"
    slug_max_length: int = 64
    click_record_retries: int = 1  # Extra attempts on transient storage errors

    # Auth (Supabase-style JWT, verified with a shared secret)
    auth_jwt_secret: Optional[str] = None  # Unset: every caller is a guest
    auth_jwt_algorithm: str = "HS256"
    auth_jwt_audience: Optional[str] = None
    auth_role_claim: str = "app_metadata.role"  # Dotted path inside the token
    auth_cookie_name: str = "sb-access-token"

    # Queue settings
    queue_backend: str = "redis_streams"  # Options: "redis_streams", "memory"
    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "analytics_events"
    queue_consumer_group: str = "analytics_workers"
    queue_batch_size: int = 100  # Number of messages to process at once
    queue_worker_interval: int = 5  # Idle poll interval in seconds

    # Analytics sink settings
    analytics_sink: str = "log"  # Options: "posthog", "log"
    posthog_host: str = "https://app.posthog.com"
    posthog_api_key: Optional[str] = None
    posthog_timeout: float = 5.0
    analytics_worker_embedded: bool = True  # Run the worker inside the API process

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
