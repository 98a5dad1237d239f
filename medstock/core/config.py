from functools import lru_cache

from pydantic import EmailStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str

    # Identity provider (bearer tokens)
    identity_secret_key: str = "changeme"  # override in .env
    identity_algorithm: str = "HS256"
    identity_audience: str | None = None
    access_token_expire_minutes: int = 60

    # Stock movements
    movement_max_retries: int = 3

    # Reports
    expiring_items_default_days: int = 30
    stock_page_size: int = 20

    # Consumption-trend advisory (OpenAI-compatible chat completions endpoint)
    advisory_api_url: str = "https://api.openai.com/v1/chat/completions"
    advisory_api_key: str | None = None
    advisory_model: str = "gpt-4o-mini"
    advisory_timeout_seconds: float = 60.0

    # Bootstrap admin profile (scripts/setup_platform.py)
    bootstrap_admin_subject: str | None = None
    bootstrap_admin_email: EmailStr | None = None
    bootstrap_admin_name: str = "Administrador"

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
