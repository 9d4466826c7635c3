# config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Lead Capture API"
    log_level: str = "INFO"

    # Notifications
    lead_alert_webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = 5.0

    # Limits
    default_search_limit: int = 50
    max_search_limit: int = 200
    max_rescore_limit: int = 500

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


settings = Settings()
