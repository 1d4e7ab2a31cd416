from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Telegram
    bot_token: str = ""
    webapp_url: str = "https://shane-ufo.github.io/fruit-merge-game/"
    admin_telegram_id: str = ""

    # Admin API
    admin_password: str = "admin123"
    reset_confirmation: str = "RESET_ALL_DATA"

    # Storage: "json" writes a single file, "sql" stores the snapshot via SQLAlchemy
    storage_backend: str = "json"
    data_file: str = "data.json"
    database_url: str = "sqlite:///fruitmerge.db"

    # Background tasks
    save_interval: int = 30  # seconds
    presence_sweep_interval: int = 60  # seconds
    presence_ttl: int = 300  # seconds
    week_check_interval: int = 3600  # seconds

    # Retention
    payments_keep: int = 1000
    activity_keep: int = 100

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: list = ["*"]
    log_file: str = "fruitmerge.log"

    # New Relic
    new_relic_license_key: str = ""
    new_relic_app_name: str = "FruitMerge"

    # Rate limiting
    rate_limit_requests: int = 600
    rate_limit_window: int = 60  # seconds


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
