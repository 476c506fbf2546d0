from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Listing Harvester"
    environment: str = "dev"
    debug: bool = False
    cors_origins: str = "*"

    log_level: str = "INFO"
    log_format: str = "console"

    max_concurrent_fetches: int = 3
    max_items_per_page: int | None = None
    default_max_pages: int = 1

    listing_timeout_seconds: float = 60
    detail_timeout_seconds: float = 60
    selector_timeout_seconds: float = 30
    description_timeout_seconds: float = 15
    browser_headless: bool = True

    ai_provider: str = "mock"
    ai_api_key: str | None = None
    ai_base_url: str = "https://api.deepseek.com"
    ai_model: str = "deepseek-chat"
    ai_timeout_seconds: float = 120

    output_path: str = "harvest_results.json"
    raw_output_path: str | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()
