"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Atomic Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://atomic@localhost:5432/atomic"
    perplexity_api_key: str | None = None
    perplexity_base_url: str = "https://api.perplexity.ai"
    perplexity_model: str = "sonar-pro"
    perplexity_timeout_seconds: float = 30.0
    perplexity_max_tokens: int = 2000
    perplexity_temperature: float = 0.2
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "atomic"
    schedule_buffer_minutes: int = 15
    suggestion_step_minutes: int = 15
    suggestion_limit: int = 3
    default_category_name: str = "Personal"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
