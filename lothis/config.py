from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    openai_api_key: str
    openai_assistant_id: str
    openai_base_url: str = "https://api.openai.com/v1"

    whatsapp_token: str
    whatsapp_phone_number_id: str
    whatsapp_api_version: str = "v20.0"
    verify_token: str

    database_url: str = "sqlite:///lothis.sqlite"

    run_timeout_seconds: float = 25.0
    run_poll_interval_seconds: float = 0.5
    reply_history_limit: int = 10
    http_timeout_seconds: float = 30.0

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"
        frozen = True


@lru_cache
def get_settings() -> Settings:
    """Read settings from the environment once per process."""
    return Settings()
