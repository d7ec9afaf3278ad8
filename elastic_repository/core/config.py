"""Runtime settings for the search engine connection."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    ES_URL: str = "http://localhost:9200"
    ES_USERNAME: Optional[str] = None
    ES_PASSWORD: Optional[str] = None
    ES_API_KEY: Optional[str] = None
    ES_VERIFY_CERTS: bool = True
    ES_REQUEST_TIMEOUT_S: float = 10.0

    # Default keep-alive for scroll contexts, engine time-unit syntax
    ES_SCROLL_KEEPALIVE: str = "1m"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def reset_settings() -> None:
    global _settings_cache
    _settings_cache = None
