import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    data_root: Path = Field(Path("data"), alias="DATA_ROOT")
    llm_base_url: str | None = Field(None, alias="LLM_BASE_URL")
    llm_api_key: str | None = Field(None, alias="LLM_API_KEY")
    llm_model_name: str = Field("gemini-1.5-flash-latest", alias="LLM_MODEL_NAME")
    llm_vision_model_name: str = Field("gemini-1.5-flash-latest", alias="LLM_VISION_MODEL_NAME")
    llm_timeout_seconds: float = Field(90.0, alias="LLM_TIMEOUT_SECONDS")
    llm_max_tokens: int = Field(4000, alias="LLM_MAX_TOKENS")
    llm_content_max_chars: int = Field(20000, alias="LLM_CONTENT_MAX_CHARS")
    fetch_timeout_seconds: float = Field(15.0, alias="FETCH_TIMEOUT_SECONDS")
    scraper_user_agent: str = Field(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
        alias="SCRAPER_USER_AGENT",
    )
    scraper_cookies: str | None = Field(None, alias="SCRAPER_COOKIES")
    recipe_image_max_bytes: int = Field(10 * 1024 * 1024, alias="RECIPE_IMAGE_MAX_BYTES")
    recipe_image_max_count: int = Field(8, alias="RECIPE_IMAGE_MAX_COUNT")
    # Fallbacks for values the user has not stored through /settings
    mealie_url: str | None = Field(None, alias="MEALIE_URL")
    mealie_api_token: str | None = Field(None, alias="MEALIE_API_TOKEN")
    mealie_timeout_seconds: float = Field(30.0, alias="MEALIE_TIMEOUT_SECONDS")
    ui_language: str = Field("en", alias="UI_LANGUAGE")
    target_language: str = Field("fr", alias="TARGET_LANGUAGE")
    measurement_system: Literal["metric", "us"] = Field("metric", alias="MEASUREMENT_SYSTEM")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    settings.data_root.mkdir(parents=True, exist_ok=True)
    return settings
