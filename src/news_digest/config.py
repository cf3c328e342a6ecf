"""Configuration helpers for the news digest service."""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    jwt_secret: str | None = Field(None, alias="JWT_SECRET")
    jwt_algorithms: str = Field(
        "HS256",
        alias="JWT_ALGORITHMS",
        description="Comma-separated JWT algorithms accepted when verifying tokens.",
    )

    intent_model: str = Field(
        "gpt-4o-mini", description="Model used to extract topic/language/country."
    )
    summarizer_model: str = Field(
        "gpt-4o-mini", description="Model used for the one-sentence item summaries."
    )
    completion_model: str = Field(
        "gpt-4o-mini", description="Model behind the raw generate-text endpoint."
    )
    transcription_model: str = Field("whisper-1")
    image_model: str = Field("dall-e-3")
    image_size: str = Field("1024x1024")
    summary_max_tokens: int = Field(
        60, description="Output cap for each item summary."
    )
    summary_fallback_to_title: bool = Field(
        False,
        description=(
            "When true, a failed item summary falls back to the item title "
            "instead of failing the whole request."
        ),
    )

    feed_base_url: str = Field("https://news.google.com/rss/search")
    feed_timeout: float = Field(10.0, description="Seconds before a feed fetch gives up.")
    feed_max_items: int = Field(5)
    feed_user_agent: str = Field("NewsDigestBot/1.0")

    activity_log_url: str | None = Field(
        None,
        alias="ACTIVITY_LOG_URL",
        description="Remote activity sink; logging is disabled when unset.",
    )
    activity_log_key: str | None = Field(None, alias="ACTIVITY_LOG_KEY")
    activity_log_timeout: float = Field(3.0)
    broadcast_digests: bool = Field(
        True, description="Push a notice to live subscribers after each digest."
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(4000, alias="PORT")

    @property
    def jwt_algorithm_list(self) -> list[str]:
        return [name.strip() for name in self.jwt_algorithms.split(",") if name.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger."""
    resolved = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
