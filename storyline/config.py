"""
Configuration management using Pydantic Settings.
Loads environment variables and provides typed configuration.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = Field(
        default="sqlite:///./storyline.db",
        alias="DATABASE_URL"
    )

    # Trend scoring
    trend_article_limit: int = Field(default=1000, alias="TREND_ARTICLE_LIMIT")
    keyword_top_n: int = Field(default=100, alias="KEYWORD_TOP_N")
    entity_top_n: int = Field(default=50, alias="ENTITY_TOP_N")
    trend_min_articles: int = Field(default=2, alias="TREND_MIN_ARTICLES")
    keyword_min_length: int = Field(default=3, alias="KEYWORD_MIN_LENGTH")

    # Secondary NER pass (gap-filler for articles without entities)
    spacy_model: str = Field(default="en_core_web_sm", alias="SPACY_MODEL")
    ner_content_chars: int = Field(default=10000, alias="NER_CONTENT_CHARS")

    # Story clustering
    story_window_hours: int = Field(default=72, alias="STORY_WINDOW_HOURS")
    story_min_cluster_size: int = Field(default=4, alias="STORY_MIN_CLUSTER_SIZE")
    story_article_limit: int = Field(default=5000, alias="STORY_ARTICLE_LIMIT")
    story_max_secondary_entities: int = Field(default=5, alias="STORY_MAX_SECONDARY_ENTITIES")
    story_max_related: int = Field(default=5, alias="STORY_MAX_RELATED")
    story_max_keywords: int = Field(default=10, alias="STORY_MAX_KEYWORDS")
    story_run_timeout_seconds: float = Field(default=900.0, alias="STORY_RUN_TIMEOUT_SECONDS")

    # Text generation (optional collaborator)
    llm_enabled: bool = Field(default=True, alias="LLM_ENABLED")
    llm_model: str = Field(default="google-gla:gemini-2.0-flash", alias="LLM_MODEL")
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    llm_max_requests_per_hour: int = Field(default=50, alias="LLM_MAX_REQUESTS_PER_HOUR")
    llm_min_interval_seconds: float = Field(default=3.0, alias="LLM_MIN_INTERVAL_SECONDS")
    llm_cooldown_seconds: float = Field(default=300.0, alias="LLM_COOLDOWN_SECONDS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @property
    def llm_configured(self) -> bool:
        """True when text generation is switched on and has credentials."""
        return self.llm_enabled and bool(self.gemini_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
