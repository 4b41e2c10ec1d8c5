"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import ClassVar, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GenerationMode = Literal["per-audience", "per-category", "hybrid"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    newsletter_name: str = "AI for PI"

    # LLM Configuration
    default_llm_model: str = "openai:gpt-4o"
    llm_max_retries: int = 3
    llm_timeout_fast: int = 60
    llm_timeout_standard: int = 120
    llm_timeout_reasoning: int = 300

    def get_llm_timeout(self, tier: str = "standard") -> int:
        """Return the LLM timeout in seconds for a given model tier."""
        return getattr(self, f"llm_timeout_{tier}", self.llm_timeout_standard)

    # Per-tier model overrides (optional, override the built-in defaults below)
    dev_model_reasoning: str | None = None
    dev_model_standard: str | None = None
    dev_model_fast: str | None = None
    prod_model_reasoning: str | None = None
    prod_model_standard: str | None = None
    prod_model_fast: str | None = None

    _MODEL_DEFAULTS: ClassVar[dict[str, dict[str, str]]] = {
        "development": {
            "reasoning": "openai:gpt-4o-mini",
            "standard": "openai:gpt-4o-mini",
            "fast": "openai:gpt-4o-mini",
        },
        "staging": {
            "reasoning": "anthropic:claude-sonnet-4-5",
            "standard": "openai:gpt-4o",
            "fast": "openai:gpt-4o-mini",
        },
        "production": {
            "reasoning": "anthropic:claude-sonnet-4-5",
            "standard": "anthropic:claude-sonnet-4-5",
            "fast": "anthropic:claude-sonnet-4-5",
        },
    }

    def get_model(self, tier: str = "standard") -> str:
        """Resolve the model string for a given tier based on environment.

        Priority: env var override > built-in defaults > default_llm_model fallback.
        """
        env_prefix = "dev" if self.environment in ("development", "staging") else "prod"
        override = getattr(self, f"{env_prefix}_model_{tier}", None)
        if isinstance(override, str) and override:
            return override

        env_defaults = self._MODEL_DEFAULTS.get(self.environment, {})
        resolved = env_defaults.get(tier, self.default_llm_model)
        if isinstance(resolved, str):
            return resolved
        return self.default_llm_model

    # Per-call timeouts for the generation fan-outs (seconds)
    section_timeout_seconds: float = 180.0
    topic_generation_timeout_seconds: float = 120.0

    # Pipeline defaults (callers may override per run)
    default_generation_mode: GenerationMode = "per-audience"
    default_topics_per_audience: int = 3
    default_sources_per_allocation: int = 2
    skip_overlap_detection: bool = False
    auto_balance: bool = False
    max_parallel_agents: int | None = None
    allow_cross_category_reassign: bool = False

    # Balanced topic merge
    merger_min_per_audience: int = 1
    merger_target_count: int = 10

    # Source providers
    source_fetch_timeout_seconds: float = 15.0
    hackernews_search_url: str = "https://hn.algolia.com/api/v1/search"
    devto_api_url: str = "https://dev.to/api/articles"
    devto_tag: str = "ai"
    github_search_url: str = "https://api.github.com/search/repositories"
    github_topic: str = "machine-learning"

    @field_validator("default_generation_mode", mode="before")
    @classmethod
    def _normalize_generation_mode(cls, value: object) -> object:
        """Accept underscores and mixed case for GENERATION_MODE values."""
        if not isinstance(value, str):
            return value
        return value.strip().lower().replace("_", "-")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()

    return settings


settings = get_settings()
