"""
Configuration management for turnwise.

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: Literal["openai", "openrouter"] = "openai"
    model: str = "gpt-4o"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "turnwise"
    debug: bool = False
    log_level: str = "INFO"

    # LLM Providers (API Keys)
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    llm_base_url: str | None = Field(default=None, description="Override for OpenAI-compatible endpoints")

    # Default model settings
    default_provider: Literal["openai", "openrouter"] = "openai"
    default_model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7

    # Context window
    context_max_tokens: int = Field(default=4000, description="Token budget for extracted context")
    max_recent_messages: int = Field(default=20, description="Recent messages kept verbatim")
    max_message_age_hours: float = Field(default=24.0, description="Messages older than this are dropped")
    compression_strategy: Literal["none", "simple", "smart", "semantic", "summary"] = "smart"
    preserve_tool_call_pairs: bool = True
    include_system_messages: bool = True
    include_tool_messages: bool = True
    important_keywords: str = Field(default="", description="Comma-separated extra keywords for semantic scoring")

    # Compaction
    compaction_threshold: int = Field(default=50, description="Turn count that triggers compaction")
    auto_compact: bool = True

    @field_validator("compression_strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("important_keywords", mode="before")
    @classmethod
    def parse_important_keywords(cls, v: str) -> str:
        return v.strip() if v else ""

    @property
    def important_keywords_list(self) -> list[str]:
        """Get list of extra important keywords."""
        if not self.important_keywords:
            return []
        return [k.strip().lower() for k in self.important_keywords.split(",") if k.strip()]

    def get_llm_config(self, provider: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.default_provider

        api_key_map = {
            "openai": self.openai_api_key,
            "openrouter": self.openrouter_api_key,
        }

        model_map = {
            "openai": "gpt-4o",
            "openrouter": "openai/gpt-4o",
        }

        base_url_map = {
            "openai": None,
            "openrouter": "https://openrouter.ai/api/v1",
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=self.default_model or model_map.get(provider, "gpt-4o"),
            api_key=api_key_map.get(provider, ""),
            base_url=self.llm_base_url or base_url_map.get(provider),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
