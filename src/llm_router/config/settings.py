"""Settings configuration"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Router settings loaded from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False,
        validate_assignment=True
    )

    # Routing
    strategy: Optional[str] = Field(default=None, validation_alias="LLM_STRATEGY")
    state_file: Path = Field(
        default=Path.home() / ".llm_router" / "state.json", validation_alias="STATE_FILE"
    )
    health_cache_ttl: float = Field(default=5.0, validation_alias="HEALTH_CACHE_TTL", gt=0)
    stream_fallback_after_output: bool = Field(
        default=True, validation_alias="STREAM_FALLBACK_AFTER_OUTPUT"
    )

    # Timeouts (seconds)
    health_check_timeout: float = Field(default=5.0, validation_alias="HEALTH_CHECK_TIMEOUT", gt=0)
    request_timeout: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT", gt=0)

    # Local backends
    ollama_base_url: str = Field(default="http://localhost:11434/api", validation_alias="OLLAMA_BASE_URL")
    lmstudio_base_url: str = Field(default="http://localhost:1234/v1", validation_alias="LMSTUDIO_BASE_URL")

    # Cloud backends
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta", validation_alias="GEMINI_BASE_URL"
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", validation_alias="OPENROUTER_BASE_URL"
    )
    gemini_api_key: Optional[SecretStr] = Field(default=None, validation_alias="GEMINI_API_KEY")
    notebooklm_api_key: Optional[SecretStr] = Field(default=None, validation_alias="NOTEBOOKLM_API_KEY")
    openrouter_api_key: Optional[SecretStr] = Field(default=None, validation_alias="OPENROUTER_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash-exp", validation_alias="GEMINI_MODEL")
    openrouter_model: str = Field(default="openai/gpt-3.5-turbo", validation_alias="OPENROUTER_MODEL")

    # Retry
    ollama_max_retries: int = Field(default=3, validation_alias="OLLAMA_MAX_RETRIES", ge=1)
    retry_base_delay: float = Field(default=1.0, validation_alias="RETRY_BASE_DELAY", ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, validation_alias="RETRY_BACKOFF_MULTIPLIER", ge=1)

    # Usage
    usage_max_entries: int = Field(default=1000, validation_alias="USAGE_MAX_ENTRIES", ge=1)

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="console", validation_alias="LOG_FORMAT")
    metrics_enabled: bool = Field(default=True, validation_alias="METRICS_ENABLED")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return v

    @field_validator("ollama_base_url", "lmstudio_base_url", "gemini_base_url", "openrouter_base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    # Properties
    @property
    def effective_notebooklm_key(self) -> Optional[SecretStr]:
        return self.notebooklm_api_key or self.gemini_api_key


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
