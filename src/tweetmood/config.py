from __future__ import annotations

from typing import Optional
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

HF_INFERENCE_BASE = "https://api-inference.huggingface.co/models"


class Settings(BaseSettings):
    """Application settings with validation.

    All settings are loaded from environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    storage_backend: str = "sqlite"  # sqlite | supabase
    sqlite_path: str = "tweetmood.sqlite3"
    supabase_url: str = ""
    supabase_key: str = ""
    raw_table: str = "Extracted Uncleaned"
    processed_table: str = "processed_tweets"

    # Classification
    classifier_backend: str = "huggingface"  # huggingface | anthropic | local
    huggingface_api_key: str = ""
    huggingface_model: str = "cardiffnlp/twitter-xlm-roberta-base-sentiment"
    huggingface_fallback_model: str = "cardiffnlp/twitter-roberta-base-sentiment-latest"
    huggingface_endpoints: str = ""  # Comma-separated override for the primary model
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_model: str = "claude-sonnet-4-20250514"
    request_timeout: float = 30.0
    max_retries: int = 2
    backoff_base: float = 1.0

    # Label mapping thresholds
    strong_sentiment_threshold: float = 0.8
    neutral_positive_threshold: float = 0.72

    # Batching
    batch_size: int = 10
    concurrency: int = 3
    chunk_delay: float = 0.5
    batch_delay: float = 1.0

    # Pipeline
    cutoff_year: int = 2024
    page_size: int = 1000

    # External ingestion workflow
    ingestion_webhook_url: str = ""
    poll_interval: float = 10.0
    poll_timeout: float = 180.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("storage_backend")
    @classmethod
    def storage_backend_known(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("sqlite", "supabase"):
            raise ValueError(f"storage_backend must be sqlite or supabase, got {v}")
        return v

    @field_validator("classifier_backend")
    @classmethod
    def classifier_backend_known(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("huggingface", "anthropic", "local"):
            raise ValueError(
                f"classifier_backend must be huggingface, anthropic or local, got {v}"
            )
        return v

    @field_validator("batch_size", "concurrency", "page_size")
    @classmethod
    def must_be_positive_int(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1, got {v}")
        return v

    @field_validator("max_retries")
    @classmethod
    def retries_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_retries must be >= 0, got {v}")
        return v

    @field_validator("request_timeout", "poll_interval", "poll_timeout")
    @classmethod
    def must_be_positive_float(cls, v: float, info) -> float:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0, got {v}")
        return v

    @field_validator("backoff_base", "chunk_delay", "batch_delay")
    @classmethod
    def delay_non_negative(cls, v: float, info) -> float:
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0, got {v}")
        return v

    @field_validator("strong_sentiment_threshold", "neutral_positive_threshold")
    @classmethod
    def threshold_range(cls, v: float, info) -> float:
        if not 0 <= v <= 1:
            raise ValueError(f"{info.field_name} must be in [0, 1], got {v}")
        return v

    @field_validator("cutoff_year")
    @classmethod
    def cutoff_year_reasonable(cls, v: int) -> int:
        if v < 2006 or v > 9999:
            raise ValueError(f"cutoff_year must be in [2006, 9999], got {v}")
        return v

    @model_validator(mode="after")
    def validate_poll_window(self) -> "Settings":
        if self.poll_interval > self.poll_timeout:
            raise ValueError(
                f"poll_interval ({self.poll_interval}) must be <= poll_timeout ({self.poll_timeout})"
            )
        return self

    # Property helpers to get parsed lists
    @property
    def huggingface_endpoints_list(self) -> list[str]:
        custom = [e.strip() for e in self.huggingface_endpoints.split(",") if e.strip()]
        if custom:
            return custom
        return [f"{HF_INFERENCE_BASE}/{self.huggingface_model}"]

    @property
    def huggingface_fallback_endpoints_list(self) -> list[str]:
        return [f"{HF_INFERENCE_BASE}/{self.huggingface_fallback_model}"]

    def validate_supabase_credentials(self) -> None:
        """Raise if Supabase credentials are missing."""
        if not self.supabase_url or not self.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")

    def validate_huggingface_credentials(self) -> None:
        """Raise if the HuggingFace token is missing."""
        if not self.huggingface_api_key:
            raise ValueError("HUGGINGFACE_API_KEY must be set for HuggingFace sentiment")

    def validate_anthropic_credentials(self) -> None:
        """Raise if the Anthropic key is missing."""
        if not self.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY must be set for Claude sentiment")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings
