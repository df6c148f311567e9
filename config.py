"""
Configuration settings for the cortex-tutor engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Profile Storage
    # ========================================
    profile_backend: Literal["json", "sql"] = Field(
        default="json",
        description="Where learner profiles are stored",
    )
    profile_dir: Path = Field(
        default=Path.home() / ".cortex" / "profiles",
        description="Directory for JSON learner profiles",
    )
    database_url: str = Field(
        default="sqlite:///cortex_tutor.db",
        description="SQLAlchemy connection string for the SQL profile store",
    )

    # ========================================
    # Text Generation (Ollama-compatible)
    # ========================================
    llm_api_url: str | None = Field(
        default=None,
        description="Base URL of the generation service (None for offline templates)",
    )
    llm_model: str = Field(
        default="llama3.2",
        description="Model name sent with each generation request",
    )
    llm_timeout_ms: int = Field(
        default=30000,
        description="Generation request timeout in milliseconds",
    )
    llm_retry_attempts: int = Field(
        default=3,
        description="Generation attempts before giving up",
    )

    # ========================================
    # Tutoring Engine
    # ========================================
    ema_alpha: float = Field(
        default=0.3,
        description="Base EMA weight for new observations in profile updates",
    )
    max_exchanges: int = Field(
        default=15,
        description="Hard cap on exchanges per dialogue",
    )
    inverse_max_exchanges: int = Field(
        default=10,
        description="Exchange cap for inverse (teaching) dialogues",
    )
    long_session_minutes: float = Field(
        default=45.0,
        description="Session length after which a break is suggested",
    )
    random_seed: int | None = Field(
        default=None,
        description="Seed for template choices (None for nondeterministic)",
    )

    def has_llm_configured(self) -> bool:
        """Check if an HTTP generation service is configured."""
        return bool(self.llm_api_url)

    def get_engine_config(self) -> dict[str, Any]:
        """Get tutoring engine tunables as a dictionary."""
        return {
            "ema_alpha": self.ema_alpha,
            "max_exchanges": self.max_exchanges,
            "inverse_max_exchanges": self.inverse_max_exchanges,
            "long_session_minutes": self.long_session_minutes,
        }

    def get_llm_config(self) -> dict[str, Any]:
        """Get text generation settings as a dictionary."""
        return {
            "api_url": self.llm_api_url,
            "model": self.llm_model,
            "timeout_ms": self.llm_timeout_ms,
            "retry_attempts": self.llm_retry_attempts,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
