"""
Configuration settings for the adaptive learning engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
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
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///data/adaptive_learning.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/adaptive_learning.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # SM-2 Settings (for spaced repetition)
    # ========================================
    sm2_initial_ease: float = Field(
        default=2.5,
        description="Ease factor assigned to a newly scheduled question",
    )
    sm2_minimum_ease: float = Field(
        default=1.3,
        description="Lower bound for the ease factor",
    )
    sm2_first_interval: int = Field(
        default=1,
        ge=1,
        description="Days until the first successful review",
    )
    sm2_second_interval: int = Field(
        default=6,
        ge=1,
        description="Days until the second successful review",
    )
    sm2_jitter_low: float = Field(
        default=0.95,
        gt=0,
        description="Lower bound of the interval jitter factor",
    )
    sm2_jitter_high: float = Field(
        default=1.05,
        gt=0,
        description="Upper bound of the interval jitter factor",
    )
    sm2_maximum_interval: int = Field(
        default=36500,
        ge=1,
        description="Upper bound for a review interval in days",
    )
    due_questions_limit: int = Field(
        default=20,
        ge=1,
        description="Default number of questions returned by a due-questions query",
    )
    review_session_size: int = Field(
        default=20,
        ge=1,
        description="Default size of a spaced-repetition review session",
    )
    review_due_ratio: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Share of a review session filled with due/new questions",
    )

    # ========================================
    # Practice Quizzes
    # ========================================
    practice_question_count: int = Field(
        default=10,
        ge=1,
        description="Default number of questions in a practice quiz",
    )
    practice_mastery_threshold: int = Field(
        default=3,
        ge=1,
        description="Correct answers after which a related question counts as mastered",
    )

    # ========================================
    # Adaptive Reassignment
    # ========================================
    adaptive_similar_limit: int = Field(
        default=5,
        ge=0,
        description="Maximum tag-similar questions added to an adaptive assignment",
    )
    adaptive_due_days: int = Field(
        default=7,
        ge=1,
        description="Days until an adaptive follow-up assignment is due",
    )

    @model_validator(mode="after")
    def _check_jitter_range(self) -> "Settings":
        if self.sm2_jitter_low > self.sm2_jitter_high:
            raise ValueError("sm2_jitter_low must not exceed sm2_jitter_high")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
