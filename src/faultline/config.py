"""Environment-based configuration for the diagnostics core."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from faultline.constants import (
    DEFAULT_ADVISOR_MAX_EXISTING,
    DEFAULT_ADVISOR_THRESHOLD,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CONFIDENCE_FLOOR,
    DEFAULT_LLM_MAX_CONCURRENCY,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_MAX_DIAGNOSTICS,
    DEFAULT_MAX_FRAGMENT_LENGTH,
    DEFAULT_MIN_FRAGMENT_LENGTH,
    DEFAULT_STAGE_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Reads from .env file and FAULTLINE_* environment variables.

    Every numeric knob is range-checked here so the analysis core can
    trust the values it receives.
    """

    # Feature toggles
    enable_error_detection: bool = True
    enable_llm_advisor: bool = True

    # Filtering and ranking
    confidence_floor: float = Field(
        default=DEFAULT_CONFIDENCE_FLOOR, ge=0.0, le=1.0
    )
    advisor_confidence_threshold: float = Field(
        default=DEFAULT_ADVISOR_THRESHOLD, ge=0.0, le=1.0
    )
    max_diagnostics: int = Field(
        default=DEFAULT_MAX_DIAGNOSTICS, ge=1, le=1000
    )
    advisor_max_existing: int = Field(
        default=DEFAULT_ADVISOR_MAX_EXISTING, ge=0, le=1000
    )

    # Fragment length contract
    min_fragment_length: int = Field(
        default=DEFAULT_MIN_FRAGMENT_LENGTH, ge=0
    )
    max_fragment_length: int = Field(
        default=DEFAULT_MAX_FRAGMENT_LENGTH, ge=1
    )

    # Cache
    cache_ttl_seconds: float = Field(
        default=DEFAULT_CACHE_TTL_SECONDS, gt=0
    )
    cache_max_entries: int = Field(
        default=DEFAULT_CACHE_MAX_ENTRIES, ge=1
    )

    # LLM backend
    llm_model: str = "ollama/qwen2.5-coder:7b"
    llm_api_base: str = ""
    llm_timeout_seconds: float = Field(
        default=DEFAULT_LLM_TIMEOUT_SECONDS, gt=0, le=600
    )
    llm_max_concurrency: int = Field(
        default=DEFAULT_LLM_MAX_CONCURRENCY, ge=1, le=64
    )
    llm_max_tokens: int = Field(default=512, ge=1, le=32_768)
    llm_temperature: float = Field(default=0.1, ge=0.0, le=2.0)

    # Scheduling
    stage_timeout_seconds: float = Field(
        default=DEFAULT_STAGE_TIMEOUT_SECONDS, gt=0, le=600
    )
    debounce_ms: int = Field(default=200, ge=0, le=60_000)

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(_LOG_LEVELS)}"
            )
        return level

    @field_validator("llm_model")
    @classmethod
    def _strip_model(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def _validate_fragment_bounds(self) -> Self:
        if self.max_fragment_length <= self.min_fragment_length:
            raise ValueError(
                "max_fragment_length must exceed min_fragment_length"
            )
        if not self.llm_model and self.enable_llm_advisor:
            logger.warning(
                "event=advisor_disabled reason=no_model_configured"
            )
            self.enable_llm_advisor = False
        return self

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "FAULTLINE_",
        "extra": "ignore",
        "validate_assignment": False,
    }
