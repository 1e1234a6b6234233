"""Configuration system for BillPort Agents.

This module provides Pydantic Settings-based configuration with environment
variable support and sensible defaults for the BillPort bill services.

Usage:
    from billport_agents.config import BillPortConfig

    # Load from environment variables and .env file
    config = BillPortConfig()

    # Access LLM settings
    print(config.llm.model)

    # Access analysis settings
    print(config.analysis.due_soon_days)
"""

import os
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """LLM configuration for generated bill insights.

    Environment Variables:
        BILLPORT_LLM_ENABLED: Use the generative insight path when a key exists
        BILLPORT_LLM_REQUIRED: Refuse to start without a usable API key
        BILLPORT_LLM_MODEL: Claude model name
        BILLPORT_LLM_TEMPERATURE: Sampling temperature (0.0-1.0)
        BILLPORT_LLM_MAX_TOKENS: Maximum output tokens
        BILLPORT_LLM_API_KEY: Anthropic API key (falls back to ANTHROPIC_API_KEY)
        BILLPORT_LLM_TIMEOUT: Request timeout in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLPORT_LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(
        default=True,
        description="Use the generative insight path when an API key is available",
    )
    required: bool = Field(
        default=False,
        description="Fail at startup instead of falling back when no API key is set",
    )
    model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model identifier for the LLM",
    )
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for generation",
    )
    max_tokens: int = Field(
        default=500,
        gt=0,
        le=8192,
        description="Maximum tokens in response",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Ensure model name is not empty."""
        if not v or not v.strip():
            raise ValueError("Model name cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def fallback_api_key(self):
        """Use ANTHROPIC_API_KEY when no BillPort-specific key is set."""
        if not self.api_key:
            self.api_key = os.getenv("ANTHROPIC_API_KEY") or None
        return self

    @property
    def is_available(self) -> bool:
        """Whether the generative path can be used at all."""
        return self.enabled and bool(self.api_key)


class AnalysisConfig(BaseSettings):
    """Thresholds used by the bill analysis components.

    Environment Variables:
        BILLPORT_ANALYSIS_DUE_SOON_DAYS: Days before due date that count as due soon
        BILLPORT_ANALYSIS_EMAIL_MIN_CONFIDENCE: Minimum score for email bill candidates
        BILLPORT_ANALYSIS_RECURRING_WINDOW_DAYS: Transaction window for recurring detection
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLPORT_ANALYSIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    due_soon_days: int = Field(
        default=7,
        ge=0,
        le=90,
        description="Inclusive due-soon window in days",
    )
    email_min_confidence: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Email candidates must score strictly above this",
    )
    recurring_window_days: Optional[int] = Field(
        default=None,
        gt=0,
        description="Only analyze transactions this recent; None for all",
    )


class RateLimitConfig(BaseSettings):
    """Limits for bill scans and welcome emails.

    Environment Variables:
        BILLPORT_RATE_LIMIT_EXTRACTION_MAX_REQUESTS: Scans per window per user
        BILLPORT_RATE_LIMIT_EXTRACTION_WINDOW_SECONDS: Scan window length
        BILLPORT_RATE_LIMIT_WELCOME_EMAIL_MAX_REQUESTS: Welcome emails per window
        BILLPORT_RATE_LIMIT_WELCOME_EMAIL_WINDOW_SECONDS: Welcome email window length
        BILLPORT_RATE_LIMIT_FILE_HASH_TTL_SECONDS: How long a scanned file is remembered
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLPORT_RATE_LIMIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    extraction_max_requests: int = Field(default=10, ge=1)
    extraction_window_seconds: float = Field(default=24 * 60 * 60, gt=0)
    welcome_email_max_requests: int = Field(default=1, ge=1)
    welcome_email_window_seconds: float = Field(default=60, gt=0)
    file_hash_ttl_seconds: float = Field(default=60 * 60, gt=0)


class BillPortConfig(BaseSettings):
    """Root configuration for BillPort Agents.

    Environment Variables:
        BILLPORT_ENV: Environment name (development, staging, production, test)
        BILLPORT_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        BILLPORT_DEBUG: Enable verbose debug logging

    Example:
        # Load all configuration from environment
        config = BillPortConfig()

        # Override specific settings
        config = BillPortConfig(
            llm=LLMConfig(enabled=False),
            analysis=AnalysisConfig(due_soon_days=3),
        )
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = Field(
        default="development",
        description="Environment name (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable verbose debug logging for development",
    )

    # Nested configuration
    llm: LLMConfig = Field(default_factory=LLMConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production", "test"}
        v_lower = v.lower().strip()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.env == "development"

    @property
    def is_debug(self) -> bool:
        """Check if debug mode is enabled (via flag or log level)."""
        return self.debug or self.log_level == "DEBUG"
