"""
Centralized configuration management for the maturity assessment engine.

Provides environment-specific configuration with validation, type safety,
and comprehensive settings management using Pydantic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

PACKAGE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = PACKAGE_DIR / "source_data"


class LoggingConfig(BaseSettings):
    """
    Logging configuration settings.

    Manages logging levels, output formats, and file destinations
    with environment-specific defaults.

    Example:
        >>> log_config = LoggingConfig(level="DEBUG", file_path="./logs/app.log")
        >>> log_config.level
        'DEBUG'
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field("./logs/app.log", description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    @field_validator("file_path")
    def validate_log_path(cls, v):
        """Ensure log directory exists."""
        if v:
            log_path = Path(v)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return v


class SecurityConfig(BaseSettings):
    """
    Security configuration settings.

    Covers session lifetime and CORS settings for the API.

    Example:
        >>> sec_config = SecurityConfig()
        >>> print(sec_config.session_timeout_minutes)
    """

    # Session lifetime (sliding, renewed on every access)
    session_timeout_minutes: int = Field(480, ge=1, description="Session timeout (minutes)")

    # CORS settings
    cors_origins: list[str] = Field(["*"], description="Allowed CORS origins")
    cors_methods: list[str] = Field(
        ["GET", "POST", "PUT", "DELETE"], description="Allowed CORS methods"
    )

    model_config = {"env_prefix": "SECURITY_", "case_sensitive": False}


class AssessmentConfig(BaseSettings):
    """
    Assessment engine settings.

    Holds the location of the bundled question bank, language defaults and
    the score thresholds used to bucket maturity and risk levels.

    Example:
        >>> cfg = AssessmentConfig(beginner_max=40, intermediate_max=70)
        >>> cfg.beginner_max
        40
    """

    data_dir: Path = Field(DEFAULT_DATA_DIR, description="Directory holding question modules")
    default_language: str = Field("en", min_length=2, description="Fallback display language")
    supported_languages: list[str] = Field(["en", "ja"], description="Display languages")

    # Maturity buckets: score <= beginner_max is beginner, <= intermediate_max intermediate
    beginner_max: float = Field(50, ge=0, le=100)
    intermediate_max: float = Field(75, ge=0, le=100)

    # Risk buckets: score <= risk_high_max is HIGH, <= risk_medium_max MEDIUM
    risk_high_max: float = Field(35, ge=0, le=100)
    risk_medium_max: float = Field(65, ge=0, le=100)

    max_issues_per_category: int = Field(3, ge=1, description="Critical issues kept per category")
    apply_category_scope: bool = Field(
        True, description="Restrict sessions to the categories of their assessment type"
    )

    model_config = {"env_prefix": "ASSESSMENT_", "case_sensitive": False}

    @model_validator(mode="after")
    def validate_thresholds(self):
        """Ensure thresholds are ordered."""
        if self.beginner_max >= self.intermediate_max:
            raise ValueError("beginner_max must be lower than intermediate_max")
        if self.risk_high_max >= self.risk_medium_max:
            raise ValueError("risk_high_max must be lower than risk_medium_max")
        if self.default_language not in self.supported_languages:
            raise ValueError("default_language must be one of supported_languages")
        return self


class ApplicationConfig(BaseSettings):
    """
    Main application configuration.

    Example:
        >>> config = get_settings()
        >>> print(config.app.environment)
    """

    title: str = Field("Cloud Native Maturity Assessment", description="Application title")
    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    version: str = Field("0.1.0", description="Application version")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled in development."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


class Settings:
    """
    Complete application settings container.

    Provides structured access to all configuration sections
    with lazy loading and caching.

    Example:
        >>> settings = get_settings()
        >>> print(settings.assessment.data_dir)
        >>> print(settings.logging.level)
        >>> print(settings.app.environment)
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._logging: LoggingConfig | None = None
        self._security: SecurityConfig | None = None
        self._assessment: AssessmentConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        """Get application configuration."""
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        if self._logging is None:
            # Set logging level based on environment
            level = "DEBUG" if self.app.debug else "INFO"
            if self.app.environment == "production":
                level = "WARNING"
            self._logging = LoggingConfig(level=level)
        return self._logging

    @property
    def security(self) -> SecurityConfig:
        """Get security configuration."""
        if self._security is None:
            self._security = SecurityConfig()
        return self._security

    @property
    def assessment(self) -> AssessmentConfig:
        """Get assessment engine configuration."""
        if self._assessment is None:
            self._assessment = AssessmentConfig()
        return self._assessment

    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.app.environment == "testing"

    def get_environment_info(self) -> dict[str, Any]:
        """Get summary of current environment configuration."""
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "logging_level": self.logging.level,
            "data_dir": str(self.assessment.data_dir),
            "languages": list(self.assessment.supported_languages),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    This function uses LRU cache to ensure only one settings
    instance is created per application run.

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a configuration file.

    Args:
        file_path: Path to a JSON configuration file whose top-level keys are
            section prefixes (``app``, ``log``, ``security``, ``assessment``)

    Returns:
        Settings instance with loaded configuration

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        ValueError: If file format is unsupported or invalid

    Example:
        >>> settings = load_settings_from_file("config/production.json")
        >>> print(settings.app.environment)
    """
    import json

    config_path = Path(file_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    if config_path.suffix.lower() == ".json":
        with open(config_path, encoding="utf-8") as f:
            config_data = json.load(f)
    else:
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    # Set environment variables from config
    for section, values in config_data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                env_key = f"{section.upper()}_{key.upper()}"
                if isinstance(value, (list, dict)):
                    os.environ[env_key] = json.dumps(value)
                else:
                    os.environ[env_key] = str(value)

    # Clear cache and return new settings
    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> Settings:
    """
    Override specific settings for testing or development.

    Args:
        **kwargs: Settings to override, named ``<section>_<field>``

    Returns:
        Settings instance with overrides applied

    Example:
        >>> settings = override_settings(
        ...     app_environment="testing",
        ...     assessment_beginner_max=40,
        ... )
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()