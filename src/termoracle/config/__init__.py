"""Configuration management for termoracle.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for sensitive values like
API keys.
"""

from termoracle.config.settings import (
    ConfigurationError,
    Settings,
    load_settings,
    select_provider,
)

__all__ = ["ConfigurationError", "Settings", "load_settings", "select_provider"]
