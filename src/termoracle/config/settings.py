"""Configuration management for termoracle.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/termoracle.yaml")

# Un-prefixed variables most users already have exported.
_ENV_KEY_MAP = {
    "ANTHROPIC_API_KEY": "anthropic_api_key",
    "OPENAI_API_KEY": "openai_api_key",
    "VALYU_API_KEY": "valyu_api_key",
}


class LLMConfig(BaseModel):
    provider: Literal["auto", "anthropic", "openai"] = Field(default="auto")
    anthropic_model: str = Field(default="claude-3-5-sonnet-latest")
    openai_model: str = Field(default="gpt-4o")
    openai_base_url: str | None = Field(default=None)
    max_tokens: int = Field(default=4096, gt=0)
    description_max_tokens: int = Field(default=1024, gt=0)


class SearchConfig(BaseModel):
    base_url: str = Field(default="https://api.valyu.network/v1")
    search_type: str = Field(default="web")
    max_price: float = Field(default=1000, gt=0, description="Cost ceiling per search call")
    default_results: int = Field(default=5, ge=1, le=20)
    snippet_chars: int = Field(default=1200, ge=600, le=1200)
    max_snippets: int = Field(default=5, gt=0)
    max_images: int = Field(default=15, gt=0)
    timeout: float = Field(default=60.0, gt=0)


class ImagesConfig(BaseModel):
    directory: Path = Field(default=Path("downloaded_images"))
    download_timeout: float = Field(default=30.0, gt=0)
    max_dimension: int = Field(default=1568, gt=0)
    jpeg_quality: int = Field(default=85, ge=1, le=100)


class AgentConfig(BaseModel):
    max_steps: int = Field(default=15, gt=0, le=15)
    enforce_image_analysis: bool = Field(
        default=True,
        description="Hold narrative text until every surfaced image is analysed",
    )
    replay_tool_turns: bool = Field(
        default=True,
        description="Replay tool calls and results from earlier user turns to the model",
    )


class HistoryConfig(BaseModel):
    path: Path = Field(default=Path("conversation_history.json"))


class DisplayConfig(BaseModel):
    min_image_width: int = Field(default=30, gt=0)
    max_image_width: int = Field(default=80, gt=0)
    spacing: int = Field(default=2, ge=0)
    max_description_lines: int = Field(default=3, gt=0)
    fallback_width: int = Field(default=120, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="WARNING")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for termoracle.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "TERMORACLE_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    anthropic_api_key: SecretStr = Field(default=SecretStr(""))
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    valyu_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    llm: LLMConfig = Field(default_factory=LLMConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigurationError(Exception):
    """Raised when no usable model credential is configured."""


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.info("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def select_provider(settings: Settings) -> Literal["anthropic", "openai"]:
    """Pick the chat provider once, from the configured credentials.

    Raises:
        ConfigurationError: If the requested (or any, for ``auto``)
            provider has no API key.
    """
    has_anthropic = bool(settings.anthropic_api_key.get_secret_value())
    has_openai = bool(settings.openai_api_key.get_secret_value())

    requested = settings.llm.provider
    if requested == "anthropic" and not has_anthropic:
        raise ConfigurationError("llm.provider is 'anthropic' but ANTHROPIC_API_KEY is not set")
    if requested == "openai" and not has_openai:
        raise ConfigurationError("llm.provider is 'openai' but OPENAI_API_KEY is not set")
    if requested != "auto":
        return requested

    if has_anthropic:
        return "anthropic"
    if has_openai:
        return "openai"
    raise ConfigurationError(
        "No Anthropic or OpenAI API keys found in environment -- please set at least one."
    )


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip("'\"")
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    for env_name, field_name in _ENV_KEY_MAP.items():
        value = os.environ.get(env_name, "")
        if value and not os.environ.get(f"TERMORACLE_{field_name.upper()}"):
            yaml_data[field_name] = value
