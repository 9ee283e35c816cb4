"""Tests for configuration loading, validation and provider selection."""

from __future__ import annotations

import pytest
from pydantic import SecretStr, ValidationError

from termoracle.config.settings import (
    AgentConfig,
    ConfigurationError,
    DisplayConfig,
    SearchConfig,
    Settings,
    load_settings,
    select_provider,
)


pytestmark = pytest.mark.usefixtures("isolated_env")


class TestSettings:
    def test_default_settings(self) -> None:
        settings = Settings()
        assert settings.llm.provider == "auto"
        assert settings.agent.max_steps == 15
        assert settings.search.max_images == 15
        assert settings.search.default_results == 5
        assert settings.display.min_image_width == 30
        assert settings.display.max_image_width == 80

    def test_search_config_defaults(self) -> None:
        config = SearchConfig()
        assert config.max_price == 1000
        assert config.snippet_chars == 1200
        assert config.search_type == "web"

    def test_display_config_defaults(self) -> None:
        config = DisplayConfig()
        assert config.spacing == 2
        assert config.max_description_lines == 3

    def test_step_budget_is_capped(self) -> None:
        with pytest.raises(ValidationError):
            AgentConfig(max_steps=16)

    def test_load_settings_missing_file(self, tmp_path) -> None:
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.agent.max_steps == 15

    def test_load_settings_from_yaml(self, tmp_path) -> None:
        path = tmp_path / "termoracle.yaml"
        path.write_text("agent:\n  max_steps: 8\nsearch:\n  max_images: 10\n")
        settings = load_settings(path)
        assert settings.agent.max_steps == 8
        assert settings.search.max_images == 10

    def test_unprefixed_env_keys_are_mapped(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.setenv("VALYU_API_KEY", "valyu-test")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.anthropic_api_key.get_secret_value() == "sk-ant-test"
        assert settings.valyu_api_key.get_secret_value() == "valyu-test"

    def test_dotenv_file_is_read(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        # Registered so monkeypatch removes the value the loader writes.
        monkeypatch.setenv("OPENAI_API_KEY", "")
        (tmp_path / ".env").write_text("# keys\nOPENAI_API_KEY='sk-from-dotenv'\n")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.openai_api_key.get_secret_value() == "sk-from-dotenv"


class TestSelectProvider:
    def test_prefers_anthropic_when_both_present(self) -> None:
        settings = Settings(anthropic_api_key=SecretStr("a"), openai_api_key=SecretStr("o"))
        assert select_provider(settings) == "anthropic"

    def test_falls_back_to_openai(self) -> None:
        settings = Settings(openai_api_key=SecretStr("o"))
        assert select_provider(settings) == "openai"

    def test_no_keys_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError, match="No Anthropic or OpenAI"):
            select_provider(Settings())

    def test_explicit_provider_requires_its_key(self) -> None:
        settings = Settings(anthropic_api_key=SecretStr("a"))
        settings.llm.provider = "openai"
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            select_provider(settings)
