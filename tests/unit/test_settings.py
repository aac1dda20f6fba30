"""Tests for settings-derived configuration."""

from pathlib import Path

import pytest

from intake.clients.llm_client import ModelInvocationConfig
from intake.core.settings import LLMSettings, RetrySettings, SchemaSettings
from intake.resilience.retry import RetryPolicy


class TestSettings:
    def test_llm_settings_read_environment(self, monkeypatch):
        monkeypatch.setenv("LLM_MODEL", "llama3")
        monkeypatch.setenv("LLM_TIMEOUT_MS", "1500")

        settings = LLMSettings()

        assert settings.LLM_MODEL == "llama3"
        assert settings.LLM_TIMEOUT_MS == 1500

    def test_retry_settings_read_environment(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")

        assert RetrySettings().RETRY_MAX_ATTEMPTS == 5

    def test_schema_dirs_default_to_package(self):
        settings = SchemaSettings(SCHEMAS_DIR="", PROMPTS_DIR="")

        assert (settings.schemas_dir / "intent" / "v1.json").is_file()
        assert (settings.prompts_dir / "intent" / "v1.prompt.txt").is_file()

    def test_schema_dir_override(self, tmp_path):
        settings = SchemaSettings(SCHEMAS_DIR=str(tmp_path))

        assert settings.schemas_dir == Path(tmp_path).resolve()


class TestFrozenConfig:
    def test_model_config_from_settings(self, monkeypatch):
        monkeypatch.setattr(
            "intake.core.settings.llm_settings",
            LLMSettings(LLM_MODEL="mistral", LLM_STOP=["END"]),
        )

        config = ModelInvocationConfig.from_settings()

        assert config.model_name == "mistral"
        assert config.stop_sequences == ("END",)
        with pytest.raises(AttributeError):
            config.model_name = "other"

    def test_retry_policy_from_settings(self, monkeypatch):
        monkeypatch.setattr(
            "intake.core.settings.retry_settings",
            RetrySettings(RETRY_MAX_ATTEMPTS=4, RETRY_INITIAL_DELAY_MS=10),
        )

        policy = RetryPolicy.from_settings()

        assert policy.max_attempts == 4
        assert policy.initial_delay_ms == 10
