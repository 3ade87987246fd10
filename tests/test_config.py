"""Tests for environment-driven configuration."""

import pytest

from diffsentry.config import (
    ProviderSettings,
    ReviewConfig,
    RoutingConfig,
    providers_from_env,
)

PROVIDER_VARS = (
    "GROQ_API_KEY", "GROQ_MODEL", "OPENAI_API_KEY", "OPENAI_BASE_URL",
    "OPENAI_MODEL", "OLLAMA_URL", "OLLAMA_MODEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in PROVIDER_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestReviewConfig:
    def test_defaults(self, monkeypatch):
        for name in ("DIFFSENTRY_MAX_FILES", "DIFFSENTRY_MAX_DIFF_LINES", "DIFFSENTRY_INCLUDE_TESTS"):
            monkeypatch.delenv(name, raising=False)

        config = ReviewConfig.from_env()

        assert config.max_files == 50
        assert config.max_diff_lines == 3000
        assert config.include_tests is False
        assert config.repo_rules_path == ".diffsentry/review-rules.md"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("DIFFSENTRY_MAX_FILES", "10")
        monkeypatch.setenv("DIFFSENTRY_MAX_DIFF_LINES", "500")
        monkeypatch.setenv("DIFFSENTRY_INCLUDE_TESTS", "yes")
        monkeypatch.setenv("DIFFSENTRY_PARALLEL_REVIEWS", "2")
        monkeypatch.setenv("DIFFSENTRY_MODEL_TIMEOUT_SECONDS", "7.5")

        config = ReviewConfig.from_env()

        assert (config.max_files, config.max_diff_lines) == (10, 500)
        assert config.include_tests is True
        assert config.parallel_reviews == 2
        assert config.model_timeout_seconds == 7.5

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("DIFFSENTRY_MAX_FILES", "many")

        with pytest.raises(ValueError):
            ReviewConfig.from_env()


class TestRoutingConfig:
    def test_task_overrides(self, monkeypatch):
        monkeypatch.setenv("DIFFSENTRY_LLM_SUMMARY_PROVIDER", "ollama")
        monkeypatch.setenv("DIFFSENTRY_LLM_FALLBACK_PROVIDER", "")
        monkeypatch.setenv("DIFFSENTRY_LLM_FALLBACK_ENABLED", "false")

        routing = RoutingConfig.from_env()

        assert routing.task_providers == {"summary": "ollama"}
        assert routing.fallback_provider is None
        assert routing.fallback_enabled is False


class TestProviders:
    def test_keyless_environment(self, clean_env):
        settings = {s.name: s for s in providers_from_env()}

        assert set(settings) == {"groq", "openai", "ollama"}
        assert not any(s.is_configured for s in settings.values())

    def test_keys_and_local_server(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("OLLAMA_URL", "http://gpu-box:11434/")

        settings = {s.name: s for s in providers_from_env()}

        assert settings["openai"].is_configured
        assert not settings["groq"].is_configured
        assert settings["ollama"].is_configured
        assert settings["ollama"].base_url == "http://gpu-box:11434/v1"

    def test_disabled_provider_is_not_configured(self):
        settings = ProviderSettings("groq", "https://x", "m", api_key="k", enabled=False)

        assert not settings.is_configured
