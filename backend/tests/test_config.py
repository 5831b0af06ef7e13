"""Tests for config.Settings.from_env."""

import pytest

import config

_ENV_VARS = (
    "AI_PROVIDER",
    "AI_MODEL",
    "AI_BASE_URL",
    "AI_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "AI_LANGUAGE",
    "AI_TIMEOUT_SECONDS",
    "GOOGLE_MAPS_API_KEY",
    "IMAGE_LOOKUP_CONCURRENCY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = config.Settings.from_env()

    assert settings.provider == "gemini"
    assert settings.model == config.DEFAULT_MODELS["gemini"]
    assert settings.language == "Spanish"
    assert settings.timeout_seconds == 60
    assert settings.image_lookup_concurrency == 4
    assert not settings.ai_enabled


def test_provider_specific_key_wins(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "Anthropic")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
    monkeypatch.setenv("AI_API_KEY", "generic")

    settings = config.Settings.from_env()

    assert settings.provider == "anthropic"
    assert settings.api_key == "sk-ant"
    assert settings.model == "claude-sonnet-4-6"
    assert settings.ai_enabled


def test_generic_key_used_when_specific_missing(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "openai")
    monkeypatch.setenv("AI_API_KEY", "generic")

    assert config.Settings.from_env().api_key == "generic"


def test_unknown_provider_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "llama")

    assert config.Settings.from_env().provider == "gemini"


def test_overrides(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "custom")
    monkeypatch.setenv("AI_MODEL", "mistral-small")
    monkeypatch.setenv("AI_BASE_URL", "http://localhost:11434/v1")
    monkeypatch.setenv("AI_LANGUAGE", "English")
    monkeypatch.setenv("AI_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("IMAGE_LOOKUP_CONCURRENCY", "2")

    settings = config.Settings.from_env()

    assert settings.model == "mistral-small"
    assert settings.base_url == "http://localhost:11434/v1"
    assert settings.language == "English"
    assert settings.timeout_seconds == 15.0
    assert settings.image_lookup_concurrency == 2


@pytest.mark.parametrize(
    "timeout, concurrency",
    [("soon", "many"), ("-5", "0"), ("  ", "")],
)
def test_invalid_numbers_fall_back_to_defaults(monkeypatch, timeout, concurrency):
    monkeypatch.setenv("AI_TIMEOUT_SECONDS", timeout)
    monkeypatch.setenv("IMAGE_LOOKUP_CONCURRENCY", concurrency)

    settings = config.Settings.from_env()

    assert settings.timeout_seconds == 60
    assert settings.image_lookup_concurrency == 4


def test_fractional_concurrency_uses_default(monkeypatch):
    monkeypatch.setenv("IMAGE_LOOKUP_CONCURRENCY", "2.5")

    assert config.Settings.from_env().image_lookup_concurrency == 4
