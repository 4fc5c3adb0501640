"""Tests for environment driven settings."""

from __future__ import annotations

import pydantic
import pytest

from ropa_guardian.config import DEFAULT_ADVISORY_URL, Settings, load_settings

ENV_NAMES = (
    "AI_ENABLED",
    "ADVISORY_API_URL",
    "ADVISORY_CONSULT_TIMEOUT",
    "ADVISORY_ANALYSIS_TIMEOUT",
    "BREACH_NOTIFICATION_HOURS",
    "FLASK_SECRET_KEY",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> pytest.MonkeyPatch:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.mark.unit
def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = load_settings()
    assert settings.ai_enabled is True
    assert settings.advisory_url == DEFAULT_ADVISORY_URL
    assert settings.consult_timeout == 12.0
    assert settings.analysis_timeout == 10.0
    assert settings.breach_notification_hours == 72
    assert settings.log_level == "INFO"


@pytest.mark.unit
@pytest.mark.parametrize("value, enabled", [("false", False), ("0", False), ("OFF", False), ("true", True), ("", True)])
def test_ai_flag(clean_env: pytest.MonkeyPatch, value: str, enabled: bool) -> None:
    clean_env.setenv("AI_ENABLED", value)
    assert load_settings().ai_enabled is enabled


@pytest.mark.unit
def test_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ADVISORY_API_URL", "https://advisory.example/api/")
    clean_env.setenv("ADVISORY_CONSULT_TIMEOUT", "5")
    clean_env.setenv("BREACH_NOTIFICATION_HOURS", "24")
    clean_env.setenv("LOG_LEVEL", "debug")
    settings = load_settings()
    assert settings.advisory_url == "https://advisory.example/api"
    assert settings.consult_timeout == 5.0
    assert settings.breach_notification_hours == 24
    assert settings.log_level == "DEBUG"


@pytest.mark.unit
def test_env_file(clean_env: pytest.MonkeyPatch, tmp_path) -> None:
    (tmp_path / ".env").write_text("AI_ENABLED=false\nADVISORY_ANALYSIS_TIMEOUT=3\n", encoding="utf-8")
    settings = load_settings()
    assert settings.ai_enabled is False
    assert settings.analysis_timeout == 3.0


@pytest.mark.unit
@pytest.mark.parametrize("name, value", [
    ("BREACH_NOTIFICATION_HOURS", "not-a-number"),
    ("ADVISORY_ANALYSIS_TIMEOUT", "0"),
    ("LOG_LEVEL", "LOUD"),
])
def test_malformed_values_are_rejected(clean_env: pytest.MonkeyPatch, name: str, value: str) -> None:
    clean_env.setenv(name, value)
    with pytest.raises(pydantic.ValidationError):
        load_settings()


@pytest.mark.unit
def test_field_names_and_immutability() -> None:
    settings = Settings(ai_enabled=False, advisory_url="https://advisory.test/api/")
    assert settings.ai_enabled is False
    assert settings.advisory_url == "https://advisory.test/api"
    with pytest.raises(pydantic.ValidationError):
        settings.ai_enabled = True
