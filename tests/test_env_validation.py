import os

import pytest

from env_validation import (
    EngineSettings,
    EnvironmentConfigError,
    get_env_bool,
    get_env_float,
    load_settings,
    validate_environment,
)

_ENGINE_VARS = (
    "CULTURAL_CONTEXT_PATH",
    "NEEDS_MODEL_URL",
    "NEEDS_MODEL_TIMEOUT",
    "NEEDS_MODEL_ENABLED",
    "SENSORY_TOLERANCE",
    "ESCALATION_STREAK",
    "DEESCALATION_STREAK",
    "DIFFICULTY_BIAS_THRESHOLD",
    "ASSESSMENT_QUESTION_COUNT",
    "PROFILE_HISTORY_LIMIT",
    "DB_PATH",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in _ENGINE_VARS:
        monkeypatch.delenv(var, raising=False)


def test_defaults_match_documented_heuristics():
    settings = load_settings()

    assert settings == EngineSettings()
    assert settings.sensory_tolerance == 0.1
    assert settings.escalation_streak == 3
    assert settings.deescalation_streak == 2
    assert settings.model_url is None


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("NEEDS_MODEL_URL", "https://model.example/score")
    monkeypatch.setenv("NEEDS_MODEL_TIMEOUT", "2.5")
    monkeypatch.setenv("NEEDS_MODEL_ENABLED", "false")
    monkeypatch.setenv("ESCALATION_STREAK", "4")
    monkeypatch.setenv("DB_PATH", "/tmp/profiles.db")

    settings = load_settings()

    assert settings.model_url == "https://model.example/score"
    assert settings.model_timeout == 2.5
    assert settings.model_enabled is False
    assert settings.escalation_streak == 4
    assert settings.db_path == "/tmp/profiles.db"
    assert settings.as_dict()["escalation_streak"] == 4


def test_malformed_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("SENSORY_TOLERANCE", "loose")

    assert get_env_float("SENSORY_TOLERANCE", 0.1) == 0.1
    assert load_settings().sensory_tolerance == 0.1


def test_env_bool_parsing(monkeypatch):
    monkeypatch.setenv("FLAG", "Yes")
    assert get_env_bool("FLAG") is True
    monkeypatch.setenv("FLAG", "0")
    assert get_env_bool("FLAG", default=True) is False
    assert get_env_bool("UNSET_FLAG", default=True) is True


def test_validate_environment_applies_db_default(monkeypatch):
    monkeypatch.setenv("DB_PATH", "")

    validate_environment()

    assert os.environ["DB_PATH"] == "data.db"


def test_validate_environment_rejects_bad_url(monkeypatch):
    monkeypatch.setenv("NEEDS_MODEL_URL", "model.local:8000")

    with pytest.raises(EnvironmentConfigError):
        validate_environment()


def test_validate_environment_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("ESCALATION_STREAK", "three")

    with pytest.raises(EnvironmentConfigError):
        validate_environment()


def test_validate_environment_rejects_negative_numbers(monkeypatch):
    monkeypatch.setenv("NEEDS_MODEL_TIMEOUT", "-1")

    with pytest.raises(EnvironmentConfigError):
        validate_environment()


@pytest.mark.parametrize("var", ["ESCALATION_STREAK", "DEESCALATION_STREAK", "ASSESSMENT_QUESTION_COUNT"])
def test_validate_environment_rejects_zero_counts(monkeypatch, var):
    monkeypatch.setenv(var, "0")

    with pytest.raises(EnvironmentConfigError, match="at least 1"):
        validate_environment()


def test_zero_streaks_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("ESCALATION_STREAK", "0")
    monkeypatch.setenv("DEESCALATION_STREAK", "0")

    settings = load_settings()

    assert settings.escalation_streak == 3
    assert settings.deescalation_streak == 2
