import pytest

from playboard.config import DEFAULT_EVAL_URL, Settings
from playboard.errors import InvalidSettingError


def test_defaults(monkeypatch):
    for name in ("PLAYBOARD_AI_URL", "PLAYBOARD_AI_DEPTH", "PLAYBOARD_EVAL_URL", "PLAYBOARD_SHOW_EVAL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()
    assert settings.ai_url == "http://localhost:8000"
    assert settings.ai_depth == 2
    assert settings.eval_url == DEFAULT_EVAL_URL
    assert settings.eval_depth == 18
    assert settings.show_evaluation is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PLAYBOARD_AI_URL", "http://engine.internal:9000/")
    monkeypatch.setenv("PLAYBOARD_AI_DEPTH", "4")
    monkeypatch.setenv("PLAYBOARD_AI_TIMEOUT", "2.5")
    monkeypatch.setenv("PLAYBOARD_SHOW_EVAL", "yes")
    monkeypatch.setenv("PLAYBOARD_LOG_LEVEL", "debug")

    settings = Settings.from_env()
    assert settings.ai_url == "http://engine.internal:9000"
    assert settings.ai_depth == 4
    assert settings.ai_timeout == 2.5
    assert settings.show_evaluation is True
    assert settings.log_level == "DEBUG"


def test_bad_values_are_rejected(monkeypatch):
    monkeypatch.setenv("PLAYBOARD_AI_DEPTH", "deep")
    with pytest.raises(InvalidSettingError):
        Settings.from_env()

    monkeypatch.setenv("PLAYBOARD_AI_DEPTH", "7")
    with pytest.raises(InvalidSettingError):
        Settings.from_env()
