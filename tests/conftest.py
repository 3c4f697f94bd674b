import pytest

from calculator_engine.config import reset_settings


@pytest.fixture
def engine_env(monkeypatch):
    """Override CALC_ENGINE_* settings for one test."""

    def _set(**overrides):
        for key, value in overrides.items():
            monkeypatch.setenv(f"CALC_ENGINE_{key}", str(value))
        reset_settings()

    yield _set
    reset_settings()
