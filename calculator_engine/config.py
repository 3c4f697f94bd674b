"""
Engine configuration.
Numerical caps and tolerances, overridable through CALC_ENGINE_* environment variables.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent


class EngineSettings(BaseSettings):
    """
    Settings loaded from environment variables or a .env file at the project root.
    (Environment variables take precedence over .env)
    """
    # Logging
    LOG_LEVEL: str = "INFO"

    # Iteration caps
    MAX_PAYOFF_MONTHS: int = 600  # 50 years
    MAX_GOAL_MONTHS: int = 1200  # 100 years
    PAYOFF_BALANCE_EPSILON: float = 0.01

    # IRR solver
    IRR_INITIAL_GUESS: float = 0.1
    IRR_MAX_ITERATIONS: int = 100
    IRR_TOLERANCE: float = 1e-6

    # Planning assumptions
    SAFE_WITHDRAWAL_RATE: float = 0.04
    FINANCING_DOWNPAYMENT_STEPS: int = 10

    model_config = SettingsConfigDict(
        env_prefix="CALC_ENGINE_",
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Cached settings instance."""
    return EngineSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
