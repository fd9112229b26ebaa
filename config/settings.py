"""PaperTrade global settings — loaded from environment variables via .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """All configuration flows through this class. Never read env vars directly."""

    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Environment ──────────────────────────────────────────────
    papertrade_env: Literal["dev", "prod"] = "dev"

    # ── Simulation ───────────────────────────────────────────────
    tick_interval_seconds: float = 2.0
    history_cap: int = 50
    random_seed: int | None = None
    instruments_path: Path = CONFIG_DIR / "instruments.yaml"

    # ── Portfolio ────────────────────────────────────────────────
    default_initial_capital: float = 10_000.0

    # ── Persistence ──────────────────────────────────────────────
    store_backend: Literal["memory", "file", "redis"] = "file"
    state_path: Path = PROJECT_ROOT / "data" / "portfolio.json"
    redis_url: SecretStr = SecretStr("redis://localhost:6379/0")
    redis_key_prefix: str = "papertrade:"

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("tick_interval_seconds", "default_initial_capital")
    @classmethod
    def _check_positive(cls, value: float) -> float:
        if value <= 0:
            msg = f"must be positive, got {value}"
            raise ValueError(msg)
        return value

    @field_validator("history_cap")
    @classmethod
    def _check_history_cap(cls, value: int) -> int:
        if value < 1:
            msg = f"history_cap must be at least 1, got {value}"
            raise ValueError(msg)
        return value


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Singleton settings loader — reads .env once, reuses thereafter."""
    global _settings_instance  # noqa: PLW0603
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
