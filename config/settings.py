"""Pydantic Settings: typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scoring engine configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── CA components ────────────────────────────────────────
    ca_raw_max: float = 50.0  # Raw CA total is always out of 50
    default_part_weight: float = 2.5  # 50 marks / 20 parts
    part_weight_tolerance: float = 0.01
    # Used only when a CA scale has no conversion factor; flagged as a config gap
    default_conversion_factor: float = 0.4

    # ── Lab sessions ─────────────────────────────────────────
    lab_session_max_marks: float = 10.0
    lab_min_sessions: int = 2
    lab_only_scale: float = 100.0
    lab_pass_fraction: float = 0.5  # LAB scaled must reach 50% of LAB max

    # ── Persistence ──────────────────────────────────────────
    flush_debounce_ms: int = 1500
    score_entry_enabled: bool = True

    # ── Logging ──────────────────────────────────────────────
    log_level: str = "INFO"

    @property
    def flush_debounce_seconds(self) -> float:
        return self.flush_debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
