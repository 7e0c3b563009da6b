"""
config.py
Runtime settings (data file locations, store capacity, logging).
Override any field with a GYM_* environment variable or a .env file.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GYM_",
        env_file=".env",
        extra="ignore",
    )

    # Paths
    DATA_FILE: Path = BASE_DIR / "members.txt"
    CREDENTIALS_FILE: Path = BASE_DIR / "owner.txt"

    # Store
    MAX_MEMBERS: int = 100
    EXPIRY_WARNING_DAYS: int = 30
    SEED_SAMPLE_DATA: bool = True

    # First-run owner account
    DEFAULT_ADMIN_PASSWORD: str = "admin123"

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("MAX_MEMBERS")
    @classmethod
    def capacity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("MAX_MEMBERS must be greater than 0")
        return v

    @field_validator("EXPIRY_WARNING_DAYS")
    @classmethod
    def window_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("EXPIRY_WARNING_DAYS must not be negative")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.strip().upper()


settings = Settings()


def get_settings() -> Settings:
    return settings
