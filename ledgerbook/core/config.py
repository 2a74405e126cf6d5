"""
Configuration settings for Ledgerbook.

Values come from the environment (or a ``.env`` file) through Pydantic settings.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_type: Literal["sqlite", "postgresql"] = "sqlite"
    database_path: str = "./data/ledgerbook.db"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    # Journal entry rules
    balance_tolerance: Decimal = Field(
        Decimal("0.01"), ge=0, validation_alias="JOURNAL_BALANCE_TOLERANCE"
    )
    min_line_amount: Decimal = Field(
        Decimal("0.01"), gt=0, validation_alias="JOURNAL_MIN_LINE_AMOUNT"
    )
    reject_duplicate_accounts: bool = Field(
        False, validation_alias="JOURNAL_REJECT_DUPLICATE_ACCOUNTS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("database_type", "log_format", mode="before")
    @classmethod
    def lower_choice(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


@lru_cache
def get_settings() -> Settings:
    return Settings()
