"""
CapCompare — Central Configuration
All settings are loaded from environment variables with sensible defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional


class NormalizationSettings(BaseSettings):
    """Currency normalization parameters."""
    reference_currency: str = Field(default="USD", validation_alias="REFERENCE_CURRENCY")
    # Second display currency, converted with the same anchor map
    secondary_currency: str = Field(default="EUR", validation_alias="SECONDARY_CURRENCY")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("reference_currency", "secondary_currency")
    @classmethod
    def _strip_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("currency code must not be empty")
        return v


class AnalyticsSettings(BaseSettings):
    """Trend and comparison analytics parameters."""
    days_per_year: float = Field(default=365.25, validation_alias="DAYS_PER_YEAR")
    top_n: int = Field(default=10, validation_alias="TOP_N")
    yoy_years: int = Field(default=3, validation_alias="YOY_YEARS")
    qoq_quarters: int = Field(default=4, validation_alias="QOQ_QUARTERS")
    default_peer_groups: List[str] = Field(default_factory=list, validation_alias="PEER_GROUPS")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class DatabaseSettings(BaseSettings):
    """Database configuration."""
    db_url: str = Field(default="sqlite:///capcompare.db", validation_alias="DATABASE_URL")
    echo_sql: bool = Field(default=False, validation_alias="DB_ECHO_SQL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class AppSettings(BaseSettings):
    """Top-level application settings."""
    app_name: str = "CapCompare"
    version: str = "0.1.0"
    debug: bool = Field(default=False, validation_alias="DEBUG")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    normalization: NormalizationSettings = Field(default_factory=NormalizationSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Singleton
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
