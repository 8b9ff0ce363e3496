"""
Configuration Management for Daybook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The store location and the ledger defaults are the only knobs;
everything else is data that lives in the store itself.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Local persistent store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DAYBOOK_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    db_path: str = Field(
        default="data/daybook.db",
        description="Path to the SQLite database file"
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long to wait on a locked database file"
    )

    @field_validator('db_path')
    @classmethod
    def validate_db_path(cls, v: str) -> str:
        """Reject an empty path (sqlite would silently use a temp file)."""
        if not v.strip():
            raise ValueError("db_path must not be empty")
        return v.strip()


class LedgerSettings(BaseSettings):
    """
    Ledger defaults.

    These seed settings that the user has not stored yet.
    Once stored, the stored value wins.
    """

    model_config = SettingsConfigDict(
        env_prefix="DAYBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Export file naming
    backup_filename_prefix: str = Field(
        default="daybook-backup",
        description="Prefix for exported backup files"
    )
    csv_filename_prefix: str = Field(
        default="daybook-export",
        description="Prefix for exported CSV files"
    )

    # Report defaults
    default_food_cost_categories: str = Field(
        default="Market Bills,Meat,Diary Expenses,Gas",
        description="Comma-separated categories counted as food cost"
    )
    default_bill_upload_categories: str = Field(
        default="Market Bills,Meat,Gas",
        description="Comma-separated categories that accept bill photos"
    )
    labor_category_name: str = Field(
        default="Labours",
        description="Category counted as labor cost (case-insensitive)"
    )

    # Gas cylinder defaults
    gas_total_cylinders: int = Field(
        default=6,
        ge=0,
        description="Total cylinders owned (active + full + empty)"
    )
    gas_cylinders_per_bank: int = Field(
        default=2,
        ge=0,
        description="Cylinders connected to the stove at once"
    )

    @property
    def food_cost_categories_list(self) -> list[str]:
        """Get food cost categories as a list."""
        return _split_csv(self.default_food_cost_categories)

    @property
    def bill_upload_categories_list(self) -> list[str]:
        """Get bill upload categories as a list."""
        return _split_csv(self.default_bill_upload_categories)


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.store
        results["store"] = True
    except Exception as e:
        results["store"] = False
        results["store_error"] = str(e)

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    return results
