"""
Configuration Management for Finledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger rules (tolerance, sentinel names) and storage wiring are read
from one place and validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger engine rules."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    balance_epsilon: float = Field(
        default=0.001,
        ge=0.0,
        le=1.0,
        description="Tolerance below zero before a running balance counts as negative"
    )
    default_category: str = Field(
        default="General",
        min_length=1,
        description="Category assigned to expenses recorded without one"
    )
    transfer_description: str = Field(
        default="Transfer between accounts",
        min_length=1,
        description="Description written on both legs of a transfer"
    )
    default_account_name: str = Field(
        default="BBVA",
        min_length=1,
        description="Card account created for a fresh ledger"
    )
    default_account_color: str = Field(
        default="#004481",
        description="Display color of the default card account"
    )
    legacy_account_colors: str = Field(
        default="#424242,#004481,#4CAF50,#2196F3,#f44336,#9c27b0,#ff9800",
        description="Comma-separated palette used when upgrading bare-string accounts"
    )

    @field_validator('default_account_color')
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Colors are stored as #RRGGBB."""
        if not (len(v) == 7 and v.startswith("#")):
            raise ValueError(f"Invalid color: {v}. Expected #RRGGBB")
        return v

    @property
    def legacy_colors_list(self) -> list[str]:
        """Get the legacy palette as a list."""
        return [c.strip() for c in self.legacy_account_colors.split(",") if c.strip()]


class StorageSettings(BaseSettings):
    """Blob storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|json)$",
        description="Blob store implementation"
    )
    data_dir: str = Field(
        default=".finledger",
        description="Directory for the JSON file store"
    )
    write_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a blob write before giving up"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )


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

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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

    for name in ("ledger", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
