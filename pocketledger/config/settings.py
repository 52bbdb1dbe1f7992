"""
Configuration Management for PocketLedger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Configuration is read ONLY by the composition root
(`create_ledger`). Repositories, stores and the notifier take explicit
constructor arguments, so tests never depend on the environment.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POCKETLEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("~/.pocketledger"),
        description="Root directory for persisted data"
    )
    namespace: str = Field(
        default="default",
        pattern=r"^[A-Za-z0-9_\-]+$",
        description="Sub-directory isolating one ledger's blobs"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failing blob write is tried"
    )
    fsync: bool = Field(
        default=True,
        description="fsync blobs before the atomic rename"
    )

    @field_validator('data_dir')
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @property
    def namespace_dir(self) -> Path:
        """Directory holding the entity-family blobs."""
        return self.data_dir / self.namespace

    @property
    def attachments_dir(self) -> Path:
        """Directory holding binary attachments."""
        return self.namespace_dir / "attachments"


class LedgerSettings(BaseSettings):
    """
    Behavioural settings for the ledger.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="POCKETLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO 4217 code used when a record does not specify one"
    )

    # Bills
    bill_due_soon_days: int = Field(
        default=7,
        ge=0,
        le=90,
        description="Unpaid bills due within this many days are 'due soon'"
    )

    # Budget progress thresholds
    budget_warning_ratio: float = Field(
        default=0.7,
        gt=0.0,
        description="Spending ratio at which a budget turns to warning"
    )
    budget_critical_ratio: float = Field(
        default=0.9,
        gt=0.0,
        description="Spending ratio at which a budget turns critical"
    )

    # Summaries
    recent_transactions_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many transactions the finance summary lists"
    )

    # Cold start
    seed_defaults: bool = Field(
        default=True,
        description="Create predefined categories and note folders on first run"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON lines (console renderer otherwise)"
    )

    @field_validator('base_currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {allowed}")
        return v.upper()

    @model_validator(mode='after')
    def validate_thresholds(self) -> 'LedgerSettings':
        if self.budget_critical_ratio < self.budget_warning_ratio:
            raise ValueError("Critical ratio cannot be below warning ratio")
        return self


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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries describing failures. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("storage", "ledger"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
