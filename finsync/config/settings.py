"""
Configuration Management for finsync

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunables of the sync engine live here, including the
duplicate-suppression windows and the fields that make up a content
signature. The heuristic is approximate, so its knobs must never be
hard-coded inside the engine.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class SyncSettings(BaseSettings):
    """Sync engine behaviour: dedup windows, throttles and retry policy."""

    model_config = SettingsConfigDict(
        env_prefix="FINSYNC_SYNC_",
        extra="ignore"
    )

    # Content signature matching
    dedup_window_ms: int = Field(
        default=5000,
        ge=0,
        description="Max createdAt distance for two records to be the same write"
    )
    lenient_dedup_window_ms: int = Field(
        default=60000,
        ge=0,
        description="Wider window used for record types listed in lenient_types"
    )
    lenient_types: str = Field(
        default="income",
        description="Comma-separated transaction types that use the lenient window"
    )
    transaction_signature_fields: str = Field(
        default="type,amount,category",
        description="Comma-separated transaction fields compared for equality"
    )
    document_signature_fields: str = Field(
        default="title,image_uri",
        description="Comma-separated document fields compared for equality"
    )

    # Duplicate submission guard
    submission_guard_ms: int = Field(
        default=5000,
        ge=0,
        description="Drop a guarded submission if an equal one was made this recently"
    )
    guarded_types: str = Field(
        default="income",
        description="Comma-separated transaction types protected by the guard"
    )

    # Scheduling
    fetch_throttle_ms: int = Field(
        default=1000,
        ge=0,
        description="Repeated fetches within this interval return the cached view"
    )
    settle_delay_ms: int = Field(
        default=300,
        ge=0,
        description="Delay before pushing a freshly added record"
    )
    max_sync_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="Stop retrying a record after this many failures (None = forever)"
    )

    @property
    def lenient_types_set(self) -> frozenset[str]:
        return frozenset(t.lower() for t in _split_csv(self.lenient_types))

    @property
    def guarded_types_set(self) -> frozenset[str]:
        return frozenset(t.lower() for t in _split_csv(self.guarded_types))

    @property
    def transaction_signature_list(self) -> list[str]:
        return _split_csv(self.transaction_signature_fields)

    @property
    def document_signature_list(self) -> list[str]:
        return _split_csv(self.document_signature_fields)


class LocalStoreSettings(BaseSettings):
    """On-device persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINSYNC_LOCAL_",
        extra="ignore"
    )

    db_path: str = Field(
        default="finsync.db",
        description="Path to the SQLite key-value database"
    )
    documents_dir: str = Field(
        default="documents",
        description="Directory holding copies of scanned document images"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    worksheet_rows: int = Field(
        default=1000,
        ge=10,
        description="Initial row count for newly created collection worksheets"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
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

    # Loaded lazily so a device without remote credentials still works offline

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def local(self) -> LocalStoreSettings:
        return LocalStoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("sync", "local", "google_sheets", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
