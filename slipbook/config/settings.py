"""
Configuration Management for Slipbook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""
    
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
    
    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet holding financial records"
    )
    settings_sheet_name: str = Field(
        default="Settings",
        description="Name of the sheet holding settings documents"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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


class SyncSettings(BaseSettings):
    """Settings synchronization behaviour."""
    
    model_config = SettingsConfigDict(
        env_prefix="SETTINGS_SYNC_",
        extra="ignore"
    )
    
    debounce_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Quiescence period before a settings write fires"
    )
    document_key: str = Field(
        default="user_settings",
        min_length=1,
        description="Key of the settings document in the remote store"
    )


class AggregationSettings(BaseSettings):
    """Chart window sizes and scaling."""
    
    model_config = SettingsConfigDict(
        env_prefix="AGGREGATION_",
        extra="ignore"
    )
    
    day_window: int = Field(default=7, ge=1, le=366)
    week_window: int = Field(default=5, ge=1, le=104)
    month_window: int = Field(default=6, ge=1, le=120)
    scale_floor: float = Field(
        default=100.0,
        gt=0.0,
        description="Display maximum used when every total is zero"
    )
    scale_headroom: float = Field(
        default=1.0,
        ge=1.0,
        le=2.0,
        description="Multiplier applied to the tallest bar"
    )
    
    def window_for(self, granularity) -> int:
        """Configured window size for a Granularity."""
        return {
            "day": self.day_window,
            "week": self.week_window,
            "month": self.month_window,
        }[getattr(granularity, "value", granularity)]


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
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for the structured log"
    )
    
    @field_validator('log_level', mode='before')
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v
    
    @property
    def effective_log_level(self) -> str:
        """debug_mode forces DEBUG regardless of log_level."""
        return "DEBUG" if self.debug_mode else self.log_level


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
    
    # Loaded lazily so a missing Google Sheets config does not block the rest
    
    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()
    
    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()
    
    @property
    def aggregation(self) -> AggregationSettings:
        return AggregationSettings()
    
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
    
    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for each failing section.
    """
    results = {}
    settings = get_settings()
    
    for name in ("google_sheets", "sync", "aggregation", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
