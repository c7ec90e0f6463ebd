"""
Configuration Management for Flatledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable of the matching and reconciliation engine (due weekday,
confidences, correction window) lives in one place and is validated
at startup.
"""

from datetime import date
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


WEEKDAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]


class LedgerSettings(BaseSettings):
    """Weekly billing cycle configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    due_weekday: int = Field(
        default=3,
        ge=0,
        le=6,
        description="Weekday payments are due on (0 = Monday, 3 = Thursday)"
    )
    analysis_start_date: Optional[date] = Field(
        default=None,
        description="First day balances are reconciled from"
    )
    payment_grace_days: int = Field(
        default=3,
        ge=0,
        le=6,
        description="Days after the due date a payment still counts for that week"
    )
    timezone: str = Field(
        default="Pacific/Auckland",
        description="Timezone used to decide what 'today' is"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names early."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def due_weekday_name(self) -> str:
        return WEEKDAY_NAMES[self.due_weekday]


class MatchingSettings(BaseSettings):
    """Confidence scores for each matching rule tier."""

    model_config = SettingsConfigDict(
        env_prefix="MATCHING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    account_confidence: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Confidence of a counterparty account match"
    )
    card_confidence: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Confidence of a card suffix match"
    )
    name_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Confidence of a description name match"
    )


class AutopaySettings(BaseSettings):
    """Autopayment planner configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOPAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    correction_weeks: int = Field(
        default=8,
        ge=1,
        le=52,
        description="Weeks a balance correction is spread over"
    )
    horizon_weeks: int = Field(
        default=52,
        ge=1,
        le=260,
        description="Weeks shown for open-ended payment steps"
    )


class SyncSettings(BaseSettings):
    """Bank transaction sync configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    lookback_days: int = Field(
        default=30,
        ge=1,
        description="How far back incremental syncs re-fetch transactions"
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
    def matching(self) -> MatchingSettings:
        return MatchingSettings()

    @property
    def autopay(self) -> AutopaySettings:
        return AutopaySettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()


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

    Returns a dict of {setting_name: is_valid}, with a
    "<name>_error" entry for every section that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "matching", "autopay", "sync"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
