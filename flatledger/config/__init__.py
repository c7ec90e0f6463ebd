"""Configuration package."""

from flatledger.config.settings import (
    AutopaySettings,
    LedgerSettings,
    MatchingSettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AutopaySettings",
    "LedgerSettings",
    "MatchingSettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
