"""Configuration package."""

from ledger_core.config.settings import (
    AllocatorSettings,
    AppSettings,
    CodecSettings,
    HistorySettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AllocatorSettings",
    "AppSettings",
    "CodecSettings",
    "HistorySettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
