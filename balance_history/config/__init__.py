"""Configuration package."""

from balance_history.config.settings import (
    AppSettings,
    FetchSettings,
    Settings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "FetchSettings",
    "Settings",
    "get_settings",
]
