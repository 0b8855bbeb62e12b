"""Configuration module for CloudMusic."""

from .settings import (
    DatabaseSettings,
    DropboxSettings,
    LogSettings,
    ProviderSettings,
    Settings,
    YandexSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "DropboxSettings",
    "LogSettings",
    "ProviderSettings",
    "Settings",
    "YandexSettings",
    "get_settings",
]
