"""
Configuration Management Module
"""
from .settings import (
    FetchSettings,
    KeyHealthSettings,
    LogSettings,
    MixingSettings,
    NewsApiSettings,
    SchedulerSettings,
    ScoringSettings,
    Settings,
    get_settings,
)

__all__ = [
    "FetchSettings",
    "KeyHealthSettings",
    "LogSettings",
    "MixingSettings",
    "NewsApiSettings",
    "SchedulerSettings",
    "ScoringSettings",
    "Settings",
    "get_settings",
]
