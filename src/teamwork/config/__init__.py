"""
Configuration management for teamwork.

This module provides a centralized configuration system that:
- Loads settings from TEAMWORK_* environment variables and an optional .env
- Provides type-safe configuration access
- Validates configuration values
"""

from .config_manager import ConfigManager, get_config, get_config_manager
from .settings import LockSettings, LoggingSettings, Settings

__all__ = [
    "ConfigManager",
    "get_config",
    "get_config_manager",
    "LockSettings",
    "LoggingSettings",
    "Settings",
]
