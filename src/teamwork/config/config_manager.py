"""
Configuration manager for teamwork entry points.

This module provides a centralized way to load ``Settings`` once per process.
"""

from pathlib import Path
from typing import Any, Optional

from .settings import Settings


class ConfigManager:
    """Manages configuration loading and access."""

    def __init__(self, root_dir: Optional[Path] = None, env_file: Optional[Path] = None):
        """Initialize the configuration manager.

        Args:
            root_dir: Project directory overriding TEAMWORK_ROOT_DIR
            env_file: Optional .env file to read in addition to the environment
        """
        self.root_dir = root_dir
        self.env_file = env_file
        self._settings: Optional[Settings] = None

    def load_config(self) -> Settings:
        """Load configuration.

        Returns:
            Settings object with loaded configuration

        Raises:
            pydantic.ValidationError: If configuration validation fails
        """
        if self._settings is not None:
            return self._settings

        overrides: dict[str, Any] = {}
        if self.root_dir is not None:
            overrides["root_dir"] = self.root_dir
        if self.env_file is not None:
            overrides["_env_file"] = self.env_file

        self._settings = Settings(**overrides)
        return self._settings

    def get_config(self) -> Settings:
        """Get the current configuration."""
        if self._settings is None:
            return self.load_config()
        return self._settings

    def reload_config(self) -> Settings:
        """Reload configuration from the environment."""
        self._settings = None
        return self.load_config()


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(root_dir: Optional[Path] = None) -> ConfigManager:
    """Get the global configuration manager instance.

    A different root_dir replaces the cached manager.
    """
    global _config_manager
    if _config_manager is None or (
        root_dir is not None and _config_manager.root_dir != root_dir
    ):
        _config_manager = ConfigManager(root_dir=root_dir)
    return _config_manager


def get_config(root_dir: Optional[Path] = None) -> Settings:
    """Get the current configuration."""
    return get_config_manager(root_dir).get_config()
