"""MenuBox configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/menubox/config.toml (user config)
4. /etc/menubox/config.toml (system config)

Secrets are loaded from secrets.env files in the same directories.
"""

from menubox.config.schema import (
    DatabaseConfig,
    ExtractionConfig,
    ImportConfig,
    MenuboxConfig,
    SecretsConfig,
    ServerConfig,
    StorageConfig,
)
from menubox.config.settings import Settings, get_settings, reset_settings, settings

__all__ = [
    "DatabaseConfig",
    "ExtractionConfig",
    "ImportConfig",
    "MenuboxConfig",
    "SecretsConfig",
    "ServerConfig",
    "Settings",
    "StorageConfig",
    "get_settings",
    "reset_settings",
    "settings",
]
