"""Global settings instance for MenuBox.

This module provides a unified settings object that combines:
- Configuration from config.toml
- Secrets from secrets.env
- Environment variable overrides

The settings object provides a flat interface while internally using the
structured configuration.
"""

import logging
from pathlib import Path

from menubox.config.loader import load_config, load_secrets
from menubox.config.schema import MenuboxConfig, SecretsConfig

logger = logging.getLogger(__name__)


class Settings:
    """Unified settings object combining config and secrets.

    This class provides a flat interface for accessing configuration values
    while internally using the structured MenuboxConfig and SecretsConfig.
    """

    def __init__(
        self,
        config: MenuboxConfig | None = None,
        secrets: SecretsConfig | None = None,
    ):
        """Initialize settings.

        Args:
            config: Optional MenuboxConfig instance. If not provided, loads from file.
            secrets: Optional SecretsConfig instance. If not provided, loads from file.
        """
        self._config = config or load_config()
        self._secrets = secrets or load_secrets()

        if not self._secrets.anthropic_api_key:
            logger.warning(
                "No Anthropic API key configured. PDF menus cannot be extracted "
                "until MENUBOX_ANTHROPIC_API_KEY or ANTHROPIC_API_KEY is set."
            )

    # =========================================================================
    # Config accessors
    # =========================================================================

    @property
    def config(self) -> MenuboxConfig:
        """Get the full configuration object."""
        return self._config

    @property
    def secrets(self) -> SecretsConfig:
        """Get the secrets configuration object."""
        return self._secrets

    # =========================================================================
    # Flat property interface
    # =========================================================================

    # Application
    @property
    def app_name(self) -> str:
        return self._config.app_name

    @property
    def debug(self) -> bool:
        return self._config.server.debug

    # Server
    @property
    def host(self) -> str:
        return self._config.server.host

    @property
    def port(self) -> int:
        return self._config.server.port

    @property
    def enforce_https(self) -> bool:
        return self._config.server.enforce_https

    @property
    def upload_rate_limit_per_minute(self) -> int:
        return self._config.server.upload_rate_limit_per_minute

    # Database
    @property
    def mongodb_url(self) -> str:
        return self._config.database.mongodb_url

    @property
    def mongodb_database(self) -> str:
        return self._config.database.mongodb_database

    @property
    def min_pool_size(self) -> int:
        return self._config.database.min_pool_size

    @property
    def max_pool_size(self) -> int:
        return self._config.database.max_pool_size

    @property
    def use_transactions(self) -> bool:
        return self._config.database.use_transactions

    # Storage
    @property
    def data_dir(self) -> Path:
        return self._config.storage.data_dir

    @property
    def upload_dir(self) -> Path:
        return self._config.storage.upload_dir

    @property
    def max_upload_size_mb(self) -> int:
        return self._config.storage.max_upload_mb

    @property
    def max_upload_size_bytes(self) -> int:
        return self._config.storage.max_upload_bytes

    # Extraction
    @property
    def extraction_model(self) -> str:
        return self._config.extraction.model

    @property
    def extraction_max_tokens(self) -> int:
        return self._config.extraction.max_tokens

    @property
    def extraction_max_attempts(self) -> int:
        return self._config.extraction.max_attempts

    @property
    def extraction_base_delay(self) -> float:
        return self._config.extraction.base_delay_seconds

    @property
    def min_text_length(self) -> int:
        return self._config.extraction.min_text_length

    @property
    def max_text_length(self) -> int:
        return self._config.extraction.max_text_length

    # Import
    @property
    def async_import_threshold(self) -> int:
        return self._config.imports.async_threshold

    @property
    def worker_concurrency(self) -> int:
        return self._config.imports.worker_concurrency

    @property
    def stale_claim_minutes(self) -> int:
        return self._config.imports.stale_claim_minutes

    @property
    def job_max_attempts(self) -> int:
        return self._config.imports.max_attempts

    # Secrets
    @property
    def anthropic_api_key(self) -> str | None:
        return self._secrets.anthropic_api_key


# Global settings instance - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    The settings are loaded once and cached for subsequent calls.

    Returns:
        The global Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance.

    This is primarily useful for testing to reload configuration.
    """
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that lazily loads settings on first access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
