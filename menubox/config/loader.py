"""Configuration loader for MenuBox.

Loads configuration from TOML files and secrets from .env files.
Environment variables can override any configuration value.
"""

import logging
import os
from pathlib import Path
from typing import Any

from menubox.config.schema import MenuboxConfig, SecretsConfig

logger = logging.getLogger(__name__)

# Try to import tomllib (Python 3.11+) or fall back to tomli
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found]


# Keys whose environment values are converted before validation
_INT_KEYS = {
    "port",
    "max_upload_mb",
    "upload_rate_limit_per_minute",
    "max_tokens",
    "max_attempts",
    "min_text_length",
    "max_text_length",
    "async_threshold",
    "worker_concurrency",
    "stale_claim_minutes",
}
_FLOAT_KEYS = {"base_delay_seconds"}
_BOOL_KEYS = {"debug", "enforce_https", "use_transactions"}


def _search_paths(filename: str) -> list[Path]:
    """Build the search paths for a config-directory file, in priority order."""
    return [
        # Project root (current working directory)
        Path.cwd() / filename,
        # User config directory
        Path.home() / ".config" / "menubox" / filename,
        # Production install directory
        Path("/opt/menubox") / filename,
        # System config (Linux FHS)
        Path("/etc/menubox") / filename,
    ]


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/menubox/config.toml (user config)
    3. /opt/menubox/config.toml (production install)
    4. /etc/menubox/config.toml (system config)
    """
    return _search_paths("config.toml")


def get_secrets_search_paths() -> list[Path]:
    """Get the list of paths to search for secrets files.

    Same directories as the config search, looking for secrets.env.
    """
    return _search_paths("secrets.env")


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug(f"Found config file: {path}")
            return path
    return None


def find_secrets_file() -> Path | None:
    """Find the first existing secrets file from search paths."""
    for path in get_secrets_search_paths():
        if path.exists() and path.is_file():
            logger.debug(f"Found secrets file: {path}")
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a simple .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    env_vars: dict[str, str] = {}

    with open(path) as f:
        for line in f:
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes if present
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            env_vars[key] = value

    return env_vars


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = "MENUBOX") -> None:
    """Apply environment variable overrides to configuration dictionary.

    Environment variables are mapped as follows:
    - MENUBOX_SERVER_HOST -> config_dict["server"]["host"]
    - MENUBOX_IMPORT_ASYNC_THRESHOLD -> config_dict["import"]["async_threshold"]
    - etc.

    Note: This modifies config_dict in place.
    """
    env_mappings = {
        # Server
        f"{prefix}_SERVER_HOST": ("server", "host"),
        f"{prefix}_SERVER_PORT": ("server", "port"),
        f"{prefix}_SERVER_DEBUG": ("server", "debug"),
        f"{prefix}_DEBUG": ("server", "debug"),  # Shorthand
        f"{prefix}_SERVER_ENFORCE_HTTPS": ("server", "enforce_https"),
        f"{prefix}_UPLOAD_RATE_LIMIT": ("server", "upload_rate_limit_per_minute"),
        # Database
        f"{prefix}_DATABASE_MONGODB_URL": ("database", "mongodb_url"),
        f"{prefix}_DATABASE_MONGODB_DATABASE": ("database", "mongodb_database"),
        f"{prefix}_MONGODB_URL": ("database", "mongodb_url"),  # Shorthand
        f"{prefix}_MONGODB_DATABASE": ("database", "mongodb_database"),  # Shorthand
        f"{prefix}_DATABASE_USE_TRANSACTIONS": ("database", "use_transactions"),
        # Storage
        f"{prefix}_STORAGE_DATA_DIR": ("storage", "data_dir"),
        f"{prefix}_STORAGE_MAX_UPLOAD_MB": ("storage", "max_upload_mb"),
        # Extraction
        f"{prefix}_EXTRACTION_MODEL": ("extraction", "model"),
        f"{prefix}_EXTRACTION_MAX_TOKENS": ("extraction", "max_tokens"),
        f"{prefix}_EXTRACTION_MAX_ATTEMPTS": ("extraction", "max_attempts"),
        f"{prefix}_EXTRACTION_BASE_DELAY_SECONDS": ("extraction", "base_delay_seconds"),
        f"{prefix}_EXTRACTION_MIN_TEXT_LENGTH": ("extraction", "min_text_length"),
        # Import
        f"{prefix}_IMPORT_ASYNC_THRESHOLD": ("import", "async_threshold"),
        f"{prefix}_ASYNC_IMPORT_THRESHOLD": ("import", "async_threshold"),  # Shorthand
        f"{prefix}_IMPORT_WORKER_CONCURRENCY": ("import", "worker_concurrency"),
        f"{prefix}_IMPORT_STALE_CLAIM_MINUTES": ("import", "stale_claim_minutes"),
        f"{prefix}_IMPORT_MAX_ATTEMPTS": ("import", "max_attempts"),
    }

    for env_var, path in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            section, key = path

            # Ensure section exists
            if section not in config_dict:
                config_dict[section] = {}

            # Convert value to appropriate type
            if key in _INT_KEYS:
                config_dict[section][key] = int(value)
            elif key in _FLOAT_KEYS:
                config_dict[section][key] = float(value)
            elif key in _BOOL_KEYS:
                config_dict[section][key] = value.lower() in ("true", "1", "yes")
            else:
                config_dict[section][key] = value


def load_secrets(secrets_file: Path | None = None) -> SecretsConfig:
    """Load secrets from environment variables and optional secrets.env file.

    Environment variables take precedence over file values.
    """
    secrets_dict: dict[str, str | None] = {}

    if secrets_file is None:
        secrets_file = find_secrets_file()

    if secrets_file and secrets_file.exists():
        logger.info(f"Loading secrets from: {secrets_file}")
        file_secrets = parse_env_file(secrets_file)

        key_mapping = {
            "MENUBOX_ANTHROPIC_API_KEY": "anthropic_api_key",
            "ANTHROPIC_API_KEY": "anthropic_api_key",
        }

        for file_key, config_key in key_mapping.items():
            if file_key in file_secrets:
                secrets_dict[config_key] = file_secrets[file_key]

    # Override with environment variables (takes precedence)
    env_mapping = {
        "MENUBOX_ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_API_KEY": "anthropic_api_key",  # Also check common name
    }

    for env_var, config_key in env_mapping.items():
        value = os.environ.get(env_var)
        if value:
            secrets_dict[config_key] = value

    return SecretsConfig(**secrets_dict)


def load_config(config_file: Path | None = None) -> MenuboxConfig:
    """Load configuration from TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        MenuboxConfig instance with all settings loaded.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info(f"Loading config from: {config_file}")
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    return MenuboxConfig(**config_dict)
