"""Pydantic models for MenuBox configuration.

These models define the structure of config.toml and secrets.env files.
"""

from pathlib import Path

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    enforce_https: bool = False
    upload_rate_limit_per_minute: int = 20


class DatabaseConfig(BaseModel):
    """MongoDB database configuration."""

    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "menubox"
    # Connection pool settings
    min_pool_size: int = 10
    max_pool_size: int = 100
    # Multi-document transactions need a replica set
    use_transactions: bool = True


class StorageConfig(BaseModel):
    """File storage configuration."""

    data_dir: Path = Field(default_factory=lambda: Path("data"))
    max_upload_mb: int = 10

    @property
    def upload_dir(self) -> Path:
        """Get the directory where uploaded menus are kept until import."""
        return self.data_dir / "uploads"

    @property
    def max_upload_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_mb * 1024 * 1024


class ExtractionConfig(BaseModel):
    """AI menu extraction configuration."""

    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    min_text_length: int = 50
    max_text_length: int = 500_000


class ImportConfig(BaseModel):
    """Import finalization and job worker configuration."""

    async_threshold: int = 50
    worker_concurrency: int = 3
    stale_claim_minutes: int = 30
    max_attempts: int = 3


class MenuboxConfig(BaseModel):
    """Main MenuBox configuration loaded from config.toml."""

    app_name: str = "MenuBox"
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    imports: ImportConfig = Field(default_factory=ImportConfig, alias="import")

    model_config = {"populate_by_name": True}


class SecretsConfig(BaseModel):
    """Secrets loaded from secrets.env file.

    These are sensitive values that should not be stored in config.toml.
    """

    anthropic_api_key: str | None = None
