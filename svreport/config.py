"""Configuration management for the svreport gateway and CLI."""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application settings
    app_name: str = "Software Inventory Report"
    environment: str = Field(default="development", description="development or production")
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3001

    # Upstream inventory API (Fleet-style)
    upstream_url: Optional[str] = None
    upstream_timeout: float = 30.0
    upstream_token: Optional[str] = None  # CLI only; the gateway forwards caller headers

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Frontend
    static_dir: Path = Path("./dist")
    dev_server_url: str = "http://localhost:5173"

    # Paths
    data_dir: Path = Path("./data")

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/svreport.db"

    # Client-side aggregation
    gateway_url: str = "http://localhost:3001"
    vendor_batch_size: int = Field(default=20, ge=1)
    vendor_batch_delay: float = Field(default=0.1, ge=0)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = SettingsConfigDict(
        env_prefix="SVREPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def upstream_configured(self) -> bool:
        """Check if the upstream inventory API is configured."""
        return bool(self.upstream_url)

    @property
    def upstream_base_url(self) -> Optional[str]:
        """Upstream base URL without a trailing slash."""
        if self.upstream_url:
            return self.upstream_url.rstrip("/")
        return None

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_yaml(cls, path: Path, **overrides: Any) -> "Settings":
        """Load settings from a YAML file; environment variables still apply
        to keys the file does not set."""
        data: dict[str, Any] = {}
        if path.exists():
            with open(path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                data = loaded
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    settings.ensure_directories()
    return settings
