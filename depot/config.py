"""Depot configuration management.

Configuration sources (in priority order):
1. Environment variables (DEPOT_ prefix)
2. Config file (config.yaml)
3. Defaults
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = "sqlite+aiosqlite:///./data/depot.db"
    echo: bool = False


class StorageConfig(BaseModel):
    """Artifact storage configuration."""

    # Every repository is an immediate subdirectory of this root
    root_path: str = "./data/repos"
    metadata_filename: str = "maven-metadata.xml"

    # Files with these suffixes report a version taken from their parent directory
    artifact_suffixes: list[str] = Field(default_factory=lambda: [".jar", ".pom"])


class SecurityConfig(BaseModel):
    """Security configuration."""

    # Cookie carrying the bearer secret after /api/auth/signin
    session_cookie: str = "depot_session"
    session_ttl_seconds: int = 60 * 30

    # PBKDF2-HMAC-SHA256 work factor for stored secret hashes
    hash_iterations: int = 260_000

    # Serve file views and repository trees without a token
    public_read: bool = True


class Settings(BaseSettings):
    """Depot application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DEPOT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. DEPOT_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/depot/config.yaml
    """
    import os

    config_paths = [
        os.environ.get("DEPOT_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/depot/config.yaml"),
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Configuration is loaded from:
    1. YAML config file (if exists)
    2. Environment variables (override)
    3. Defaults
    """
    file_config = _load_config_file()
    return Settings(**file_config)
