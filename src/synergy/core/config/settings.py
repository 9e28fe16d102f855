"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Health Synergy server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; there is no auth layer in front of the tools.
    synergy_host: str = "127.0.0.1"
    synergy_port: int = 8001
    synergy_log_level: str = "info"
    # Must be set true to bind a non-loopback host.
    synergy_allow_insecure_bind: bool = False

    # Storage (biosignature data bank)
    db_path: str = "~/.synergy/biosignature.db"

    # Encryption; storage-backed tools are disabled while this is empty
    encryption_key: str = ""

    # Optional YAML file overriding the missing-value default tables
    scoring_defaults_path: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
