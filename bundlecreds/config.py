"""
Centralized configuration for bundlecreds.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from bundlecreds.config import get_config
    cfg = get_config()
    print(cfg.store)         # "file"
    print(cfg.home)          # "/home/user/.bundlecreds" or $BUNDLECREDS_HOME
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

STORE_BACKENDS = ("file", "postgres")

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection parameters."""

    host: str = ""  # empty = Unix socket (peer auth); set to 127.0.0.1 for TCP
    port: int = 5432
    name: str = "bundlecreds"
    user: str = "bundlecreds"
    password: str = ""

    @property
    def dict(self) -> dict[str, str | int]:
        """Return a psycopg2.connect() kwargs dict."""
        d: dict[str, str | int] = {
            "dbname": self.name,
            "port": self.port,
        }
        if self.host:
            d["host"] = self.host
        if self.user:
            d["user"] = self.user
        if self.password:
            d["password"] = self.password
        return d


@dataclass(frozen=True)
class Config:
    """Top-level bundlecreds configuration."""

    home: Path = field(default_factory=lambda: Path.home() / ".bundlecreds")

    # Credential store backend: "file" or "postgres"
    store: str = "file"
    db: DatabaseConfig = field(default_factory=DatabaseConfig)

    # Namespace used when --namespace is not given
    default_namespace: str = ""

    # Diagnostics (e.g. delete reports missing sets)
    debug: bool = False

    # Seconds to wait for the external editor; None waits forever
    editor_timeout: float | None = None

    @property
    def credentials_dir(self) -> Path:
        return self.home / "credentials"


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    home = Path(os.environ.get("BUNDLECREDS_HOME", Path.home() / ".bundlecreds"))

    store = os.environ.get("BUNDLECREDS_STORE", "file").strip().lower()
    if store not in STORE_BACKENDS:
        raise ValueError(
            f"BUNDLECREDS_STORE must be one of {', '.join(STORE_BACKENDS)}, got {store!r}"
        )

    db = DatabaseConfig(
        host=os.environ.get("BUNDLECREDS_DB_HOST", ""),
        port=int(os.environ.get("BUNDLECREDS_DB_PORT", "5432")),
        name=os.environ.get("BUNDLECREDS_DB_NAME", "bundlecreds"),
        user=os.environ.get("BUNDLECREDS_DB_USER", os.environ.get("USER", "bundlecreds")),
        password=os.environ.get("BUNDLECREDS_DB_PASSWORD", ""),
    )

    timeout_raw = os.environ.get("BUNDLECREDS_EDITOR_TIMEOUT", "").strip()

    return Config(
        home=home,
        store=store,
        db=db,
        default_namespace=os.environ.get("BUNDLECREDS_NAMESPACE", ""),
        debug=os.environ.get("BUNDLECREDS_DEBUG", "").strip().lower() in _TRUTHY,
        editor_timeout=float(timeout_raw) if timeout_raw else None,
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
