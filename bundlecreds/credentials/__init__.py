"""
Credential sets — models, stores and the manager that ties them together.

Public API:
    open_store(cfg)          → CredentialStore for the configured backend
    CredentialManager(store) → list/show/generate/edit/apply/delete
"""

from __future__ import annotations

from bundlecreds.config import Config
from bundlecreds.credentials.filestore import FileCredentialStore
from bundlecreds.credentials.manager import CredentialManager
from bundlecreds.credentials.models import CredentialSet, CredentialStrategy, Source
from bundlecreds.credentials.store import CredentialStore, InMemoryCredentialStore


def open_store(cfg: Config) -> CredentialStore:
    """Build the credential store selected by ``cfg.store``."""
    if cfg.store == "postgres":
        from bundlecreds.credentials.dal import PostgresCredentialStore

        return PostgresCredentialStore(cfg.db)
    return FileCredentialStore(cfg.credentials_dir)


__all__ = [
    "CredentialManager",
    "CredentialSet",
    "CredentialStore",
    "CredentialStrategy",
    "FileCredentialStore",
    "InMemoryCredentialStore",
    "Source",
    "open_store",
]
