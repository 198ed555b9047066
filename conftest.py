"""
Root-level shared test fixtures.

Inherited by the top-level tests/ suite and the package-local test
directories under bundlecreds/.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from bundlecreds.config import reset_config
from bundlecreds.credentials.models import CredentialSet, CredentialStrategy, Source


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove bundlecreds env vars and point the data directory at tmp_path."""
    for key in [
        "BUNDLECREDS_STORE",
        "BUNDLECREDS_NAMESPACE",
        "BUNDLECREDS_DEBUG",
        "BUNDLECREDS_EDITOR_TIMEOUT",
        "BUNDLECREDS_DB_HOST",
        "BUNDLECREDS_DB_PORT",
        "BUNDLECREDS_DB_NAME",
        "BUNDLECREDS_DB_USER",
        "BUNDLECREDS_DB_PASSWORD",
    ]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("BUNDLECREDS_HOME", str(tmp_path / "home"))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sample_set() -> CredentialSet:
    """A namespaced credential set with two entries and a label."""
    ts = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    return CredentialSet(
        name="mybuns",
        namespace="dev",
        labels={"team": "payments"},
        created=ts,
        modified=ts,
        credentials=[
            CredentialStrategy(name="api-key", source=Source(key="env", value="API_KEY")),
            CredentialStrategy(
                name="kubeconfig", source=Source(key="path", value="/home/me/.kube/config")
            ),
        ],
    )
