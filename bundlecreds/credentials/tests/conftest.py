"""Shared fixtures for credential tests."""

from __future__ import annotations

import io
from datetime import UTC, datetime, timedelta

import pytest

from bundlecreds.config import Config
from bundlecreds.credentials.manager import CredentialManager
from bundlecreds.credentials.store import InMemoryCredentialStore

# sample_set is inherited from the root conftest.py


class FakeClock:
    """Returns a fixed time that tests advance explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeEditor:
    """Stands in for Editor; returns canned output and records what it was given."""

    calls: list[tuple[str, bytes]] = []
    output: bytes | Exception = b""

    def __init__(self, filename: str, contents: bytes, timeout: float | None = None):
        FakeEditor.calls.append((filename, contents))
        self.timeout = timeout

    def run(self) -> bytes:
        if isinstance(FakeEditor.output, Exception):
            raise FakeEditor.output
        return FakeEditor.output


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 2, 1, 9, 30, tzinfo=UTC))


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def fake_editor():
    FakeEditor.calls = []
    FakeEditor.output = b""
    yield FakeEditor
    FakeEditor.calls = []


@pytest.fixture
def manager(store, clock, fake_editor) -> CredentialManager:
    return CredentialManager(
        store,
        config=Config(),
        editor_factory=fake_editor,
        out=io.StringIO(),
        err=io.StringIO(),
        clock=clock,
    )
