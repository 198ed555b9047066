"""
Credential store contract and the in-memory implementation.

A store owns persisted credential sets keyed by (namespace, name). Every
backend raises NotFoundError for missing sets and StoreError for any other
failure. Atomicity for concurrent writers is the backend's concern; callers
get last-writer-wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bundlecreds.credentials.models import SOURCE_KINDS, CredentialSet
from bundlecreds.errors import NotFoundError, ValidationError


def matches(
    cs: CredentialSet,
    namespace: str | None,
    name: str = "",
    labels: dict[str, str] | None = None,
) -> bool:
    """Apply list filters. namespace=None matches every namespace."""
    if namespace is not None and cs.namespace != namespace:
        return False
    if name and cs.name != name:
        return False
    for k, v in (labels or {}).items():
        if cs.labels.get(k) != v:
            return False
    return True


class CredentialStore(ABC):
    """Persistent, namespaced storage of credential sets."""

    @abstractmethod
    def list_credential_sets(
        self,
        namespace: str | None,
        name: str = "",
        labels: dict[str, str] | None = None,
    ) -> list[CredentialSet]:
        """Return matching sets ordered by (namespace, name)."""

    @abstractmethod
    def get_credential_set(self, namespace: str, name: str) -> CredentialSet:
        """Return one set. Raises NotFoundError."""

    @abstractmethod
    def upsert_credential_set(self, cs: CredentialSet) -> None:
        """Create or replace a set."""

    @abstractmethod
    def update_credential_set(self, cs: CredentialSet) -> None:
        """Replace an existing set. Raises NotFoundError."""

    @abstractmethod
    def remove_credential_set(self, namespace: str, name: str) -> None:
        """Delete a set. Raises NotFoundError."""

    def close(self) -> None:
        """Release backend resources. The store is unusable afterwards."""

    def validate(self, cs: CredentialSet) -> None:
        """Store-specific checks run before a set is written."""
        for cred in cs.credentials:
            if cred.source.key not in SOURCE_KINDS:
                raise ValidationError(
                    f"invalid source {cred.source.key!r} for credential {cred.name}, "
                    f"must be one of {', '.join(SOURCE_KINDS)}"
                )


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed store. Holds copies so callers cannot mutate stored state."""

    def __init__(self, sets: list[CredentialSet] | None = None):
        self._sets: dict[tuple[str, str], CredentialSet] = {}
        for cs in sets or []:
            self.upsert_credential_set(cs)

    def list_credential_sets(
        self,
        namespace: str | None,
        name: str = "",
        labels: dict[str, str] | None = None,
    ) -> list[CredentialSet]:
        return [
            cs.model_copy(deep=True)
            for _, cs in sorted(self._sets.items())
            if matches(cs, namespace, name, labels)
        ]

    def get_credential_set(self, namespace: str, name: str) -> CredentialSet:
        cs = self._sets.get((namespace, name))
        if cs is None:
            raise NotFoundError(namespace, name)
        return cs.model_copy(deep=True)

    def upsert_credential_set(self, cs: CredentialSet) -> None:
        self._sets[cs.key] = cs.model_copy(deep=True)

    def update_credential_set(self, cs: CredentialSet) -> None:
        if cs.key not in self._sets:
            raise NotFoundError(cs.namespace, cs.name)
        self._sets[cs.key] = cs.model_copy(deep=True)

    def remove_credential_set(self, namespace: str, name: str) -> None:
        if self._sets.pop((namespace, name), None) is None:
            raise NotFoundError(namespace, name)
