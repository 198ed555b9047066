"""
File-backed credential store — one YAML document per credential set.

Layout under the configured credentials directory:
    global/<name>.yaml                  namespace ""
    namespaces/<namespace>/<name>.yaml  every other namespace
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from bundlecreds.credentials.models import CredentialSet
from bundlecreds.credentials.store import CredentialStore, matches
from bundlecreds.encoding import FORMAT_YAML, marshal, unmarshal
from bundlecreds.errors import NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)

_FORBIDDEN = ("/", "\\", "\0")


def _check_segment(kind: str, value: str) -> None:
    if value in (".", "..") or any(c in value for c in _FORBIDDEN):
        raise ValidationError(f"{kind} {value!r} cannot be used as a file name")


class FileCredentialStore(CredentialStore):
    """Stores each credential set as a YAML file."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _dir(self, namespace: str) -> Path:
        if not namespace:
            return self.root / "global"
        return self.root / "namespaces" / namespace

    def _path(self, namespace: str, name: str) -> Path:
        _check_segment("namespace", namespace)
        _check_segment("name", name)
        return self._dir(namespace) / f"{name}.yaml"

    def _read(self, path: Path) -> CredentialSet:
        try:
            doc = unmarshal(path.read_bytes(), FORMAT_YAML)
            return CredentialSet.from_document(doc)
        except (OSError, ValueError) as e:
            raise StoreError(f"unable to read {path}: {e}") from e

    def _write(self, cs: CredentialSet) -> None:
        path = self._path(cs.namespace, cs.name)
        tmp = path.with_suffix(".yaml.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(marshal(FORMAT_YAML, cs.to_document()))
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StoreError(f"unable to write {path}: {e}") from e
        logger.debug("Wrote credential set %s/%s to %s", cs.namespace, cs.name, path)

    def _all_files(self, namespace: str | None) -> list[Path]:
        if namespace is not None:
            _check_segment("namespace", namespace)
            return sorted(self._dir(namespace).glob("*.yaml"))
        files = sorted((self.root / "global").glob("*.yaml"))
        files.extend(sorted((self.root / "namespaces").glob("*/*.yaml")))
        return files

    def list_credential_sets(
        self,
        namespace: str | None,
        name: str = "",
        labels: dict[str, str] | None = None,
    ) -> list[CredentialSet]:
        results = [self._read(f) for f in self._all_files(namespace)]
        results = [cs for cs in results if matches(cs, namespace, name, labels)]
        return sorted(results, key=lambda cs: cs.key)

    def get_credential_set(self, namespace: str, name: str) -> CredentialSet:
        path = self._path(namespace, name)
        if not path.exists():
            raise NotFoundError(namespace, name)
        return self._read(path)

    def upsert_credential_set(self, cs: CredentialSet) -> None:
        self._write(cs)

    def update_credential_set(self, cs: CredentialSet) -> None:
        if not self._path(cs.namespace, cs.name).exists():
            raise NotFoundError(cs.namespace, cs.name)
        self._write(cs)

    def remove_credential_set(self, namespace: str, name: str) -> None:
        path = self._path(namespace, name)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(namespace, name) from None
        except OSError as e:
            raise StoreError(f"unable to remove {path}: {e}") from e

    def validate(self, cs: CredentialSet) -> None:
        super().validate(cs)
        _check_segment("namespace", cs.namespace)
        _check_segment("name", cs.name)
