"""
Bundle resolution — find a bundle and read its declared credential requirements.

Two local sources are understood:
    porter.yaml   Porter manifest, ``credentials`` is a list of {name, ...}
    bundle.json   CNAB bundle, ``credentials`` is a mapping of name -> {...}

Pulling bundles by registry reference is not supported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bundlecreds.encoding import FORMAT_JSON, unmarshal, unmarshal_file
from bundlecreds.errors import ResolveError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST = "porter.yaml"


@dataclass
class CredentialRequirement:
    """A credential a bundle declares it needs."""

    name: str
    description: str = ""
    required: bool = True
    env: str = ""
    path: str = ""


@dataclass
class BundleDefinition:
    name: str
    credentials: list[CredentialRequirement] = field(default_factory=list)


@dataclass
class BundleActionOptions:
    """Where to find the bundle: a manifest, a CNAB bundle file or a reference."""

    file: str = ""
    cnab_file: str = ""
    reference: str = ""

    def validate(self, cwd: Path | None = None) -> None:
        """Pick the bundle source and make file paths absolute."""
        cwd = cwd or Path.cwd()
        given = [opt for opt in (self.file, self.cnab_file, self.reference) if opt]
        if len(given) > 1:
            raise ValidationError(
                "only one of --file, --cnab-file or --reference may be specified"
            )

        if not given:
            default = cwd / DEFAULT_MANIFEST
            if not default.exists():
                raise ValidationError(
                    "no bundle specified: use --file, --cnab-file or --reference, "
                    f"or run from a directory containing {DEFAULT_MANIFEST}"
                )
            self.file = str(default)
            return

        if self.file:
            self.file = _existing_path("--file", self.file, cwd)
        if self.cnab_file:
            self.cnab_file = _existing_path("--cnab-file", self.cnab_file, cwd)


def _existing_path(flag: str, raw: str, cwd: Path) -> str:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = cwd / path
    if not path.is_file():
        raise ValidationError(f"unable to access {flag} {path}: no such file")
    return str(path)


def _requirement(name: str, decl: Any) -> CredentialRequirement:
    if decl is None:
        decl = {}
    if not isinstance(decl, dict):
        raise ResolveError(f"credential {name} must be a mapping")
    return CredentialRequirement(
        name=name,
        description=str(decl.get("description") or ""),
        required=bool(decl.get("required", True)),
        env=str(decl.get("env") or ""),
        path=str(decl.get("path") or ""),
    )


def parse_manifest(doc: Any) -> BundleDefinition:
    """Convert a Porter manifest document to a BundleDefinition."""
    if not isinstance(doc, dict) or not doc.get("name"):
        raise ResolveError("manifest must be a mapping with a name")
    raw = doc.get("credentials") or []
    if not isinstance(raw, list):
        raise ResolveError("manifest credentials must be a list")

    reqs = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ResolveError(f"invalid credential entry in manifest: {entry!r}")
        reqs.append(_requirement(str(entry["name"]), entry))
    return BundleDefinition(name=str(doc["name"]), credentials=reqs)


def parse_cnab_bundle(doc: Any) -> BundleDefinition:
    """Convert a CNAB bundle.json document to a BundleDefinition."""
    if not isinstance(doc, dict) or not doc.get("name"):
        raise ResolveError("bundle must be a mapping with a name")
    raw = doc.get("credentials") or {}
    if not isinstance(raw, dict):
        raise ResolveError("bundle credentials must be a mapping")
    reqs = [_requirement(str(name), decl) for name, decl in raw.items()]
    return BundleDefinition(name=str(doc["name"]), credentials=reqs)


class BundleResolver:
    """Resolves BundleActionOptions to a BundleDefinition from local files."""

    def resolve(self, opts: BundleActionOptions) -> BundleDefinition:
        if opts.reference:
            raise ResolveError(
                f"cannot pull bundle {opts.reference}: registry references are not "
                "supported, use --file or --cnab-file"
            )
        if opts.cnab_file:
            return parse_cnab_bundle(self._load(opts.cnab_file, cnab=True))
        if opts.file:
            return parse_manifest(self._load(opts.file))
        raise ResolveError("no bundle specified")

    def _load(self, path: str, cnab: bool = False) -> Any:
        logger.debug("Loading bundle from %s", path)
        try:
            if cnab:
                # bundle.json is JSON regardless of its file name
                with open(path, encoding="utf-8") as f:
                    return unmarshal(f.read(), FORMAT_JSON)
            return unmarshal_file(path)
        except (OSError, ValueError) as e:
            raise ResolveError(f"unable to load bundle {path}: {e}") from e
