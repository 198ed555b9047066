"""
Document codec — YAML and JSON round-tripping of credential set documents.

Usage:
    from bundlecreds.encoding import marshal, unmarshal, unmarshal_file

    data = marshal("yaml", cs.to_document())
    doc = unmarshal(data, "yaml")
    doc = unmarshal_file(Path("creds.yaml"))   # format from the extension
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

FORMAT_JSON = "json"
FORMAT_YAML = "yaml"

_EXTENSIONS = {
    ".json": FORMAT_JSON,
    ".yaml": FORMAT_YAML,
    ".yml": FORMAT_YAML,
}


def marshal_json(value: Any) -> bytes:
    try:
        return json.dumps(value, indent=2, default=str).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ValueError(f"unable to encode JSON: {e}") from e


def marshal_yaml(value: Any) -> bytes:
    try:
        dumped = yaml.safe_dump(value, sort_keys=False, default_flow_style=False)
    except yaml.YAMLError as e:
        raise ValueError(f"unable to encode YAML: {e}") from e
    return dumped.encode("utf-8")


def marshal(fmt: str, value: Any) -> bytes:
    """Serialize value as JSON or YAML. Raises ValueError for other formats."""
    if fmt == FORMAT_JSON:
        return marshal_json(value)
    if fmt == FORMAT_YAML:
        return marshal_yaml(value)
    raise ValueError(f"unsupported format: {fmt}")


def unmarshal(data: bytes | str, fmt: str) -> Any:
    """Parse JSON or YAML text.

    Raises ValueError for malformed input or an unsupported format.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    if fmt == FORMAT_JSON:
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON: {e}") from e
    if fmt == FORMAT_YAML:
        try:
            return yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e
    raise ValueError(f"unsupported format: {fmt}")


def format_for_path(path: Path | str) -> str:
    """Pick the document format from a file extension."""
    suffix = Path(path).suffix.lower()
    fmt = _EXTENSIONS.get(suffix)
    if fmt is None:
        raise ValueError(
            f"unsupported file extension {suffix or '(none)'!r}, expected .json, .yaml or .yml"
        )
    return fmt


def unmarshal_file(path: Path | str) -> Any:
    """Read and parse a document. Raises ValueError or OSError."""
    fmt = format_for_path(path)
    with open(path, encoding="utf-8") as f:
        return unmarshal(f.read(), fmt)
