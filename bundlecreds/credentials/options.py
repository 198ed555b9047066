"""
Option structs for the credential commands.

Each struct is filled from CLI arguments and validated before the manager
runs; ``validate`` normalizes values in place and raises ValidationError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from bundlecreds.bundles import BundleActionOptions
from bundlecreds.errors import ValidationError
from bundlecreds.printer import OutputFormat, parse_format


def parse_labels(raw: list[str] | None) -> dict[str, str]:
    """Turn ["env=dev", "team"] into {"env": "dev", "team": ""}."""
    labels: dict[str, str] = {}
    for label in raw or []:
        key, _, value = label.partition("=")
        labels[key] = value
    return labels


def validate_credential_name(args: list[str]) -> None:
    if len(args) == 0:
        raise ValidationError("no credential name was specified")
    if len(args) > 1:
        raise ValidationError(
            "only one positional argument may be specified, the credential name, "
            f"but multiple were received: {args}"
        )


@dataclass
class ListOptions:
    namespace: str | None = ""  # None lists every namespace
    name: str = ""
    labels: list[str] = field(default_factory=list)
    format: OutputFormat | str = OutputFormat.TABLE

    def validate(self) -> None:
        self.format = parse_format(self.format)

    def parse_labels(self) -> dict[str, str]:
        return parse_labels(self.labels)


@dataclass
class ShowOptions:
    name: str = ""
    namespace: str = ""
    format: OutputFormat | str = OutputFormat.TABLE

    def validate(self, args: list[str]) -> None:
        validate_credential_name(args)
        self.name = args[0]
        self.format = parse_format(self.format)


@dataclass
class EditOptions:
    name: str = ""
    namespace: str = ""

    def validate(self, args: list[str]) -> None:
        validate_credential_name(args)
        self.name = args[0]


@dataclass
class DeleteOptions:
    name: str = ""
    namespace: str = ""

    def validate(self, args: list[str]) -> None:
        validate_credential_name(args)
        self.name = args[0]


@dataclass
class CredentialOptions:
    """Options for generating a credential set from a bundle."""

    bundle: BundleActionOptions = field(default_factory=BundleActionOptions)
    name: str = ""
    namespace: str = ""
    labels: list[str] = field(default_factory=list)
    silent: bool = False

    def validate(self, args: list[str], cwd: Path | None = None) -> None:
        if len(args) == 1:
            self.name = args[0]
        elif len(args) > 1:
            raise ValidationError(
                "only one positional argument may be specified, the credential name, "
                f"but multiple were received: {args}"
            )
        self.bundle.validate(cwd)

    def parse_labels(self) -> dict[str, str]:
        return parse_labels(self.labels)


@dataclass
class ApplyOptions:
    file: str = ""
    namespace: str = ""

    def validate(self, args: list[str], cwd: Path | None = None) -> None:
        if len(args) != 1:
            raise ValidationError(
                f"exactly one file argument is required, but {len(args)} were received"
            )
        path = Path(args[0]).expanduser()
        if not path.is_absolute():
            path = (cwd or Path.cwd()) / path
        if not path.is_file():
            raise ValidationError(f"unable to access file {path}: no such file")
        self.file = str(path)
