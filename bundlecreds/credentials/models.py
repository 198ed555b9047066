"""Credential set data models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from bundlecreds.errors import ValidationError

# Source kinds understood by the bundle runtime
SOURCE_VALUE = "value"
SOURCE_ENV = "env"
SOURCE_PATH = "path"
SOURCE_COMMAND = "command"
SOURCE_SECRET = "secret"

SOURCE_KINDS: tuple[str, ...] = (
    SOURCE_VALUE,
    SOURCE_ENV,
    SOURCE_PATH,
    SOURCE_COMMAND,
    SOURCE_SECRET,
)


class Source(BaseModel):
    """Where a credential's concrete value comes from."""

    model_config = ConfigDict(extra="ignore")

    key: str = ""  # source kind, e.g. "env"
    value: str = ""  # locator, e.g. the env var name


class CredentialStrategy(BaseModel):
    """One entry of a credential set, satisfying a bundle requirement."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    source: Source = Field(default_factory=Source)


class CredentialSet(BaseModel):
    """A named, namespaced collection of credential strategies."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    namespace: str = ""
    created: datetime | None = None
    modified: datetime | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    credentials: list[CredentialStrategy] = Field(default_factory=list)

    @field_validator("labels", mode="before")
    @classmethod
    def _null_labels(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("credentials", mode="before")
    @classmethod
    def _null_credentials(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("created", "modified")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def key(self) -> tuple[str, str]:
        return (self.namespace, self.name)

    def validate_structure(self) -> None:
        """Check structural invariants. Raises ValidationError."""
        if not self.name:
            raise ValidationError("credential set name is required")

        seen: set[str] = set()
        for i, cred in enumerate(self.credentials):
            if not cred.name:
                raise ValidationError(f"credential at index {i} is missing a name")
            if not cred.source.key:
                raise ValidationError(f"credential {cred.name} is missing a source")
            if cred.name in seen:
                raise ValidationError(
                    f"credential set {self.name} has more than one credential named {cred.name}"
                )
            seen.add(cred.name)

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-safe document shape."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: Any) -> CredentialSet:
        """Build a set from a parsed document. Raises ValueError on a malformed shape."""
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValueError(_summarize(e)) from e


def _summarize(err: PydanticValidationError) -> str:
    parts = []
    for detail in err.errors():
        loc = ".".join(str(p) for p in detail["loc"]) or "document"
        parts.append(f"{loc}: {detail['msg']}")
    return "; ".join(parts)
