"""
Error kinds raised by bundlecreds.

Library code raises these; only the CLI catches them and maps them to exit
codes. Context is added by re-raising with a prefix and chaining the cause:

    try:
        store.upsert_credential_set(cs)
    except StoreError as e:
        raise PersistError(f"unable to save credentials: {e}") from e
"""

from __future__ import annotations


class CredentialError(Exception):
    """Base class for every bundlecreds error."""


class ValidationError(CredentialError):
    """Bad input shape or content."""


class StoreError(CredentialError):
    """The credential store failed."""


class NotFoundError(StoreError):
    """The referenced credential set does not exist."""

    def __init__(self, namespace: str, name: str):
        self.namespace = namespace
        self.name = name
        where = f"{namespace}/{name}" if namespace else name
        super().__init__(f"credential set {where} not found")


class PersistError(StoreError):
    """Writing to the credential store failed."""


class ParseError(CredentialError):
    """An externally-authored document could not be parsed."""


class SerializeError(CredentialError):
    pass


class DeserializeError(CredentialError):
    pass


class EditorError(CredentialError):
    """The external editor could not be launched or exited abnormally."""


class GenerationError(CredentialError):
    """Credential entries could not be derived from bundle requirements."""


class ResolveError(CredentialError):
    """The bundle could not be resolved."""
