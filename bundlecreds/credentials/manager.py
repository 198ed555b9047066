"""
Credential Manager — list, show, generate, edit, apply and delete credential sets.

The manager works on transient copies: every operation reads what it needs
from the store, validates, and writes at most once. Nothing is written when
any step before the write fails.

Usage:
    from bundlecreds.credentials.manager import CredentialManager
    from bundlecreds.credentials.store import InMemoryCredentialStore

    mgr = CredentialManager(InMemoryCredentialStore())
    mgr.apply_credentials(ApplyOptions(file="/tmp/creds.yaml"))
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TextIO

from bundlecreds.bundles import BundleResolver
from bundlecreds.config import Config
from bundlecreds.credentials.models import CredentialSet
from bundlecreds.credentials.options import (
    ApplyOptions,
    CredentialOptions,
    DeleteOptions,
    EditOptions,
    ListOptions,
    ShowOptions,
)
from bundlecreds.credentials.store import CredentialStore
from bundlecreds.editor import Editor
from bundlecreds.encoding import FORMAT_YAML, marshal, unmarshal, unmarshal_file
from bundlecreds.errors import (
    DeserializeError,
    EditorError,
    GenerationError,
    NotFoundError,
    ParseError,
    PersistError,
    SerializeError,
    StoreError,
    ValidationError,
)
from bundlecreds.generator import GenerateOptions, Prompter, generate_credentials
from bundlecreds.printer import (
    DateTimePrinter,
    OutputFormat,
    parse_format,
    print_json,
    print_table,
    print_yaml,
)

logger = logging.getLogger(__name__)

EditorFactory = Callable[..., Any]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _seed_filename(name: str) -> str:
    """Editor temp file name; set names may contain path separators."""
    safe = name.replace("/", "_").replace("\\", "_").replace("\0", "_")
    return f"bundlecreds-{safe}.yaml"


class CredentialManager:
    """Orchestrates credential set operations against a CredentialStore."""

    def __init__(
        self,
        store: CredentialStore,
        config: Config | None = None,
        resolver: BundleResolver | None = None,
        prompter: Prompter | None = None,
        editor_factory: EditorFactory = Editor,
        out: TextIO | None = None,
        err: TextIO | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.config = config or Config()
        self.resolver = resolver or BundleResolver()
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.prompter = prompter or Prompter(out=self.out)
        self.editor_factory = editor_factory
        self.clock = clock

    # ── List / Show ──────────────────────────────────────────────────────

    def list_credentials(self, opts: ListOptions) -> list[CredentialSet]:
        """Return saved credential sets matching the namespace, name and labels."""
        return self.store.list_credential_sets(opts.namespace, opts.name, opts.parse_labels())

    def print_credentials(self, opts: ListOptions) -> None:
        fmt = parse_format(opts.format)
        creds = self.list_credentials(opts)
        printers: dict[OutputFormat, Callable[[list[CredentialSet]], None]] = {
            OutputFormat.JSON: lambda sets: print_json(
                self.out, [cs.to_document() for cs in sets]
            ),
            OutputFormat.YAML: lambda sets: print_yaml(
                self.out, [cs.to_document() for cs in sets]
            ),
            OutputFormat.TABLE: self._print_list_table,
        }
        printers[fmt](creds)

    def _print_list_table(self, creds: list[CredentialSet]) -> None:
        # every row shares the same "now"
        tp = DateTimePrinter(self.clock())

        def row(cs: CredentialSet) -> list[str]:
            return [cs.namespace, cs.name, tp.format(cs.modified)]

        print_table(self.out, creds, row, "NAMESPACE", "NAME", "MODIFIED")

    def show_credential(self, opts: ShowOptions) -> CredentialSet:
        """Print one credential set. Raises NotFoundError before printing anything."""
        fmt = parse_format(opts.format)
        cs = self.store.get_credential_set(opts.namespace, opts.name)
        printers: dict[OutputFormat, Callable[[CredentialSet], None]] = {
            OutputFormat.JSON: lambda c: print_json(self.out, c.to_document()),
            OutputFormat.YAML: lambda c: print_yaml(self.out, c.to_document()),
            OutputFormat.TABLE: self._print_set_table,
        }
        printers[fmt](cs)
        return cs

    def _print_set_table(self, cs: CredentialSet) -> None:
        tp = DateTimePrinter(self.clock())
        out = self.out
        out.write(f"Name: {cs.name}\n")
        out.write(f"Namespace: {cs.namespace}\n")
        out.write(f"Created: {tp.format(cs.created)}\n")
        out.write(f"Modified: {tp.format(cs.modified)}\n\n")

        if cs.labels:
            out.write("Labels:\n")
            for k in sorted(cs.labels):
                out.write(f"  {k}: {cs.labels[k]}\n")
            out.write("\n")

        print_table(
            out,
            cs.credentials,
            lambda c: [c.name, c.source.value, c.source.key],
            "Name",
            "Local Source",
            "Source Type",
        )

    # ── Generate ─────────────────────────────────────────────────────────

    def generate_credentials(self, opts: CredentialOptions) -> CredentialSet:
        """Build a credential set from a bundle's requirements and save it.

        Silent generation fills placeholder entries; otherwise the operator is
        prompted for each requirement's source.
        """
        bundle = self.resolver.resolve(opts.bundle)

        gen_opts = GenerateOptions(
            name=opts.name or bundle.name,
            namespace=opts.namespace,
            labels=opts.parse_labels(),
            silent=opts.silent,
        )
        self.out.write(f"Generating new credential {gen_opts.name} from bundle {bundle.name}\n")
        self.out.write(
            f"==> {len(bundle.credentials)} credentials required for bundle {bundle.name}\n"
        )

        try:
            cs = generate_credentials(gen_opts, bundle.credentials, self.prompter)
        except GenerationError as e:
            raise GenerationError(f"unable to generate credentials: {e}") from e

        try:
            cs.validate_structure()
            self.store.validate(cs)
        except ValidationError as e:
            raise ValidationError(f"generated credential set is invalid: {e}") from e

        cs.created = self.clock()
        cs.modified = cs.created

        try:
            self.store.upsert_credential_set(cs)
        except StoreError as e:
            raise PersistError(f"unable to save credentials: {e}") from e
        logger.info("Generated credential set %s/%s", cs.namespace, cs.name)
        return cs

    # ── Edit ─────────────────────────────────────────────────────────────

    def edit_credential(self, opts: EditOptions) -> CredentialSet:
        """Round-trip a stored set through the user's editor and save the result."""
        original = self.store.get_credential_set(opts.namespace, opts.name)

        try:
            contents = marshal(FORMAT_YAML, original.to_document())
        except ValueError as e:
            raise SerializeError(f"unable to load credentials: {e}") from e

        editor = self.editor_factory(
            _seed_filename(original.name),
            contents,
            timeout=self.config.editor_timeout,
        )
        try:
            output = editor.run()
        except EditorError as e:
            raise EditorError(f"unable to open editor to edit credentials: {e}") from e

        try:
            edited = CredentialSet.from_document(unmarshal(output, FORMAT_YAML))
        except ValueError as e:
            raise DeserializeError(f"unable to process credentials: {e}") from e

        if edited.key != original.key:
            raise ValidationError(
                "credentials are invalid: name and namespace cannot be changed while editing "
                f"(expected {original.namespace}/{original.name}, "
                f"got {edited.namespace}/{edited.name})"
            )

        try:
            edited.validate_structure()
            self.store.validate(edited)
        except ValidationError as e:
            raise ValidationError(f"credentials are invalid: {e}") from e

        edited.created = original.created
        edited.modified = self._next_modified(original.modified)

        try:
            self.store.update_credential_set(edited)
        except StoreError as e:
            raise PersistError(f"unable to save credentials: {e}") from e
        logger.info("Edited credential set %s/%s", edited.namespace, edited.name)
        return edited

    def _next_modified(self, previous: datetime | None) -> datetime:
        """Current time, nudged forward so it is strictly after ``previous``."""
        now = self.clock()
        if previous is not None and now <= previous:
            return previous + timedelta(microseconds=1)
        return now

    # ── Apply ────────────────────────────────────────────────────────────

    def apply_credentials(self, opts: ApplyOptions) -> CredentialSet:
        """Create or replace a credential set from a YAML or JSON file."""
        try:
            raw = unmarshal_file(opts.file)
        except (OSError, ValueError) as e:
            raise ParseError(f"invalid --file '{opts.file}': {e}") from e

        namespace = self._namespace_from_document(raw, opts)

        try:
            creds = CredentialSet.from_document(raw)
        except ValueError as e:
            raise ParseError(f"could not load {opts.file} as a credential set: {e}") from e

        try:
            creds.validate_structure()
        except ValidationError as e:
            raise ValidationError(f"invalid credential set: {e}") from e

        creds.namespace = namespace
        creds.modified = self.clock()
        # created comes from the document as-is; an existing set's creation
        # timestamp is not carried over by the upsert.
        if creds.created is None:
            logger.debug("Applied document for %s has no created timestamp", creds.name)

        try:
            self.store.validate(creds)
        except ValidationError as e:
            raise ValidationError(f"credential set is invalid: {e}") from e

        try:
            self.store.upsert_credential_set(creds)
        except StoreError as e:
            raise PersistError(f"unable to save credentials: {e}") from e
        logger.info("Applied credential set %s/%s from %s", creds.namespace, creds.name, opts.file)
        return creds

    @staticmethod
    def _namespace_from_document(raw: Any, opts: ApplyOptions) -> str:
        """A namespace in the file wins over --namespace."""
        if not isinstance(raw, dict):
            raise ParseError(f"invalid --file '{opts.file}': expected a mapping at the top level")
        if "namespace" in raw:
            ns = raw["namespace"]
            if not isinstance(ns, str):
                raise ValidationError("invalid namespace specified in file, must be a string")
            return ns
        return opts.namespace

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_credential(self, opts: DeleteOptions) -> None:
        """Delete a credential set. Deleting a missing set is not an error."""
        try:
            self.store.remove_credential_set(opts.namespace, opts.name)
        except NotFoundError as e:
            logger.debug("Delete skipped: %s", e)
            if self.config.debug:
                self.err.write(f"{e}\n")
            return
        except StoreError as e:
            raise PersistError(f"unable to delete credential set: {e}") from e
        logger.info("Deleted credential set %s/%s", opts.namespace, opts.name)
