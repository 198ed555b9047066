"""Tests for CredentialManager — list/show/generate/edit/apply/delete."""

from __future__ import annotations

import io
import json
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from bundlecreds.bundles import BundleActionOptions
from bundlecreds.config import Config
from bundlecreds.credentials.filestore import FileCredentialStore
from bundlecreds.credentials.options import (
    ApplyOptions,
    CredentialOptions,
    DeleteOptions,
    EditOptions,
    ListOptions,
    ShowOptions,
)
from bundlecreds.editor import Editor
from bundlecreds.encoding import FORMAT_YAML, marshal
from bundlecreds.errors import (
    DeserializeError,
    EditorError,
    GenerationError,
    NotFoundError,
    ParseError,
    PersistError,
    StoreError,
    ValidationError,
)
from bundlecreds.generator import Prompter
from bundlecreds.printer import OutputFormat

MANIFEST = """\
name: mybuns
credentials:
  - name: db-password
    description: Password for the application database
  - name: api-key
    env: API_KEY
"""


def _output(manager) -> str:
    return manager.out.getvalue()


def _edited(doc: dict) -> bytes:
    return marshal(FORMAT_YAML, doc)


class TestList:
    def test_empty_table_prints_headers(self, manager):
        assert manager.list_credentials(ListOptions()) == []
        manager.print_credentials(ListOptions())
        assert _output(manager).split() == ["NAMESPACE", "NAME", "MODIFIED"]

    def test_table_rows(self, manager, store, clock, sample_set):
        sample_set.modified = clock() - timedelta(hours=2)
        store.upsert_credential_set(sample_set)

        manager.print_credentials(ListOptions(namespace="dev"))

        lines = _output(manager).splitlines()
        assert lines[1].split(None, 2) == ["dev", "mybuns", "2 hours ago"]

    def test_namespace_scoping(self, manager, store, sample_set):
        store.upsert_credential_set(sample_set)
        assert manager.list_credentials(ListOptions(namespace="")) == []
        assert len(manager.list_credentials(ListOptions(namespace=None))) == 1

    def test_label_filter(self, manager, store, sample_set):
        store.upsert_credential_set(sample_set)
        opts = ListOptions(namespace=None, labels=["team=core"])
        assert manager.list_credentials(opts) == []

    def test_json(self, manager, store, sample_set):
        store.upsert_credential_set(sample_set)
        manager.print_credentials(ListOptions(namespace="dev", format=OutputFormat.JSON))
        docs = json.loads(_output(manager))
        assert [d["name"] for d in docs] == ["mybuns"]
        assert docs[0]["credentials"][0] == {
            "name": "api-key",
            "source": {"key": "env", "value": "API_KEY"},
        }

    def test_yaml(self, manager, store, sample_set):
        store.upsert_credential_set(sample_set)
        manager.print_credentials(ListOptions(namespace="dev", format="yaml"))
        docs = yaml.safe_load(_output(manager))
        assert docs[0]["labels"] == {"team": "payments"}


class TestShow:
    def test_not_found_prints_nothing(self, manager):
        with pytest.raises(NotFoundError):
            manager.show_credential(ShowOptions(name="nope", namespace="dev"))
        assert _output(manager) == ""

    def test_table_layout(self, manager, store, sample_set):
        store.upsert_credential_set(sample_set)

        manager.show_credential(ShowOptions(name="mybuns", namespace="dev"))

        lines = _output(manager).splitlines()
        assert lines[:6] == [
            "Name: mybuns",
            "Namespace: dev",
            "Created: 2026-01-01",
            "Modified: 2026-01-01",
            "",
            "Labels:",
        ]
        assert lines[6] == "  team: payments"
        assert lines[8].split() == ["Name", "Local", "Source", "Source", "Type"]
        assert lines[9].split() == ["api-key", "API_KEY", "env"]
        assert lines[10].split() == ["kubeconfig", "/home/me/.kube/config", "path"]

    def test_no_labels_section_when_empty(self, manager, store, sample_set):
        sample_set.labels = {}
        store.upsert_credential_set(sample_set)
        manager.show_credential(ShowOptions(name="mybuns", namespace="dev"))
        assert "Labels:" not in _output(manager)

    def test_json(self, manager, store, sample_set):
        store.upsert_credential_set(sample_set)
        manager.show_credential(ShowOptions(name="mybuns", namespace="dev", format="json"))
        assert json.loads(_output(manager))["namespace"] == "dev"


class TestGenerate:
    @pytest.fixture
    def opts(self, tmp_path: Path) -> CredentialOptions:
        manifest = tmp_path / "porter.yaml"
        manifest.write_text(MANIFEST)
        return CredentialOptions(
            bundle=BundleActionOptions(file=str(manifest)),
            namespace="dev",
            labels=["env=dev"],
            silent=True,
        )

    def test_silent(self, manager, store, clock, opts):
        cs = manager.generate_credentials(opts)

        assert cs.name == "mybuns"
        assert [c.name for c in cs.credentials] == ["api-key", "db-password"]
        assert all(c.source.key == "value" for c in cs.credentials)
        assert all(c.source.value == "TODO" for c in cs.credentials)
        assert cs.created == cs.modified == clock()
        assert store.get_credential_set("dev", "mybuns").labels == {"env": "dev"}

        out = _output(manager)
        assert "Generating new credential mybuns from bundle mybuns" in out
        assert "==> 2 credentials required for bundle mybuns" in out

    def test_explicit_name(self, manager, store, opts):
        opts.name = "staging"
        manager.generate_credentials(opts)
        assert store.get_credential_set("dev", "staging").name == "staging"

    def test_interactive(self, manager, store, opts):
        opts.silent = False
        manager.prompter = Prompter(
            stdin=io.StringIO("2\nAPI_KEY\nspecific value\nhunter2\n"),
            out=manager.out,
        )

        cs = manager.generate_credentials(opts)

        assert [(c.name, c.source.key, c.source.value) for c in cs.credentials] == [
            ("api-key", "env", "API_KEY"),
            ("db-password", "value", "hunter2"),
        ]

    def test_aborted_prompt_saves_nothing(self, manager, store, opts):
        opts.silent = False
        manager.prompter = Prompter(stdin=io.StringIO("2\n"), out=manager.out)

        with pytest.raises(GenerationError, match="unable to generate credentials"):
            manager.generate_credentials(opts)
        assert store.list_credential_sets(None) == []

    def test_invalid_name(self, manager, opts):
        opts.name = "a/b"
        with pytest.raises(GenerationError, match="cannot contain"):
            manager.generate_credentials(opts)

    def test_duplicate_requirements_rejected(self, manager, store, opts, tmp_path):
        manifest = tmp_path / "dupes.yaml"
        manifest.write_text("name: dupes\ncredentials:\n  - name: k\n  - name: k\n")
        opts.bundle = BundleActionOptions(file=str(manifest))

        with pytest.raises(ValidationError, match="more than one credential named k"):
            manager.generate_credentials(opts)
        assert store.list_credential_sets(None) == []

    def test_store_rejects_namespace(self, manager, opts, tmp_path):
        manager.store = FileCredentialStore(tmp_path / "credentials")
        opts.namespace = "team/dev"

        with pytest.raises(ValidationError, match="generated credential set is invalid"):
            manager.generate_credentials(opts)
        assert not (tmp_path / "credentials").exists()

    def test_persist_failure(self, manager, store, opts):
        store.upsert_credential_set = MagicMock(side_effect=StoreError("disk full"))
        with pytest.raises(PersistError, match="unable to save credentials: disk full"):
            manager.generate_credentials(opts)


class TestEdit:
    @pytest.fixture
    def stored(self, store, sample_set):
        store.upsert_credential_set(sample_set)
        return sample_set

    def test_saves_edited_document(self, manager, store, clock, fake_editor, stored):
        doc = stored.to_document()
        doc["credentials"][0]["source"] = {"key": "value", "value": "s3cret"}
        doc["created"] = "1999-01-01T00:00:00Z"
        fake_editor.output = _edited(doc)

        edited = manager.edit_credential(EditOptions(name="mybuns", namespace="dev"))

        saved = store.get_credential_set("dev", "mybuns")
        assert saved == edited
        assert saved.credentials[0].source.value == "s3cret"
        assert saved.created == stored.created
        assert saved.modified == clock()

        filename, contents = fake_editor.calls[0]
        assert filename == "bundlecreds-mybuns.yaml"
        assert yaml.safe_load(contents)["name"] == "mybuns"

    def test_modified_strictly_increases(self, manager, store, clock, fake_editor, sample_set):
        sample_set.modified = clock()
        store.upsert_credential_set(sample_set)
        fake_editor.output = _edited(sample_set.to_document())

        edited = manager.edit_credential(EditOptions(name="mybuns", namespace="dev"))

        assert edited.modified > sample_set.modified

    def test_missing_set(self, manager, fake_editor):
        with pytest.raises(NotFoundError):
            manager.edit_credential(EditOptions(name="nope", namespace="dev"))
        assert fake_editor.calls == []

    def test_editor_failure(self, manager, store, fake_editor, stored):
        fake_editor.output = EditorError("editor vi exited with status 1")
        with pytest.raises(EditorError, match="unable to open editor"):
            manager.edit_credential(EditOptions(name="mybuns", namespace="dev"))
        assert store.get_credential_set("dev", "mybuns") == stored

    def test_unparseable_output(self, manager, store, fake_editor, stored):
        fake_editor.output = b"credentials: [unclosed"
        with pytest.raises(DeserializeError, match="unable to process credentials"):
            manager.edit_credential(EditOptions(name="mybuns", namespace="dev"))
        assert store.get_credential_set("dev", "mybuns") == stored

    def test_duplicate_entries_rejected(self, manager, store, fake_editor, stored):
        doc = stored.to_document()
        doc["credentials"].append(dict(doc["credentials"][0]))
        fake_editor.output = _edited(doc)

        with pytest.raises(ValidationError, match="credentials are invalid"):
            manager.edit_credential(EditOptions(name="mybuns", namespace="dev"))
        assert store.get_credential_set("dev", "mybuns") == stored

    def test_name_with_path_separator(self, manager, store, clock, sample_set, monkeypatch):
        sample_set.name = "team/app"
        store.upsert_credential_set(sample_set)
        manager.editor_factory = Editor
        monkeypatch.setenv("VISUAL", "myedit")
        seen: list[Path] = []

        def fake_run(cmd, timeout=None):
            seen.append(Path(cmd[-1]))
            return MagicMock(returncode=0)

        with patch("subprocess.run", side_effect=fake_run):
            edited = manager.edit_credential(EditOptions(name="team/app", namespace="dev"))

        assert seen[0].name == "bundlecreds-team_app.yaml"
        assert edited.key == ("dev", "team/app")
        assert store.get_credential_set("dev", "team/app").modified == clock()

    def test_rename_rejected(self, manager, store, fake_editor, stored):
        doc = stored.to_document()
        doc["name"] = "renamed"
        fake_editor.output = _edited(doc)

        with pytest.raises(ValidationError, match="cannot be changed"):
            manager.edit_credential(EditOptions(name="mybuns", namespace="dev"))
        assert [cs.name for cs in store.list_credential_sets(None)] == ["mybuns"]


class TestApply:
    def _write(self, tmp_path: Path, doc, name="creds.yaml") -> str:
        path = tmp_path / name
        if name.endswith(".json"):
            path.write_text(json.dumps(doc))
        else:
            path.write_text(yaml.safe_dump(doc))
        return str(path)

    def _doc(self, **extra) -> dict:
        doc = {
            "name": "mybuns",
            "credentials": [{"name": "api-key", "source": {"key": "env", "value": "API_KEY"}}],
        }
        doc.update(extra)
        return doc

    def test_namespace_from_option(self, manager, store, clock, tmp_path):
        path = self._write(tmp_path, self._doc())
        cs = manager.apply_credentials(ApplyOptions(file=path, namespace="ns-b"))
        assert cs.key == ("ns-b", "mybuns")
        assert store.get_credential_set("ns-b", "mybuns").modified == clock()

    def test_namespace_in_file_wins(self, manager, store, tmp_path):
        path = self._write(tmp_path, self._doc(namespace="ns-a"), "creds.json")
        manager.apply_credentials(ApplyOptions(file=path, namespace="ns-b"))
        assert store.get_credential_set("ns-a", "mybuns").name == "mybuns"
        assert store.list_credential_sets("ns-b") == []

    def test_replaces_existing(self, manager, store, sample_set, tmp_path):
        store.upsert_credential_set(sample_set)
        path = self._write(tmp_path, self._doc(namespace="dev"))
        manager.apply_credentials(ApplyOptions(file=path))
        assert len(store.get_credential_set("dev", "mybuns").credentials) == 1

    def test_non_string_namespace(self, manager, store, tmp_path):
        path = self._write(tmp_path, self._doc(namespace=42))
        with pytest.raises(ValidationError, match="must be a string"):
            manager.apply_credentials(ApplyOptions(file=path))
        assert store.list_credential_sets(None) == []

    def test_duplicate_entries(self, manager, tmp_path):
        doc = self._doc()
        doc["credentials"] *= 2
        path = self._write(tmp_path, doc)
        with pytest.raises(ValidationError, match="invalid credential set"):
            manager.apply_credentials(ApplyOptions(file=path))

    def test_unparseable_file(self, manager, tmp_path):
        path = tmp_path / "creds.yaml"
        path.write_text("name: [unclosed")
        with pytest.raises(ParseError, match="invalid --file"):
            manager.apply_credentials(ApplyOptions(file=str(path)))

    def test_unsupported_extension(self, manager, tmp_path):
        path = tmp_path / "creds.txt"
        path.write_text("name: mybuns\n")
        with pytest.raises(ParseError, match="unsupported file extension"):
            manager.apply_credentials(ApplyOptions(file=str(path)))

    def test_store_rejects_source(self, manager, store, tmp_path):
        doc = self._doc()
        doc["credentials"][0]["source"]["key"] = "vault"
        path = self._write(tmp_path, doc)
        with pytest.raises(ValidationError, match="credential set is invalid"):
            manager.apply_credentials(ApplyOptions(file=path))
        assert store.list_credential_sets(None) == []


class TestDelete:
    def test_delete(self, manager, store, sample_set):
        store.upsert_credential_set(sample_set)
        manager.delete_credential(DeleteOptions(name="mybuns", namespace="dev"))
        assert store.list_credential_sets(None) == []

    def test_missing_is_silent(self, manager):
        manager.delete_credential(DeleteOptions(name="nope", namespace="dev"))
        assert manager.err.getvalue() == ""

    def test_missing_reported_in_debug(self, manager):
        manager.config = Config(debug=True)
        manager.delete_credential(DeleteOptions(name="nope", namespace="dev"))
        assert "credential set dev/nope not found" in manager.err.getvalue()

    def test_store_failure(self, manager, store):
        store.remove_credential_set = MagicMock(side_effect=StoreError("read-only"))
        with pytest.raises(PersistError, match="unable to delete credential set"):
            manager.delete_credential(DeleteOptions(name="mybuns", namespace="dev"))
