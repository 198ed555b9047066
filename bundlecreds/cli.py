"""
bundlecreds CLI — manage credential sets for bundles.

Usage:
    bundlecreds list                      # List credential sets
    bundlecreds show NAME                 # Show one credential set
    bundlecreds generate [NAME]           # Generate a set from a bundle
    bundlecreds edit NAME                 # Edit a set in $EDITOR
    bundlecreds apply FILE                # Create or replace a set from a file
    bundlecreds delete NAME               # Delete a set
    bundlecreds migrate                   # Create the PostgreSQL schema
    bundlecreds version                   # Show version
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from bundlecreds.config import Config, get_config
from bundlecreds.errors import CredentialError

if TYPE_CHECKING:
    from bundlecreds.credentials.manager import CredentialManager

logger = logging.getLogger(__name__)

MIGRATION_SQL = Path(__file__).parent / "migrations" / "001_credential_sets.sql"


def _add_namespace(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--namespace",
        "-n",
        default=None,
        help="Namespace of the credential set (default: $BUNDLECREDS_NAMESPACE or global)",
    )


def _add_output(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--output",
        "-o",
        default="table",
        help="Output format: table, json or yaml (default: table)",
    )


def _add_labels(p: argparse.ArgumentParser, help_text: str) -> None:
    p.add_argument("--label", "-l", action="append", default=[], help=help_text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundlecreds",
        description="Manage named credential sets used to run bundles.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    subparsers = parser.add_subparsers(dest="command")

    # list
    list_parser = subparsers.add_parser("list", help="List credential sets")
    _add_namespace(list_parser)
    list_parser.add_argument(
        "--all-namespaces", action="store_true", help="Include every namespace"
    )
    list_parser.add_argument("--name", default="", help="Only sets with this name")
    _add_labels(list_parser, "Filter by label KEY=VALUE (repeatable)")
    _add_output(list_parser)

    # show
    show_parser = subparsers.add_parser("show", help="Show a credential set")
    show_parser.add_argument("names", nargs="*", metavar="NAME")
    _add_namespace(show_parser)
    _add_output(show_parser)

    # generate
    gen_parser = subparsers.add_parser("generate", help="Generate a credential set from a bundle")
    gen_parser.add_argument("names", nargs="*", metavar="NAME")
    gen_parser.add_argument("--file", "-f", default="", help="Path to a porter.yaml manifest")
    gen_parser.add_argument("--cnab-file", default="", help="Path to a CNAB bundle.json")
    gen_parser.add_argument("--reference", "-r", default="", help="Bundle reference")
    _add_namespace(gen_parser)
    _add_labels(gen_parser, "Label KEY=VALUE to set on the credential set (repeatable)")
    gen_parser.add_argument(
        "--silent", action="store_true", help="Generate placeholder entries without prompting"
    )

    # edit
    edit_parser = subparsers.add_parser("edit", help="Edit a credential set in $EDITOR")
    edit_parser.add_argument("names", nargs="*", metavar="NAME")
    _add_namespace(edit_parser)

    # apply
    apply_parser = subparsers.add_parser(
        "apply", help="Create or replace a credential set from a YAML/JSON file"
    )
    apply_parser.add_argument("files", nargs="*", metavar="FILE")
    _add_namespace(apply_parser)

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a credential set")
    delete_parser.add_argument("names", nargs="*", metavar="NAME")
    _add_namespace(delete_parser)

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Create the PostgreSQL schema")
    migrate_parser.add_argument(
        "--dry-run", action="store_true", help="Print SQL without executing"
    )

    # version
    subparsers.add_parser("version", help="Show version")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.version or args.command == "version":
        from bundlecreds import __version__

        print(f"bundlecreds {__version__}")
        return 0

    handlers = {
        "list": _cmd_list,
        "show": _cmd_show,
        "generate": _cmd_generate,
        "edit": _cmd_edit,
        "apply": _cmd_apply,
        "delete": _cmd_delete,
        "migrate": _cmd_migrate,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        cfg = _load_config(args)
        return handler(args, cfg)
    except CredentialError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        # configuration problems, e.g. an unknown BUNDLECREDS_STORE
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _load_config(args: argparse.Namespace) -> Config:
    cfg = get_config()
    if args.debug and not cfg.debug:
        cfg = dataclasses.replace(cfg, debug=True)
    return cfg


def _namespace(args: argparse.Namespace, cfg: Config) -> str:
    return args.namespace if args.namespace is not None else cfg.default_namespace


@contextmanager
def _manager(cfg: Config) -> Iterator[CredentialManager]:
    """Manager over the configured store; the store is closed on exit."""
    from bundlecreds.credentials import CredentialManager, open_store

    store = open_store(cfg)
    try:
        yield CredentialManager(store, config=cfg)
    finally:
        store.close()


def _cmd_list(args: argparse.Namespace, cfg: Config) -> int:
    from bundlecreds.credentials.options import ListOptions

    opts = ListOptions(
        namespace=None if args.all_namespaces else _namespace(args, cfg),
        name=args.name,
        labels=args.label,
        format=args.output,
    )
    opts.validate()
    with _manager(cfg) as mgr:
        mgr.print_credentials(opts)
    return 0


def _cmd_show(args: argparse.Namespace, cfg: Config) -> int:
    from bundlecreds.credentials.options import ShowOptions

    opts = ShowOptions(namespace=_namespace(args, cfg), format=args.output)
    opts.validate(args.names)
    with _manager(cfg) as mgr:
        mgr.show_credential(opts)
    return 0


def _cmd_generate(args: argparse.Namespace, cfg: Config) -> int:
    from bundlecreds.bundles import BundleActionOptions
    from bundlecreds.credentials.options import CredentialOptions

    opts = CredentialOptions(
        bundle=BundleActionOptions(
            file=args.file, cnab_file=args.cnab_file, reference=args.reference
        ),
        namespace=_namespace(args, cfg),
        labels=args.label,
        silent=args.silent,
    )
    opts.validate(args.names)
    with _manager(cfg) as mgr:
        mgr.generate_credentials(opts)
    return 0


def _cmd_edit(args: argparse.Namespace, cfg: Config) -> int:
    from bundlecreds.credentials.options import EditOptions

    opts = EditOptions(namespace=_namespace(args, cfg))
    opts.validate(args.names)
    with _manager(cfg) as mgr:
        mgr.edit_credential(opts)
    return 0


def _cmd_apply(args: argparse.Namespace, cfg: Config) -> int:
    from bundlecreds.credentials.options import ApplyOptions

    opts = ApplyOptions(namespace=_namespace(args, cfg))
    opts.validate(args.files)
    with _manager(cfg) as mgr:
        cs = mgr.apply_credentials(opts)
    print(f"Applied {cs.namespace}/{cs.name} credential set")
    return 0


def _cmd_delete(args: argparse.Namespace, cfg: Config) -> int:
    from bundlecreds.credentials.options import DeleteOptions

    opts = DeleteOptions(namespace=_namespace(args, cfg))
    opts.validate(args.names)
    with _manager(cfg) as mgr:
        mgr.delete_credential(opts)
    return 0


def _cmd_migrate(args: argparse.Namespace, cfg: Config) -> int:
    if not MIGRATION_SQL.exists():
        print(f"Error: Migration SQL not found at {MIGRATION_SQL}", file=sys.stderr)
        return 1
    sql = MIGRATION_SQL.read_text()

    if args.dry_run:
        print("-- Dry run: the following SQL would be executed --")
        print(sql)
        return 0

    import psycopg2

    from bundlecreds.db.connection import close_pool, get_connection

    print(f"Connecting to {cfg.db.host or 'localhost'}:{cfg.db.port}/{cfg.db.name}...")
    try:
        with get_connection(cfg.db, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
    except (psycopg2.Error, ConnectionError) as e:
        print(f"Error: Migration failed: {e}", file=sys.stderr)
        print(
            "Check BUNDLECREDS_DB_* environment variables and ensure PostgreSQL is running.",
            file=sys.stderr,
        )
        return 1
    finally:
        close_pool()
    print("Migration completed successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
