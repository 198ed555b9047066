"""
PostgreSQL credential store — CRUD on the credential_sets table.

Labels and credential entries are stored as JSONB. Schema lives in
bundlecreds/migrations/001_credential_sets.sql (``bundlecreds migrate``).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import psycopg2
from psycopg2.extras import RealDictCursor

from bundlecreds.config import DatabaseConfig
from bundlecreds.credentials.models import CredentialSet
from bundlecreds.credentials.store import CredentialStore
from bundlecreds.db.connection import close_pool, get_connection
from bundlecreds.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)

_COLUMNS = "namespace, name, labels, credentials, created, modified"


def _row_to_set(row: dict[str, Any]) -> CredentialSet:
    return CredentialSet.from_document(
        {
            "namespace": row["namespace"],
            "name": row["name"],
            "labels": row.get("labels") or {},
            "credentials": row.get("credentials") or [],
            "created": row.get("created"),
            "modified": row.get("modified"),
        }
    )


def _params(cs: CredentialSet) -> tuple:
    doc = cs.to_document()
    return (
        cs.namespace,
        cs.name,
        json.dumps(doc["labels"]),
        json.dumps(doc["credentials"]),
        cs.created,
        cs.modified,
    )


class PostgresCredentialStore(CredentialStore):
    """Credential sets in PostgreSQL, one row per (namespace, name)."""

    def __init__(self, db: DatabaseConfig | None = None):
        self.db = db

    def _execute(self, sql: str, params: tuple, fetch: str = "none") -> Any:
        try:
            with get_connection(self.db) as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(sql, params)
                    if fetch == "all":
                        return cur.fetchall()
                    if fetch == "one":
                        return cur.fetchone()
                    return cur.rowcount
        except (psycopg2.Error, ConnectionError) as e:
            raise StoreError(f"credential store query failed: {e}") from e

    def list_credential_sets(
        self,
        namespace: str | None,
        name: str = "",
        labels: dict[str, str] | None = None,
    ) -> list[CredentialSet]:
        clauses: list[str] = []
        params: list[Any] = []
        if namespace is not None:
            clauses.append("namespace = %s")
            params.append(namespace)
        if name:
            clauses.append("name = %s")
            params.append(name)
        if labels:
            clauses.append("labels @> %s::jsonb")
            params.append(json.dumps(labels))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        rows = self._execute(
            f"SELECT {_COLUMNS} FROM credential_sets {where} ORDER BY namespace, name",
            tuple(params),
            fetch="all",
        )
        return [_row_to_set(dict(r)) for r in rows]

    def get_credential_set(self, namespace: str, name: str) -> CredentialSet:
        row = self._execute(
            f"SELECT {_COLUMNS} FROM credential_sets WHERE namespace = %s AND name = %s",
            (namespace, name),
            fetch="one",
        )
        if not row:
            raise NotFoundError(namespace, name)
        return _row_to_set(dict(row))

    def upsert_credential_set(self, cs: CredentialSet) -> None:
        self._execute(
            f"""
            INSERT INTO credential_sets ({_COLUMNS})
            VALUES (%s, %s, %s::jsonb, %s::jsonb, %s, %s)
            ON CONFLICT (namespace, name)
            DO UPDATE SET labels = EXCLUDED.labels,
                          credentials = EXCLUDED.credentials,
                          created = EXCLUDED.created,
                          modified = EXCLUDED.modified
            """,
            _params(cs),
        )
        logger.debug("Upserted credential set %s/%s", cs.namespace, cs.name)

    def update_credential_set(self, cs: CredentialSet) -> None:
        namespace, name, labels, credentials, created, modified = _params(cs)
        updated = self._execute(
            """
            UPDATE credential_sets
            SET labels = %s::jsonb, credentials = %s::jsonb, created = %s, modified = %s
            WHERE namespace = %s AND name = %s
            """,
            (labels, credentials, created, modified, namespace, name),
        )
        if updated == 0:
            raise NotFoundError(namespace, name)

    def remove_credential_set(self, namespace: str, name: str) -> None:
        deleted = self._execute(
            "DELETE FROM credential_sets WHERE namespace = %s AND name = %s",
            (namespace, name),
        )
        if deleted == 0:
            raise NotFoundError(namespace, name)

    def close(self) -> None:
        close_pool()
