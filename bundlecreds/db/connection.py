"""
PostgreSQL connections for the ``postgres`` credential store backend.

One process-wide ThreadedConnectionPool is created lazily from the first
DatabaseConfig it is asked for (BUNDLECREDS_DB_* by default) and lives until
close_pool() is called when the command finishes.

Usage:
    from bundlecreds.db import get_connection

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT count(*) FROM credential_sets")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager

import psycopg2
import psycopg2.pool

from bundlecreds.config import DatabaseConfig, get_config

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5  # seconds

_pool: psycopg2.pool.ThreadedConnectionPool | None = None
_pool_lock = threading.Lock()


def _open(
    cfg: DatabaseConfig, minconn: int, maxconn: int
) -> psycopg2.pool.ThreadedConnectionPool:
    target = f"{cfg.host or 'localhost'}:{cfg.port}/{cfg.name}"
    logger.debug("Opening credential store pool for %s as %s", target, cfg.user)
    try:
        return psycopg2.pool.ThreadedConnectionPool(
            minconn=minconn,
            maxconn=maxconn,
            connect_timeout=CONNECT_TIMEOUT,
            **cfg.dict,
        )
    except psycopg2.OperationalError as e:
        raise ConnectionError(
            f"cannot reach the credential store database at {target}: {e}\n"
            "Check the BUNDLECREDS_DB_* settings or run with BUNDLECREDS_STORE=file."
        ) from e


def get_pool(
    db: DatabaseConfig | None = None, minconn: int = 1, maxconn: int = 4
) -> psycopg2.pool.ThreadedConnectionPool:
    """Return the shared pool, opening it on first use."""
    global _pool
    with _pool_lock:
        if _pool is None or _pool.closed:
            _pool = _open(db or get_config().db, minconn, maxconn)
        return _pool


@contextmanager
def get_connection(
    db: DatabaseConfig | None = None,
    autocommit: bool = False,
) -> Generator[psycopg2.extensions.connection, None, None]:
    """Borrow a pooled connection.

    Without ``autocommit`` the block runs in one transaction: committed on a
    clean exit, rolled back when it raises. ``migrate`` uses autocommit so the
    schema script runs statement by statement.
    """
    pool = get_pool(db)
    conn = pool.getconn()
    conn.autocommit = autocommit
    try:
        yield conn
        if not autocommit:
            conn.commit()
    except Exception:
        if not autocommit:
            conn.rollback()
        raise
    finally:
        conn.autocommit = False
        pool.putconn(conn)


def close_pool() -> None:
    """Close every pooled connection. Safe to call when no pool was opened."""
    global _pool
    with _pool_lock:
        if _pool is not None:
            _pool.closeall()
            logger.debug("Closed credential store pool")
            _pool = None
