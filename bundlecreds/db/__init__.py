"""PostgreSQL access for the credential store."""

from bundlecreds.db.connection import close_pool, get_connection

__all__ = ["close_pool", "get_connection"]
