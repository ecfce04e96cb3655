"""PostgreSQL client for running the document store against a local database.

Used when USE_LOCAL_DB=1. Tables mirror the Supabase schema: ``users`` holds
one profile row per identity (``credit_history`` is JSONB) and ``gallery``
holds generated-image entries keyed by ``user_id``.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Generator

from psycopg2 import pool
from psycopg2.extras import RealDictCursor


class PostgresClient:
    """Pooled connections with one-transaction-per-block semantics."""

    def __init__(self) -> None:
        self.enabled = os.getenv("USE_LOCAL_DB", "0") == "1"
        self._pool: Any = None
        if not self.enabled:
            return
        try:
            self._pool = pool.SimpleConnectionPool(
                minconn=1,
                maxconn=int(os.getenv("POSTGRES_POOL_SIZE", "10")),
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "imagegenie"),
                user=os.getenv("POSTGRES_USER", "imagegenie"),
                password=os.getenv("POSTGRES_PASSWORD", "imagegenie_dev_password"),
            )
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Failed to initialize PostgreSQL connection pool: {exc}") from exc

    @contextmanager
    def transaction(self) -> Generator[Any, None, None]:
        """Yield a dict cursor; commit on success, roll back on any error."""
        if self._pool is None:
            raise RuntimeError("Local PostgreSQL database is not enabled")
        conn = self._pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def fetch_one(self, query: str, params: tuple = ()) -> dict[str, Any] | None:
        with self.transaction() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
            return dict(row) if row else None

    def fetch_all(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self.transaction() as cursor:
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]


_POSTGRES_CLIENT: PostgresClient | None = None


def get_postgres_client() -> PostgresClient | None:
    global _POSTGRES_CLIENT
    if os.getenv("USE_LOCAL_DB", "0") != "1":
        return None
    if _POSTGRES_CLIENT is None:
        _POSTGRES_CLIENT = PostgresClient()
    return _POSTGRES_CLIENT
