from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import psycopg

_SCHEMA_SQL = Path(__file__).resolve().parent.parent / "sql" / "schema.sql"


def get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set")
    return url


@contextmanager
def db_conn() -> Iterator[psycopg.Connection]:
    """Yield a database connection with the configured ``search_path``.

    ``DATABASE_SCHEMA`` selects a dedicated schema (one per deployment);
    otherwise ``public`` is used.
    """
    with psycopg.connect(get_database_url()) as conn:
        schema = os.environ.get("DATABASE_SCHEMA", "").strip()
        if schema:
            conn.execute(f'SET search_path TO "{schema}", public')
        yield conn


def apply_schema(conn: psycopg.Connection, schema_sql_path: Path = _SCHEMA_SQL) -> None:
    sql = schema_sql_path.read_text(encoding="utf-8")
    with conn.cursor() as cur:
        cur.execute(sql)
