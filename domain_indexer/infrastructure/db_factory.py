"""
Database connection factory utilities for the domain indexer.

Provides DSN composition, a dedicated synchronous psycopg connection for
administrative tasks (schema bootstrap, ad-hoc lookups) and an asyncpg pool for
the sync engine's store writes. Pools are created per caller and closed by the
owner; there is no process-wide pool singleton.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import asyncpg
import psycopg
from psycopg import Connection
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from domain_indexer.config import Settings, get_settings

SCHEMA_PATH = Path(__file__).resolve().parent.parent.parent / "db" / "init.sql"


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Returns
    -------
    Connection
        A new psycopg connection instance.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def apply_schema(dsn: Optional[str] = None, schema_path: Path = SCHEMA_PATH) -> None:
    """
    Create the read-model tables and view if they do not exist yet.
    """
    sql = schema_path.read_text(encoding="utf-8")
    conn = get_sync_connection(dsn)
    try:
        with conn.cursor() as cur:
            cur.execute(sql)
        conn.commit()
    finally:
        conn.close()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((OSError, ConnectionError, asyncpg.CannotConnectNowError)),
    reraise=True,
)
async def create_async_pool(
    dsn: Optional[str] = None, min_size: int = 1, max_size: int = 10
) -> asyncpg.Pool:
    """
    Create an asyncpg pool with automatic retry.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to the configured database.
    min_size : int
        Minimum number of idle connections to keep.
    max_size : int
        Maximum total connections in the pool.

    Returns
    -------
    asyncpg.Pool
        A new pool; the caller owns it and must close it.
    """
    return await asyncpg.create_pool(dsn or build_dsn(), min_size=min_size, max_size=max_size)


__all__ = [
    "SCHEMA_PATH",
    "apply_schema",
    "build_dsn",
    "create_async_pool",
    "get_sync_connection",
]
