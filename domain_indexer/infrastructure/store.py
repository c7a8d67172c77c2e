"""
Record store adapters.

The sync engine only needs two idempotent operations from storage:

- ``upsert_merge``: insert the record if absent and set the given fields, each
  guarded by the ``(block_number, log_index)`` of the event that produced it so
  an older event never overwrites a newer value;
- a singleton cursor with ``ensure_cursor`` / ``get_cursor`` / ``set_cursor``,
  where ``set_cursor`` never lowers the stored block.

``PostgresRecordStore`` is the production adapter; ``MemoryRecordStore`` keeps
the same semantics in process for tests and dry runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

import asyncpg

from domain_indexer.config import Settings
from domain_indexer.domain.models import RECORD_FIELDS, DomainRecord, Position
from domain_indexer.errors import PersistenceError
from domain_indexer.infrastructure.db_factory import build_dsn, create_async_pool
from domain_indexer.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of one upsert-merge."""

    inserted: bool
    fields_written: int


@runtime_checkable
class RecordStore(Protocol):
    """Storage contract the sync engine depends on."""

    async def upsert_merge(
        self, record_id: str, fields: Mapping[str, str], position: Position
    ) -> UpsertResult:
        ...

    async def get_record(self, record_id: str) -> Optional[DomainRecord]:
        ...

    async def ensure_cursor(self, floor: int) -> int:
        ...

    async def get_cursor(self) -> Optional[int]:
        ...

    async def set_cursor(self, block: int) -> None:
        ...

    async def close(self) -> None:
        ...


def _check_fields(fields: Mapping[str, str]) -> None:
    unknown = set(fields) - set(RECORD_FIELDS)
    if unknown:
        raise ValueError(f"Unknown record fields: {sorted(unknown)}")


class MemoryRecordStore:
    """
    In-process store with the same merge and cursor semantics as Postgres.

    Each operation runs without suspending, so concurrent tasks on one loop
    cannot interleave inside a write.
    """

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Tuple[str, Position]]] = {}
        self._cursor: Optional[int] = None
        self.write_calls = 0
        self.closed = False

    async def upsert_merge(
        self, record_id: str, fields: Mapping[str, str], position: Position
    ) -> UpsertResult:
        _check_fields(fields)
        self.write_calls += 1
        inserted = record_id not in self._records
        record = self._records.setdefault(record_id, {})
        written = 0
        for field, value in fields.items():
            current = record.get(field)
            if current is None or current[1] <= position:
                record[field] = (value, position)
                written += 1
        return UpsertResult(inserted=inserted, fields_written=written)

    async def get_record(self, record_id: str) -> Optional[DomainRecord]:
        record = self._records.get(record_id)
        if record is None:
            return None
        return DomainRecord(id=record_id, **{field: value for field, (value, _) in record.items()})

    def documents(self) -> Dict[str, Dict[str, str]]:
        """Snapshot of every record as a storage-named document."""
        return {
            record_id: {"id": record_id, **{f: v for f, (v, _) in fields.items()}}
            for record_id, fields in self._records.items()
        }

    async def ensure_cursor(self, floor: int) -> int:
        if self._cursor is None:
            self._cursor = floor
        return self._cursor

    async def get_cursor(self) -> Optional[int]:
        return self._cursor

    async def set_cursor(self, block: int) -> None:
        self.write_calls += 1
        self._cursor = block if self._cursor is None else max(self._cursor, block)

    async def close(self) -> None:
        self.closed = True


_INSERT_DOMAIN_SQL = """
INSERT INTO public.domains (id) VALUES ($1)
ON CONFLICT (id) DO NOTHING
RETURNING id
"""

_UPSERT_FIELDS_SQL = """
INSERT INTO public.domain_fields (domain_id, field, value, block_number, log_index)
SELECT $1, f.field, f.value, $4, $5
FROM unnest($2::text[], $3::text[]) AS f(field, value)
ON CONFLICT (domain_id, field) DO UPDATE
SET value = EXCLUDED.value,
    block_number = EXCLUDED.block_number,
    log_index = EXCLUDED.log_index,
    updated_at = now()
WHERE (public.domain_fields.block_number, public.domain_fields.log_index)
      <= (EXCLUDED.block_number, EXCLUDED.log_index)
"""

_SELECT_FIELDS_SQL = """
SELECT d.id, f.field, f.value
FROM public.domains d
LEFT JOIN public.domain_fields f ON f.domain_id = d.id
WHERE d.id = $1
"""

_ENSURE_CURSOR_SQL = """
INSERT INTO public.sync_cursor (singleton, last_processed_block) VALUES (TRUE, $1)
ON CONFLICT (singleton) DO NOTHING
"""

_SELECT_CURSOR_SQL = "SELECT last_processed_block FROM public.sync_cursor WHERE singleton"

_SET_CURSOR_SQL = """
INSERT INTO public.sync_cursor (singleton, last_processed_block) VALUES (TRUE, $1)
ON CONFLICT (singleton) DO UPDATE
SET last_processed_block = GREATEST(public.sync_cursor.last_processed_block, EXCLUDED.last_processed_block),
    updated_at = now()
"""


# Server-side errors, client-side pool/connection state errors and socket failures.
_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _status_count(status: str) -> int:
    """Row count from an asyncpg command tag such as ``INSERT 0 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresRecordStore:
    """
    Record store backed by PostgreSQL through an asyncpg pool.

    Every write is a single statement (or two inside one transaction), so
    concurrent writers to the same identifier are serialized by row locks
    rather than by application-side read-modify-write.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @classmethod
    async def connect(cls, dsn: Optional[str] = None, max_size: int = 10) -> "PostgresRecordStore":
        pool = await create_async_pool(dsn, min_size=1, max_size=max_size)
        return cls(pool)

    async def upsert_merge(
        self, record_id: str, fields: Mapping[str, str], position: Position
    ) -> UpsertResult:
        _check_fields(fields)
        names: List[str] = list(fields)
        values: List[str] = [fields[name] for name in names]
        block_number, log_index = position
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    inserted_id = await conn.fetchval(_INSERT_DOMAIN_SQL, record_id)
                    status = await conn.execute(
                        _UPSERT_FIELDS_SQL, record_id, names, values, block_number, log_index
                    )
        except _STORE_ERRORS as exc:
            raise PersistenceError(f"upsert failed for {record_id}: {exc}") from exc
        return UpsertResult(inserted=inserted_id is not None, fields_written=_status_count(status))

    async def get_record(self, record_id: str) -> Optional[DomainRecord]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(_SELECT_FIELDS_SQL, record_id)
        except _STORE_ERRORS as exc:
            raise PersistenceError(f"lookup failed for {record_id}: {exc}") from exc
        if not rows:
            return None
        document = {row["field"]: row["value"] for row in rows if row["field"] is not None}
        return DomainRecord(id=record_id, **document)

    async def ensure_cursor(self, floor: int) -> int:
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(_ENSURE_CURSOR_SQL, floor)
                    return await conn.fetchval(_SELECT_CURSOR_SQL)
        except _STORE_ERRORS as exc:
            raise PersistenceError(f"cursor initialisation failed: {exc}") from exc

    async def get_cursor(self) -> Optional[int]:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval(_SELECT_CURSOR_SQL)
        except _STORE_ERRORS as exc:
            raise PersistenceError(f"cursor read failed: {exc}") from exc

    async def set_cursor(self, block: int) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(_SET_CURSOR_SQL, block)
        except _STORE_ERRORS as exc:
            raise PersistenceError(f"cursor write failed at block {block}: {exc}") from exc

    async def close(self) -> None:
        await self._pool.close()


async def open_store(settings: Settings) -> RecordStore:
    """
    Build the configured store. The caller owns it and must ``close()`` it.
    """
    if settings.store_backend == "memory":
        log.warning("Using in-memory record store; nothing will be persisted")
        return MemoryRecordStore()
    log.info(
        "Connecting record store",
        extra={"db_host": settings.db_host, "db_name": settings.db_name},
    )
    return await PostgresRecordStore.connect(build_dsn(settings))


__all__ = [
    "MemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "UpsertResult",
    "open_store",
]
