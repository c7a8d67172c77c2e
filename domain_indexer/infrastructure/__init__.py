"""
Infrastructure package for the domain indexer.

Centralizes database connectivity (sync/async factories) and the record store
adapters. Keep this layer focused on I/O and resource management, decoupled
from pipeline/orchestrator logic.
"""

from domain_indexer.infrastructure.db_factory import (
    apply_schema,
    build_dsn,
    create_async_pool,
    get_sync_connection,
)
from domain_indexer.infrastructure.store import (
    MemoryRecordStore,
    PostgresRecordStore,
    RecordStore,
    UpsertResult,
    open_store,
)

__all__ = [
    "apply_schema",
    "build_dsn",
    "create_async_pool",
    "get_sync_connection",
    "MemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "UpsertResult",
    "open_store",
]
