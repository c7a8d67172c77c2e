"""
Domain Indexer - projects name-service chain events into a queryable read-model.

This package keeps a per-name record (name, owner, expiry and text metadata)
in sync with on-chain events from the registrar, token and resolver contracts:

- Identifier canonicalization across names, namehash nodes and token ids
- Chunked historical backfill with a per-window cursor checkpoint
- Live event consumption through polling subscriptions
- Idempotent, position-guarded field-level upserts into PostgreSQL

The same apply pipeline serves the daemon, the CLI backfill command and the
authenticated HTTP trigger.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from domain_indexer.config import Settings, get_settings
from domain_indexer.consumer import LiveEventConsumer
from domain_indexer.domain.models import DecodedEvent, DomainRecord, EventCategory
from domain_indexer.infrastructure.store import MemoryRecordStore, PostgresRecordStore, RecordStore
from domain_indexer.orchestrator import BackfillOrchestrator, BackfillSummary
from domain_indexer.pipeline.apply import ApplyResult, ApplyStatus, apply_event
from domain_indexer.pipeline.normalizer import normalize
from domain_indexer.sources.abstract import EventSource
from domain_indexer.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "DecodedEvent",
    "DomainRecord",
    "EventCategory",
    # Pipeline
    "ApplyResult",
    "ApplyStatus",
    "apply_event",
    "normalize",
    # Sync engine
    "BackfillOrchestrator",
    "BackfillSummary",
    "LiveEventConsumer",
    # Adapters
    "EventSource",
    "MemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    # Logging
    "configure_logging",
    "get_logger",
]
