"""
Domain package for the domain indexer.

Exports the event, record and cursor models used across the pipeline, the
sources, the store and the orchestrator. Keep this package focused on data
definitions.
"""

from domain_indexer.domain.models import (
    ALL_CATEGORIES,
    RECORD_FIELDS,
    DecodedEvent,
    DomainRecord,
    EventCategory,
    Position,
    SyncCursor,
)

__all__ = [
    "ALL_CATEGORIES",
    "RECORD_FIELDS",
    "DecodedEvent",
    "DomainRecord",
    "EventCategory",
    "Position",
    "SyncCursor",
]
