"""
The single apply path shared by backfill and live consumption:
decoded event -> map (normalizing the identifier) -> upsert-merge.

Failures are returned as an ``ApplyResult`` status instead of raised, so
callers aggregate them into run summaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from domain_indexer.domain.models import DecodedEvent
from domain_indexer.errors import MalformedEventError, PersistenceError
from domain_indexer.infrastructure.store import RecordStore
from domain_indexer.pipeline.mapper import map_event
from domain_indexer.utils.logging import get_logger

log = get_logger(__name__)


class ApplyStatus(str, Enum):
    APPLIED = "applied"
    UNMAPPED = "unmapped"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ApplyResult:
    status: ApplyStatus
    record_id: Optional[str] = None
    inserted: bool = False
    error: Optional[str] = None


async def apply_event(store: RecordStore, event: DecodedEvent) -> ApplyResult:
    """
    Project one decoded event into the store.

    Malformed payloads are skipped, whitelisted-key misses are ``UNMAPPED`` and
    store failures are ``FAILED``; none of them raise. A failed write is lost
    for this pass and only recovered if the event is applied again.
    """
    try:
        update = map_event(event)
    except MalformedEventError as exc:
        log.warning(
            f"[SKIP] {exc}",
            extra={
                "category": event.category.value,
                "block_number": event.block_number,
                "log_index": event.log_index,
                "tx_hash": event.transaction_hash,
            },
        )
        return ApplyResult(ApplyStatus.SKIPPED, error=str(exc))

    if update is None:
        return ApplyResult(ApplyStatus.UNMAPPED)

    try:
        result = await store.upsert_merge(update.record_id, update.fields, event.position)
    except PersistenceError as exc:
        log.exception(
            "[STORE FAILED] write dropped",
            extra={
                "category": event.category.value,
                "record_id": update.record_id,
                "block_number": event.block_number,
                "log_index": event.log_index,
            },
        )
        return ApplyResult(ApplyStatus.FAILED, record_id=update.record_id, error=str(exc))

    log.debug(
        "Record updated",
        extra={
            "record_id": update.record_id,
            "fields": sorted(update.fields),
            "inserted": result.inserted,
            "fields_written": result.fields_written,
        },
    )
    return ApplyResult(ApplyStatus.APPLIED, record_id=update.record_id, inserted=result.inserted)


__all__ = ["ApplyResult", "ApplyStatus", "apply_event"]
