"""
Process-level entry points wiring source, store, orchestrator and consumer.

``run_once`` is the bounded job used by the CLI ``backfill`` command and the
trigger endpoint. ``run_daemon`` waits for the provider, attaches live
subscriptions at the captured head, backfills up to that head and then keeps
consuming until cancelled.
"""

from __future__ import annotations

from typing import Optional

from domain_indexer.config import Settings
from domain_indexer.consumer import LiveEventConsumer
from domain_indexer.infrastructure.store import RecordStore
from domain_indexer.orchestrator import BackfillOrchestrator, BackfillSummary, wait_for_head
from domain_indexer.sources.abstract import EventSource
from domain_indexer.utils.logging import get_logger

log = get_logger(__name__)


def build_orchestrator(settings: Settings, source: EventSource, store: RecordStore) -> BackfillOrchestrator:
    return BackfillOrchestrator(
        source,
        store,
        window_size=settings.backfill_window_size,
        deployment_block=settings.deployment_block,
    )


async def run_once(
    settings: Settings,
    source: EventSource,
    store: RecordStore,
    from_block: Optional[int] = None,
    to_block: Optional[int] = None,
) -> BackfillSummary:
    """One backfill from the cursor (or ``from_block``) to the current head."""
    orchestrator = build_orchestrator(settings, source, store)
    return await orchestrator.run(from_block=from_block, to_block=to_block)


async def run_daemon(settings: Settings, source: EventSource, store: RecordStore) -> None:
    log.info("Starting indexer...")
    head = await wait_for_head(
        source, attempts=settings.readiness_attempts, delay_seconds=settings.readiness_delay_seconds
    )

    consumer = LiveEventConsumer(source, store)
    consumer.start(from_block=head)
    try:
        summary = await build_orchestrator(settings, source, store).run(to_block=head)
        log.info(
            f"Finished processing historical events up to block {head}",
            extra=summary.to_dict(),
        )
        await consumer.wait()
    finally:
        await consumer.stop()


__all__ = ["build_orchestrator", "run_daemon", "run_once"]
