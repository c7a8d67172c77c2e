"""
Live event consumer.

Runs one task per event category, each draining ``source.subscribe`` and
applying every delivery through the same pipeline as backfill. The consumer
never reads or writes the cursor.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

from domain_indexer.domain.models import ALL_CATEGORIES, EventCategory
from domain_indexer.infrastructure.store import RecordStore
from domain_indexer.orchestrator import CategoryCounts, empty_counts
from domain_indexer.pipeline.apply import apply_event
from domain_indexer.sources.abstract import EventSource
from domain_indexer.utils.logging import get_logger

log = get_logger(__name__)


class LiveEventConsumer:
    """
    Standing subscriptions for a set of categories.

    Parameters
    ----------
    source : EventSource
        Where live events come from.
    store : RecordStore
        Shared with the orchestrator; owned by the caller.
    categories : Sequence[EventCategory]
        Categories to subscribe to.
    """

    def __init__(
        self,
        source: EventSource,
        store: RecordStore,
        categories: Sequence[EventCategory] = ALL_CATEGORIES,
    ) -> None:
        self.source = source
        self.store = store
        self.categories = tuple(categories)
        self.counts: Dict[EventCategory, CategoryCounts] = empty_counts(self.categories)
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self, from_block: Optional[int] = None) -> None:
        """
        Attach every subscription at ``from_block`` (inclusive).

        Attaching at or below the head a concurrent backfill stops at makes the
        two ranges overlap; duplicates are harmless, gaps are not.
        """
        if self._tasks:
            raise RuntimeError("consumer already started")
        for category in self.categories:
            task = asyncio.create_task(self._consume(category, from_block), name=f"live-{category.value}")
            self._tasks.append(task)
        log.info(
            "[LIVE] Listening for live events",
            extra={"categories": [c.value for c in self.categories], "from_block": from_block},
        )

    async def _consume(self, category: EventCategory, from_block: Optional[int]) -> None:
        async for event in self.source.subscribe(category, from_block):
            result = await apply_event(self.store, event)
            self.counts[category].record(result)
            log.info(
                f"[LIVE] {category.value} {result.status.value}",
                extra={
                    "record_id": result.record_id,
                    "block_number": event.block_number,
                    "log_index": event.log_index,
                },
            )

    async def wait(self) -> None:
        """Block until every subscription ends (normally never)."""
        await asyncio.gather(*self._tasks)

    async def stop(self) -> None:
        """Cancel all subscriptions and wait for them to unwind."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        log.info("[LIVE] Subscriptions stopped")


__all__ = ["LiveEventConsumer"]
