"""
Chunked backfill orchestrator.

Walks a closed block range in fixed-size windows, queries every event category
for a window concurrently, merges the results into one ``(block, logIndex)``
ordering, applies them through the shared pipeline and checkpoints the cursor
after each window.

Usage (example):
    from domain_indexer.orchestrator import BackfillOrchestrator

    orchestrator = BackfillOrchestrator(source, store, window_size=1000, deployment_block=123)
    summary = await orchestrator.run()
    print(summary.to_text())
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from domain_indexer.domain.models import ALL_CATEGORIES, DecodedEvent, EventCategory
from domain_indexer.errors import ConnectivityError
from domain_indexer.infrastructure.store import RecordStore
from domain_indexer.pipeline.apply import ApplyResult, apply_event
from domain_indexer.sources.abstract import EventSource
from domain_indexer.utils.logging import get_logger
from domain_indexer.utils.profiler import profile_block

log = get_logger(__name__)


@dataclass
class CategoryCounts:
    """Per-category tally of apply outcomes."""

    applied: int = 0
    unmapped: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.applied + self.unmapped + self.skipped + self.failed

    def record(self, result: ApplyResult) -> None:
        attr = result.status.value
        setattr(self, attr, getattr(self, attr) + 1)


def empty_counts(categories: Iterable[EventCategory] = ALL_CATEGORIES) -> Dict[EventCategory, CategoryCounts]:
    return {category: CategoryCounts() for category in categories}


@dataclass
class BackfillSummary:
    """Outcome of one backfill run."""

    from_block: int
    to_block: int
    counts: Dict[EventCategory, CategoryCounts]
    windows: int = 0
    cursor: Optional[int] = None
    duration_seconds: float = 0.0
    peak_rss_bytes: Optional[int] = None

    def record(self, category: EventCategory, result: ApplyResult) -> None:
        self.counts[category].record(result)

    def to_dict(self) -> dict:
        return {
            "from_block": self.from_block,
            "to_block": self.to_block,
            "windows": self.windows,
            "cursor": self.cursor,
            "duration_seconds": round(self.duration_seconds, 2),
            "peak_rss_bytes": self.peak_rss_bytes,
            "counts": {category.value: asdict(counts) for category, counts in self.counts.items()},
        }

    def to_text(self) -> str:
        """Plain-text summary, one line per category."""
        lines = [
            f"Backfill {self.from_block}-{self.to_block}: {self.windows} window(s), cursor={self.cursor}"
        ]
        for category, counts in self.counts.items():
            lines.append(
                f"{category.value}: {counts.applied} applied, {counts.unmapped} unmapped, "
                f"{counts.skipped} skipped, {counts.failed} failed"
            )
        return "\n".join(lines)


def iter_windows(from_block: int, to_block: int, window_size: int) -> Iterator[Tuple[int, int]]:
    """
    Split ``[from_block, to_block]`` into consecutive closed windows of at most
    ``window_size`` blocks, in ascending order.
    """
    if window_size <= 0:
        raise ValueError("window_size must be positive")
    start = from_block
    while start <= to_block:
        end = min(start + window_size - 1, to_block)
        yield start, end
        start = end + 1


def merge_window_events(batches: Iterable[Sequence[DecodedEvent]]) -> List[DecodedEvent]:
    """Merge per-category results into one list ordered by (block, logIndex)."""
    merged = [event for batch in batches for event in batch]
    merged.sort(key=lambda event: event.position)
    return merged


async def wait_for_head(source: EventSource, attempts: int, delay_seconds: float) -> int:
    """
    Poll the source until it reports a head block.

    Raises
    ------
    ConnectivityError
        If the source is still unreachable after ``attempts`` tries.
    """
    head = -1
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(delay_seconds),
        retry=retry_if_exception_type(ConnectivityError),
        reraise=True,
    ):
        with attempt:
            number = attempt.retry_state.attempt_number
            if number > 1:
                log.info(f"[READY] Waiting for provider (attempt {number}/{attempts})")
            head = await source.head_block()
    log.info(f"[READY] Provider connected. Current block: {head}", extra={"head_block": head})
    return head


class BackfillOrchestrator:
    """
    Applies historical events window by window and advances the cursor.

    Parameters
    ----------
    source : EventSource
        Where events come from.
    store : RecordStore
        Where records and the cursor live; owned by the caller.
    window_size : int
        Blocks per ``eth_getLogs`` window.
    deployment_block : int
        First block that can hold events; the cursor starts just below it.
    categories : Sequence[EventCategory]
        Event categories to query per window.
    """

    def __init__(
        self,
        source: EventSource,
        store: RecordStore,
        window_size: int = 1_000,
        deployment_block: int = 0,
        categories: Sequence[EventCategory] = ALL_CATEGORIES,
    ) -> None:
        if window_size <= 0:
            raise ValueError("window_size must be positive")
        self.source = source
        self.store = store
        self.window_size = window_size
        self.deployment_block = deployment_block
        self.categories = tuple(categories)

    async def resume_block(self) -> int:
        """First block not yet covered by the persisted cursor."""
        cursor = await self.store.ensure_cursor(self.deployment_block - 1)
        return max(cursor + 1, self.deployment_block)

    async def run(
        self, from_block: Optional[int] = None, to_block: Optional[int] = None
    ) -> BackfillSummary:
        """
        Backfill ``[from_block, to_block]``.

        Defaults to resuming after the persisted cursor and stopping at the head
        block observed when the run starts. The run does not loop.
        """
        start = from_block if from_block is not None else await self.resume_block()
        end = to_block if to_block is not None else await self.source.head_block()
        summary = BackfillSummary(from_block=start, to_block=end, counts=empty_counts(self.categories))

        log.info(
            f"[BACKFILL START] blocks {start}-{end}",
            extra={"from_block": start, "to_block": end, "window_size": self.window_size},
        )
        with profile_block("backfill") as stats:
            for window_start, window_end in iter_windows(start, end, self.window_size):
                await self._run_window(window_start, window_end, summary)
        summary.duration_seconds = stats.duration_seconds
        summary.peak_rss_bytes = stats.peak_rss_bytes

        log.info(
            f"[BACKFILL COMPLETE] {summary.windows} window(s)",
            extra=summary.to_dict(),
        )
        return summary

    async def _run_window(self, window_start: int, window_end: int, summary: BackfillSummary) -> None:
        batches = await asyncio.gather(
            *(self.source.fetch_events(category, window_start, window_end) for category in self.categories)
        )
        events = merge_window_events(batches)
        for event in events:
            result = await apply_event(self.store, event)
            summary.record(event.category, result)

        # Checkpoint before the next window; a crash re-applies at most this one.
        await self.store.set_cursor(window_end)
        summary.windows += 1
        summary.cursor = window_end
        log.info(
            f"[WINDOW] {window_start}-{window_end} committed",
            extra={
                "window_start": window_start,
                "window_end": window_end,
                "events": len(events),
                "failed_total": sum(counts.failed for counts in summary.counts.values()),
            },
        )


__all__ = [
    "BackfillOrchestrator",
    "BackfillSummary",
    "CategoryCounts",
    "empty_counts",
    "iter_windows",
    "merge_window_events",
    "wait_for_head",
]
