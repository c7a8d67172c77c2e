from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from domain_indexer.domain.models import DomainRecord
from domain_indexer.orchestrator import BackfillSummary


def _format_rss(peak_rss_bytes: Optional[int]) -> str:
    if not peak_rss_bytes:
        return "N/A"
    return f"{peak_rss_bytes / (1024 * 1024):.2f} MB"


def print_summary(summary: BackfillSummary, console: Optional[Console] = None) -> None:
    """
    Render a backfill summary as a rich table, one row per event category.
    """
    console = console or Console()

    title = f"Backfill {summary.from_block:,} → {summary.to_block:,}"
    caption = (
        f"{summary.windows} window(s) │ cursor={summary.cursor} │ "
        f"{summary.duration_seconds:.1f}s │ peak RSS {_format_rss(summary.peak_rss_bytes)}"
    )
    table = Table(title=title, caption=caption, box=box.ROUNDED)

    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Applied", justify="right", style="bold green")
    table.add_column("Unmapped", justify="right", style="blue")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")

    for category, counts in summary.counts.items():
        table.add_row(
            category.value,
            f"{counts.applied:,}",
            f"{counts.unmapped:,}",
            f"{counts.skipped:,}",
            f"{counts.failed:,}",
        )

    console.print(table)


def print_record(record: Optional[DomainRecord], console: Optional[Console] = None) -> None:
    """
    Render a stored record as a two-column field/value table.
    """
    console = console or Console()
    if record is None:
        console.print("[yellow]No record found.[/yellow]")
        return

    table = Table(title=f"Record {record.id}", box=box.ROUNDED)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    for field, value in record.to_document().items():
        if field != "id":
            table.add_row(field, value)
    console.print(table)
