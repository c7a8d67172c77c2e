"""
Event source interface for the domain indexer.

Concrete sources (the JSON-RPC source, test fakes) implement the EventSource
protocol and hand back DecodedEvent objects so the orchestrator and the live
consumer never see transport-specific log shapes.
"""

from __future__ import annotations

from typing import AsyncIterator, List, Optional, Protocol, runtime_checkable

from domain_indexer.domain.models import DecodedEvent, EventCategory


@runtime_checkable
class EventSource(Protocol):
    """
    Common interface all event sources must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier used in logs.
    """

    name: str

    async def head_block(self) -> int:
        """
        Return the latest block number known to the source.

        Raises
        ------
        ConnectivityError
            If the source cannot be reached.
        """
        ...

    async def fetch_events(
        self, category: EventCategory, from_block: int, to_block: int
    ) -> List[DecodedEvent]:
        """
        Return every event of ``category`` in the closed range
        ``[from_block, to_block]``, ordered by ``(block_number, log_index)``.

        Raises
        ------
        ConnectivityError
            If the query fails at the transport level.
        """
        ...

    def subscribe(
        self, category: EventCategory, from_block: Optional[int] = None
    ) -> AsyncIterator[DecodedEvent]:
        """
        Yield events of ``category`` as they appear, starting at ``from_block``
        (inclusive) or at the current head when omitted. Never ends on its own.
        """
        ...

    async def close(self) -> None:
        """Release transport resources."""
        ...


__all__ = ["EventSource"]
