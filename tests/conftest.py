"""
Pytest configuration for the domain indexer.

Provides fixtures for:
- Settings with test-specific overrides
- An in-memory record store
- A scripted event source standing in for the JSON-RPC provider
- Decoded event builders for the four categories
- PostgreSQL connectivity for integration tests
"""

from __future__ import annotations

import asyncio
import os
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from domain_indexer.config import Settings
from domain_indexer.domain.models import DecodedEvent, EventCategory
from domain_indexer.errors import ConnectivityError
from domain_indexer.infrastructure.store import MemoryRecordStore
from domain_indexer.pipeline.normalizer import namehash

OWNER_A = "0x000000000000000000000000000000000000000A"
OWNER_B = "0x000000000000000000000000000000000000000B"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class EventFactory:
    """Builders for decoded events as the JSON-RPC source would deliver them."""

    @staticmethod
    def registered(
        name: str, owner: str = OWNER_A, expires: int = 1_700_000_000, block: int = 100, log_index: int = 0
    ) -> DecodedEvent:
        return DecodedEvent(
            category=EventCategory.REGISTERED,
            block_number=block,
            log_index=log_index,
            args={"name": name, "owner": owner, "expires": expires},
        )

    @staticmethod
    def renewed(
        name: str, owner: str = OWNER_A, expires: int = 1_800_000_000, block: int = 200, log_index: int = 0
    ) -> DecodedEvent:
        return DecodedEvent(
            category=EventCategory.RENEWED,
            block_number=block,
            log_index=log_index,
            args={"name": name, "owner": owner, "expires": expires},
        )

    @staticmethod
    def transfer(
        name: str, to: str = OWNER_B, sender: str = OWNER_A, block: int = 110, log_index: int = 0
    ) -> DecodedEvent:
        return DecodedEvent(
            category=EventCategory.TRANSFER,
            block_number=block,
            log_index=log_index,
            args={"from": sender, "to": to, "tokenId": int.from_bytes(namehash(name), "big")},
        )

    @staticmethod
    def text_changed(
        name: str, key: str, value: str, block: int = 105, log_index: int = 0
    ) -> DecodedEvent:
        return DecodedEvent(
            category=EventCategory.TEXT_CHANGED,
            block_number=block,
            log_index=log_index,
            args={"node": namehash(name), "indexedKey": b"\x00" * 32, "key": key, "value": value},
        )


class ScriptedEventSource:
    """
    Event source serving a fixed list of historical events and scripted live
    deliveries. Records every range query so tests can assert on access.
    """

    name = "scripted"

    def __init__(
        self,
        events: Iterable[DecodedEvent] = (),
        head: Optional[int] = None,
        live: Optional[Dict[EventCategory, Sequence[DecodedEvent]]] = None,
    ) -> None:
        self.events: List[DecodedEvent] = list(events)
        self.head = head if head is not None else max((e.block_number for e in self.events), default=0)
        self.live = live or {}
        self.queries: List[Tuple[EventCategory, int, int]] = []
        self.subscriptions: List[Tuple[EventCategory, Optional[int]]] = []
        self.head_calls = 0
        self.head_failures = 0
        self.fail_at_block: Optional[int] = None
        self.closed = False

    async def head_block(self) -> int:
        self.head_calls += 1
        if self.head_failures > 0:
            self.head_failures -= 1
            raise ConnectivityError("provider unavailable")
        return self.head

    async def fetch_events(
        self, category: EventCategory, from_block: int, to_block: int
    ) -> List[DecodedEvent]:
        self.queries.append((category, from_block, to_block))
        if self.fail_at_block is not None and from_block <= self.fail_at_block <= to_block:
            raise ConnectivityError(f"get_logs failed for [{from_block}, {to_block}]")
        selected = [
            e for e in self.events if e.category is category and from_block <= e.block_number <= to_block
        ]
        return sorted(selected, key=lambda e: e.position)

    async def subscribe(
        self, category: EventCategory, from_block: Optional[int] = None
    ) -> AsyncIterator[DecodedEvent]:
        self.subscriptions.append((category, from_block))
        for event in self.live.get(category, ()):
            yield event
        # A real subscription never ends; park until cancelled.
        await asyncio.Event().wait()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def events() -> type[EventFactory]:
    return EventFactory


@pytest.fixture
def scripted_source() -> type[ScriptedEventSource]:
    return ScriptedEventSource


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.
    """
    return Settings(
        rpc_url="http://localhost:8545",
        registrar_addr="0x1111111111111111111111111111111111111111",
        resolver_addr="0x2222222222222222222222222222222222222222",
        deployment_block=100,
        store_backend="memory",
        backfill_window_size=10,
        readiness_attempts=3,
        readiness_delay_seconds=0,
        cron_secret="s3cret",
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn() -> str:
    """
    Database connection string for integration tests.
    """
    return (
        f"postgresql://{os.getenv('DB_USER', 'postgres')}:{os.getenv('DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('DB_HOST', 'localhost')}:{os.getenv('DB_PORT', '5432')}"
        f"/{os.getenv('DB_NAME', 'domain_indexer_test')}"
    )
