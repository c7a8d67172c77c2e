from __future__ import annotations

import asyncio

import pytest

from domain_indexer.consumer import LiveEventConsumer
from domain_indexer.domain.models import ALL_CATEGORIES, DecodedEvent, EventCategory
from domain_indexer.pipeline.normalizer import normalize

DRAIN_TIMEOUT_SECONDS = 2.0


async def _drain(consumer: LiveEventConsumer, expected: int) -> None:
    async def _until_seen() -> None:
        while sum(counts.total for counts in consumer.counts.values()) < expected:
            await asyncio.sleep(0)

    await asyncio.wait_for(_until_seen(), timeout=DRAIN_TIMEOUT_SECONDS)


@pytest.mark.asyncio
async def test_live_deliveries_are_applied_per_category(events, scripted_source, memory_store):
    source = scripted_source(
        live={
            EventCategory.REGISTERED: [events.registered("alice", block=300)],
            EventCategory.TEXT_CHANGED: [
                events.text_changed("alice", key="com.discord", value="alice#1", block=301),
                events.text_changed("alice", key="unsupported_key", value="x", block=302),
            ],
        }
    )
    consumer = LiveEventConsumer(source, memory_store)

    consumer.start(from_block=300)
    try:
        await _drain(consumer, expected=3)
        assert consumer.running is True
    finally:
        await consumer.stop()

    assert sorted(category for category, _ in source.subscriptions) == sorted(ALL_CATEGORIES)
    assert all(from_block == 300 for _, from_block in source.subscriptions)
    assert consumer.counts[EventCategory.REGISTERED].applied == 1
    assert consumer.counts[EventCategory.TEXT_CHANGED].applied == 1
    assert consumer.counts[EventCategory.TEXT_CHANGED].unmapped == 1

    document = memory_store.documents()[normalize("alice")]
    assert document["discord"] == "alice#1"
    assert document["name"] == "alice"


@pytest.mark.asyncio
async def test_delivery_without_arguments_is_skipped_and_stream_continues(
    events, scripted_source, memory_store
):
    broken = DecodedEvent(category=EventCategory.TRANSFER, block_number=400, log_index=0, args={})
    source = scripted_source(
        live={EventCategory.TRANSFER: [broken, events.transfer("alice", block=401)]}
    )
    consumer = LiveEventConsumer(source, memory_store, categories=[EventCategory.TRANSFER])

    consumer.start()
    try:
        await _drain(consumer, expected=2)
    finally:
        await consumer.stop()

    assert consumer.counts[EventCategory.TRANSFER].skipped == 1
    assert consumer.counts[EventCategory.TRANSFER].applied == 1
    assert normalize("alice") in memory_store.documents()


@pytest.mark.asyncio
async def test_consumer_never_touches_cursor(events, scripted_source, memory_store):
    source = scripted_source(live={EventCategory.REGISTERED: [events.registered("alice", block=500)]})
    consumer = LiveEventConsumer(source, memory_store)

    consumer.start()
    try:
        await _drain(consumer, expected=1)
    finally:
        await consumer.stop()

    assert await memory_store.get_cursor() is None
    assert memory_store.write_calls == 1


@pytest.mark.asyncio
async def test_start_twice_is_rejected_and_stop_ends_tasks(scripted_source, memory_store):
    consumer = LiveEventConsumer(scripted_source(), memory_store)
    consumer.start()
    try:
        with pytest.raises(RuntimeError):
            consumer.start()
    finally:
        await consumer.stop()

    assert consumer.running is False
