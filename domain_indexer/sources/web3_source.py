"""
JSON-RPC event source built on web3.py.

Historical queries use ``eth_getLogs`` filtered by contract address and event
topic, decoded with the contract ABI. Live subscriptions poll the chain head
and query the newly produced blocks, which works against any HTTP endpoint
(no websocket or filter support required).
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple

import aiohttp
from eth_abi.exceptions import DecodingError
from eth_utils import event_abi_to_log_topic
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from domain_indexer.config import Settings
from domain_indexer.domain.models import DecodedEvent, EventCategory
from domain_indexer.errors import ConnectivityError
from domain_indexer.utils.logging import get_logger

log = get_logger(__name__)


def _event_abi(name: str, inputs: List[Tuple[str, str, bool]]) -> Dict[str, Any]:
    return {
        "anonymous": False,
        "type": "event",
        "name": name,
        "inputs": [
            {"name": arg, "type": abi_type, "indexed": indexed}
            for arg, abi_type, indexed in inputs
        ],
    }


REGISTRAR_ABI = [
    _event_abi(
        "DomainRegistered",
        [("name", "string", False), ("owner", "address", False), ("expires", "uint256", False)],
    ),
    _event_abi(
        "DomainRenewed",
        [("name", "string", False), ("owner", "address", False), ("expires", "uint256", False)],
    ),
]

TOKEN_ABI = [
    _event_abi(
        "Transfer",
        [("from", "address", True), ("to", "address", True), ("tokenId", "uint256", True)],
    ),
]

RESOLVER_ABI = [
    _event_abi(
        "TextChanged",
        [
            ("node", "bytes32", True),
            ("indexedKey", "string", True),
            ("key", "string", False),
            ("value", "string", False),
        ],
    ),
]

# category -> (contract role, ABI)
CATEGORY_CONTRACTS: Mapping[EventCategory, Tuple[str, List[Dict[str, Any]]]] = {
    EventCategory.REGISTERED: ("registrar", REGISTRAR_ABI),
    EventCategory.RENEWED: ("registrar", REGISTRAR_ABI),
    EventCategory.TRANSFER: ("token", TOKEN_ABI),
    EventCategory.TEXT_CHANGED: ("resolver", RESOLVER_ABI),
}

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, Web3Exception)


def _hex(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


class Web3EventSource:
    """
    Event source reading registrar, token and resolver logs over JSON-RPC.

    Parameters
    ----------
    w3 : AsyncWeb3
        Connected web3 instance (inject a fake in tests).
    addresses : Mapping[str, str]
        Contract address per role: ``registrar``, ``token``, ``resolver``.
    max_block_range : int
        Largest ``eth_getLogs`` span used while polling for live events.
    poll_interval : float
        Seconds between head polls in ``subscribe``.
    """

    name: str = "web3"

    def __init__(
        self,
        w3: AsyncWeb3,
        addresses: Mapping[str, str],
        max_block_range: int = 1_000,
        poll_interval: float = 4.0,
    ) -> None:
        self._w3 = w3
        self.max_block_range = max_block_range
        self.poll_interval = poll_interval
        self._events: Dict[EventCategory, Tuple[str, str, Any]] = {}
        for category, (role, abi) in CATEGORY_CONTRACTS.items():
            address = AsyncWeb3.to_checksum_address(addresses[role])
            contract = w3.eth.contract(address=address, abi=abi)
            event_abi = next(item for item in abi if item["name"] == category.value)
            topic = "0x" + bytes(event_abi_to_log_topic(event_abi)).hex()
            self._events[category] = (address, topic, getattr(contract.events, category.value)())

    @classmethod
    def from_settings(cls, settings: Settings) -> "Web3EventSource":
        w3 = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url))
        return cls(
            w3,
            {
                "registrar": settings.registrar_addr,
                "token": settings.effective_token_addr,
                "resolver": settings.resolver_addr,
            },
            max_block_range=settings.backfill_window_size,
            poll_interval=settings.live_poll_interval_seconds,
        )

    async def head_block(self) -> int:
        try:
            return int(await self._w3.eth.block_number)
        except _TRANSPORT_ERRORS as exc:
            raise ConnectivityError(f"block_number failed: {exc}") from exc

    async def fetch_events(
        self, category: EventCategory, from_block: int, to_block: int
    ) -> List[DecodedEvent]:
        address, topic, event = self._events[category]
        try:
            logs = await self._w3.eth.get_logs(
                {
                    "address": address,
                    "topics": [topic],
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            )
        except _TRANSPORT_ERRORS as exc:
            raise ConnectivityError(
                f"get_logs {category.value} [{from_block}, {to_block}] failed: {exc}"
            ) from exc

        decoded = [self._decode(category, event, raw) for raw in logs]
        events = [item for item in decoded if item is not None]
        events.sort(key=lambda item: item.position)
        return events

    def _decode(self, category: EventCategory, event: Any, raw: Mapping[str, Any]) -> Optional[DecodedEvent]:
        block_number = raw.get("blockNumber")
        log_index = raw.get("logIndex")
        if block_number is None or log_index is None:
            log.warning(
                "Dropping pending log without position",
                extra={"category": category.value, "tx_hash": _hex(raw.get("transactionHash"))},
            )
            return None
        try:
            args = dict(event.process_log(raw)["args"])
        except (Web3Exception, DecodingError, ValueError, KeyError) as exc:
            # Keep the position so the skip is counted; the mapper rejects empty args.
            log.warning(
                f"Undecodable {category.value} log: {exc}",
                extra={"block_number": int(block_number), "log_index": int(log_index)},
            )
            args = {}
        return DecodedEvent(
            category=category,
            block_number=int(block_number),
            log_index=int(log_index),
            args=args,
            transaction_hash=_hex(raw.get("transactionHash")),
        )

    async def subscribe(
        self, category: EventCategory, from_block: Optional[int] = None
    ) -> AsyncIterator[DecodedEvent]:
        next_block = from_block
        while next_block is None:
            try:
                next_block = await self.head_block()
            except ConnectivityError as exc:
                log.warning(f"[LIVE] {category.value} attach failed, retrying: {exc}")
                await asyncio.sleep(self.poll_interval)

        log.info(f"[LIVE] {category.value} subscribed", extra={"from_block": next_block})
        while True:
            try:
                head = await self.head_block()
                while next_block <= head:
                    end = min(next_block + self.max_block_range - 1, head)
                    events = await self.fetch_events(category, next_block, end)
                    for item in events:
                        yield item
                    next_block = end + 1
            except ConnectivityError as exc:
                # The same range is polled again on the next tick.
                log.warning(
                    f"[LIVE] {category.value} poll failed: {exc}",
                    extra={"next_block": next_block},
                )
            await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        await self._w3.provider.disconnect()


__all__ = [
    "CATEGORY_CONTRACTS",
    "REGISTRAR_ABI",
    "RESOLVER_ABI",
    "TOKEN_ABI",
    "Web3EventSource",
]
