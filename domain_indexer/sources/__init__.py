"""
Event sources package for the domain indexer.

Re-exports the EventSource protocol and the JSON-RPC implementation so
downstream code can import from `domain_indexer.sources` directly.
"""

from domain_indexer.sources.abstract import EventSource
from domain_indexer.sources.web3_source import Web3EventSource

__all__ = [
    "EventSource",
    "Web3EventSource",
]
