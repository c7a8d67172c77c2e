"""
Exception taxonomy for the domain indexer.

Each exception maps to one failure class of the sync engine:

- ConnectivityError: the event source (JSON-RPC) could not be reached.
- MalformedEventError: a decoded event is missing or has invalid arguments.
- PersistenceError: the record store rejected a write or read.
- AuthorizationError: the trigger endpoint received a bad shared secret.

An unrecognised metadata key is not an error and has no exception type.
"""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for all indexer failures."""


class ConnectivityError(IndexerError):
    """Raised when the event source is unreachable or returns a transport error."""


class MalformedEventError(IndexerError):
    """Raised when a decoded event payload cannot be mapped into record fields."""


class PersistenceError(IndexerError):
    """Raised when the record store fails to apply a write or serve a read."""


class AuthorizationError(IndexerError):
    """Raised when a trigger request does not carry the expected bearer secret."""


__all__ = [
    "IndexerError",
    "ConnectivityError",
    "MalformedEventError",
    "PersistenceError",
    "AuthorizationError",
]
