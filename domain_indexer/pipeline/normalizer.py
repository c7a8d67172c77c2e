"""
Identifier canonicalization.

The same name reaches the indexer in three encodings:

- a label string in registrar events (``DomainRegistered``/``DomainRenewed``),
- a 32-byte namehash node in resolver ``TextChanged`` events,
- a uint256 ``tokenId`` in ERC-721 ``Transfer`` events.

``normalize`` maps all three onto one decimal string so every event for a name
lands on the same record. Every ingestion path must go through it.
"""

from __future__ import annotations

import re
from typing import Union

from eth_utils import keccak

NODE_SIZE = 32
_MAX_UINT256 = 2**256 - 1
_NODE_HEX = re.compile(r"^0x[0-9a-fA-F]{64}$")

RawIdentifier = Union[str, bytes, bytearray, int]


def namehash(name: str) -> bytes:
    """
    ENS namehash of ``name``: fold keccak-256 over the dot-separated labels,
    right to left, starting from the zero node.

    Labels are hashed as given (UTF-8), matching what the registrar hashes
    on-chain.
    """
    node = b"\x00" * NODE_SIZE
    if not name:
        return node
    for label in reversed(name.split(".")):
        node = keccak(node + keccak(text=label))
    return node


def normalize(raw: RawIdentifier) -> str:
    """
    Canonicalize a name, a 32-byte node, or an integer token id.

    Returns
    -------
    str
        The identifier as a base-10 string without leading zeros.

    Raises
    ------
    TypeError
        If ``raw`` is not one of the supported encodings.
    ValueError
        If the value is empty, out of uint256 range, or not 32 bytes wide.
    """
    if isinstance(raw, bool):
        raise TypeError("boolean is not an identifier")
    if isinstance(raw, int):
        if raw < 0 or raw > _MAX_UINT256:
            raise ValueError(f"token id out of uint256 range: {raw}")
        return str(raw)
    if isinstance(raw, (bytes, bytearray)):
        if len(raw) != NODE_SIZE:
            raise ValueError(f"node must be {NODE_SIZE} bytes, got {len(raw)}")
        return str(int.from_bytes(raw, "big"))
    if isinstance(raw, str):
        if not raw:
            raise ValueError("name must not be empty")
        return normalize(namehash(raw))
    raise TypeError(f"unsupported identifier type: {type(raw).__name__}")


def parse_identifier(text: str) -> RawIdentifier:
    """
    Interpret user-supplied text as one of the raw encodings.

    All-digit text is a token id, ``0x`` followed by 64 hex digits is a node,
    anything else is a name.
    """
    value = text.strip()
    if value.isdigit():
        return int(value)
    if _NODE_HEX.match(value):
        return bytes.fromhex(value[2:])
    return value


__all__ = ["NODE_SIZE", "RawIdentifier", "namehash", "normalize", "parse_identifier"]
