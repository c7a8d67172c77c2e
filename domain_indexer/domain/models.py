"""
Domain models for the domain indexer.

Defines the decoded event contract shared by every event source, the read-model
record stored per canonical identifier, and the sync cursor singleton. Storage
field names (e.g. ``xUsername``) match what downstream metadata services read.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field


class EventCategory(str, Enum):
    """The four on-chain event kinds the indexer projects into records."""

    REGISTERED = "DomainRegistered"
    RENEWED = "DomainRenewed"
    TRANSFER = "Transfer"
    TEXT_CHANGED = "TextChanged"


ALL_CATEGORIES: Tuple[EventCategory, ...] = tuple(EventCategory)

# Record fields in storage naming, in display order.
RECORD_FIELDS: Tuple[str, ...] = (
    "name",
    "owner",
    "expiry",
    "description",
    "avatar",
    "website",
    "xUsername",
    "github",
    "telegram",
    "discord",
)

Position = Tuple[int, int]


class DecodedEvent(BaseModel):
    """
    A single decoded log, independent of the source that produced it.

    ``args`` holds the ABI-decoded event arguments as delivered; validation of
    their presence and types is the mapper's job.
    """

    category: EventCategory
    block_number: int = Field(..., ge=0)
    log_index: int = Field(..., ge=0)
    args: Dict[str, Any] = Field(default_factory=dict)
    transaction_hash: Optional[str] = None

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }

    @property
    def position(self) -> Position:
        return (self.block_number, self.log_index)


class DomainRecord(BaseModel):
    """
    Read-model document for one name, keyed by its canonical decimal identifier.
    """

    id: str = Field(..., description="Canonical decimal identifier.")
    name: Optional[str] = Field(None, description="Label as registered.")
    owner: Optional[str] = Field(None, description="Current owner address.")
    expiry: Optional[str] = Field(None, description="Expiry as unix seconds.")
    description: Optional[str] = None
    avatar: Optional[str] = None
    website: Optional[str] = None
    x_username: Optional[str] = Field(None, alias="xUsername")
    github: Optional[str] = None
    telegram: Optional[str] = None
    discord: Optional[str] = None

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    def to_document(self) -> Dict[str, str]:
        """Storage-named fields that are set, plus ``id``."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SyncCursor(BaseModel):
    """Singleton marker of the last block whose window was fully applied."""

    last_processed_block: int = Field(..., alias="lastProcessedBlock")

    model_config = {
        "populate_by_name": True,
    }


__all__ = [
    "ALL_CATEGORIES",
    "RECORD_FIELDS",
    "DecodedEvent",
    "DomainRecord",
    "EventCategory",
    "Position",
    "SyncCursor",
]
