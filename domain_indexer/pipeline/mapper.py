"""
Field mapping from decoded events to partial record updates.

The mapping is data, not branches: ``CATEGORY_FIELDS`` lists which record
fields each registrar/token event writes, and ``TEXT_KEY_FIELDS`` is the
whitelist of resolver text keys. Keys outside the whitelist are dropped
silently.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional, Tuple, Type, Union

from domain_indexer.domain.models import DecodedEvent, EventCategory
from domain_indexer.errors import MalformedEventError
from domain_indexer.pipeline.normalizer import normalize

TEXT_KEY_FIELDS: Mapping[str, str] = MappingProxyType(
    {
        "description": "description",
        "avatar": "avatar",
        "url": "website",
        "x": "xUsername",
        "com.github": "github",
        "com.telegram": "telegram",
        "com.discord": "discord",
    }
)


class MappedUpdate(NamedTuple):
    """Partial-update intent: which record, which fields."""

    record_id: str
    fields: Dict[str, str]


def _require(event: DecodedEvent, arg: str) -> Any:
    value = event.args.get(arg)
    if value is None:
        raise MalformedEventError(
            f"{event.category.value} at {event.position} is missing argument '{arg}'"
        )
    return value


def _as_text(event: DecodedEvent, arg: str) -> str:
    value = _require(event, arg)
    if not isinstance(value, str):
        raise MalformedEventError(
            f"{event.category.value} argument '{arg}' must be a string, "
            f"got {type(value).__name__}"
        )
    return value


def _as_uint(event: DecodedEvent, arg: str) -> str:
    value = _require(event, arg)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedEventError(
            f"{event.category.value} argument '{arg}' must be a non-negative integer"
        )
    return str(value)


_Converter = Callable[[DecodedEvent, str], str]

# Each category's identifier argument must arrive in exactly one encoding;
# a node delivered as text would otherwise be hashed as a name.
_ID_ENCODINGS: Mapping[str, Union[Type[Any], Tuple[Type[Any], ...]]] = MappingProxyType(
    {
        "name": str,
        "node": (bytes, bytearray),
        "tokenId": int,
    }
)


def _identifier(event: DecodedEvent, arg: str) -> str:
    value = _require(event, arg)
    if not isinstance(value, _ID_ENCODINGS[arg]):
        raise MalformedEventError(
            f"{event.category.value} argument '{arg}' has unexpected type {type(value).__name__}"
        )
    try:
        return normalize(value)
    except (TypeError, ValueError) as exc:
        raise MalformedEventError(
            f"{event.category.value} argument '{arg}' is not a valid identifier: {exc}"
        ) from exc


# category -> (identifier argument, {record field: (event argument, converter)})
CATEGORY_FIELDS: Mapping[EventCategory, Tuple[str, Mapping[str, Tuple[str, _Converter]]]] = (
    MappingProxyType(
        {
            EventCategory.REGISTERED: (
                "name",
                {
                    "name": ("name", _as_text),
                    "owner": ("owner", _as_text),
                    "expiry": ("expires", _as_uint),
                },
            ),
            EventCategory.RENEWED: (
                "name",
                {
                    "name": ("name", _as_text),
                    "expiry": ("expires", _as_uint),
                },
            ),
            EventCategory.TRANSFER: (
                "tokenId",
                {"owner": ("to", _as_text)},
            ),
        }
    )
)


def _map_text_changed(event: DecodedEvent) -> Optional[MappedUpdate]:
    key = _as_text(event, "key")
    field = TEXT_KEY_FIELDS.get(key)
    if field is None:
        return None
    value = _as_text(event, "value")
    return MappedUpdate(_identifier(event, "node"), {field: value})


def map_event(event: DecodedEvent) -> Optional[MappedUpdate]:
    """
    Translate a decoded event into a partial update.

    Returns
    -------
    MappedUpdate | None
        ``None`` when the event carries a metadata key outside the whitelist.

    Raises
    ------
    MalformedEventError
        If a required argument is missing or has the wrong type.
    """
    if event.category is EventCategory.TEXT_CHANGED:
        return _map_text_changed(event)

    id_arg, field_map = CATEGORY_FIELDS[event.category]
    record_id = _identifier(event, id_arg)
    fields = {field: convert(event, arg) for field, (arg, convert) in field_map.items()}
    return MappedUpdate(record_id, fields)


__all__ = ["CATEGORY_FIELDS", "TEXT_KEY_FIELDS", "MappedUpdate", "map_event"]
