"""
Event projection pipeline: identifier normalization, field mapping and the
apply step shared by backfill and live consumption.
"""

from domain_indexer.pipeline.apply import ApplyResult, ApplyStatus, apply_event
from domain_indexer.pipeline.mapper import TEXT_KEY_FIELDS, MappedUpdate, map_event
from domain_indexer.pipeline.normalizer import namehash, normalize, parse_identifier

__all__ = [
    "ApplyResult",
    "ApplyStatus",
    "apply_event",
    "TEXT_KEY_FIELDS",
    "MappedUpdate",
    "map_event",
    "namehash",
    "normalize",
    "parse_identifier",
]
