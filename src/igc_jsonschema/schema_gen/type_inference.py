"""
Type inference from the native data types of the data classes assigned to terms.
"""
from collections.abc import Iterable, Sequence
from typing import Any

import structlog

from ..models.catalog import DataClass

logger = structlog.get_logger(__name__)

FALLBACK_TYPE = "string"

# Native type tag -> JSON Schema keywords. Anything not listed passes through as its own type.
NATIVE_TYPE_MAP: dict[str, dict[str, str]] = {
    "date": {"type": "string", "format": "date"},
    "timestamp": {"type": "string", "format": "date-time"},
    "numeric": {"type": "number"},
}

# Physical data model column types. Anything not listed (STRING, BINARY, TIME, GUID, ...) becomes a string.
PHYSICAL_TYPE_MAP: dict[str, dict[str, str]] = {
    "INT8": {"type": "integer", "format": "int8"},
    "INT16": {"type": "integer", "format": "int16"},
    "INT32": {"type": "integer", "format": "int32"},
    "INT64": {"type": "integer", "format": "int64"},
    "SFLOAT": {"type": "number", "format": "float"},
    "DFLOAT": {"type": "number", "format": "float"},
    "QFLOAT": {"type": "number", "format": "float"},
    "DECIMAL": {"type": "number", "format": "double"},
    "BOOLEAN": {"type": "boolean"},
    "DATE": {"type": "string", "format": "date"},
    "DATETIME": {"type": "string", "format": "date-time"},
}


def merge_types(candidate_types: Sequence[str]) -> str:
    """Merges several native type tags into one.

    Identical candidates merge to that type; anything else (including no
    candidates at all) falls back to 'string' as the lowest common denominator.
    """
    distinct = set(candidate_types)
    if len(distinct) == 1:
        return next(iter(distinct))
    return FALLBACK_TYPE

def map_native_type_to_schema(native_type: str) -> dict[str, str]:
    """Returns the JSON Schema 'type' (and 'format', where one applies) for a native type tag."""
    return dict(NATIVE_TYPE_MAP.get(native_type, {"type": native_type}))

def map_physical_type_to_schema(data_type: str | None) -> dict[str, str]:
    return dict(PHYSICAL_TYPE_MAP.get((data_type or "").upper(), {"type": FALLBACK_TYPE}))

def build_term_type_cache(data_classes: Iterable[DataClass]) -> dict[str, str]:
    """Computes the effective native type of every term that has data classes assigned.

    A term can be assigned several data classes, each with several type tags, so
    every class's tags are merged together with whatever is already cached.
    """
    cache: dict[str, str] = {}
    for data_class in data_classes:
        types = list(data_class.data_type_filter_elements_enum)
        if not types:
            logger.debug("Data class declares no native types; skipping.", data_class=data_class.name, data_class_id=data_class.id)
            continue
        for term_id in data_class.assigned_to_terms.ids:
            if term_id in cache:
                cache[term_id] = merge_types([*types, cache[term_id]])
            else:
                cache[term_id] = merge_types(types)
    return cache

def apply_native_type(target: dict[str, Any], native_type: str | None) -> dict[str, Any]:
    """Sets 'type'/'format' on a schema fragment, defaulting to 'string' when no type is known."""
    target.update(map_native_type_to_schema(native_type or FALLBACK_TYPE))
    return target
