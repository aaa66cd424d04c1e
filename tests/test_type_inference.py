"""Tests for native type merging and mapping."""

import itertools

import pytest

from igc_jsonschema.models.catalog import DataClass
from igc_jsonschema.schema_gen.type_inference import (
    apply_native_type,
    build_term_type_cache,
    map_native_type_to_schema,
    map_physical_type_to_schema,
    merge_types,
)


def _data_class(dc_id, types, term_ids):
    return DataClass.model_validate({
        "_id": dc_id,
        "_name": dc_id,
        "data_type_filter_elements_enum": types,
        "assigned_to_terms": {"items": [{"_id": t, "_name": t} for t in term_ids]},
    })


def test_merge_types_examples():
    assert merge_types(["int", "int"]) == "int"
    assert merge_types(["int", "string"]) == "string"
    assert merge_types(["date"]) == "date"
    assert merge_types([]) == "string"

@pytest.mark.parametrize("candidates", [
    ["int", "int", "int"],
    ["int", "date", "int"],
    ["timestamp", "date"],
    ["numeric"],
])
def test_merge_types_is_order_insensitive_and_idempotent(candidates):
    merged = merge_types(candidates)
    for permutation in itertools.permutations(candidates):
        assert merge_types(list(permutation)) == merged
    assert merge_types([merged] * 3) == merged

@pytest.mark.parametrize("native, expected", [
    ("date", {"type": "string", "format": "date"}),
    ("timestamp", {"type": "string", "format": "date-time"}),
    ("numeric", {"type": "number"}),
    ("string", {"type": "string"}),
    ("integer", {"type": "integer"}),
    ("boolean", {"type": "boolean"}),
])
def test_map_native_type_to_schema(native, expected):
    assert map_native_type_to_schema(native) == expected

def test_map_native_type_returns_a_copy():
    mapped = map_native_type_to_schema("date")
    mapped["format"] = "changed"
    assert map_native_type_to_schema("date")["format"] == "date"

def test_build_term_type_cache_merges_across_data_classes():
    cache = build_term_type_cache([
        _data_class("dc1", ["date"], ["t1", "t2"]),
        _data_class("dc2", ["date", "date"], ["t1"]),
        _data_class("dc3", ["numeric"], ["t2"]),
        _data_class("dc4", ["int", "string"], ["t3"]),
        _data_class("dc5", [], ["t4"]),
    ])
    assert cache == {"t1": "date", "t2": "string", "t3": "string"}

def test_apply_native_type_defaults_to_string():
    assert apply_native_type({}, None) == {"type": "string"}
    assert apply_native_type({"title": "x"}, "timestamp") == {"title": "x", "type": "string", "format": "date-time"}

@pytest.mark.parametrize("data_type, expected", [
    ("INT16", {"type": "integer", "format": "int16"}),
    ("int32", {"type": "integer", "format": "int32"}),
    ("DFLOAT", {"type": "number", "format": "float"}),
    ("DECIMAL", {"type": "number", "format": "double"}),
    ("DATETIME", {"type": "string", "format": "date-time"}),
    ("TIME", {"type": "string"}),
    ("", {"type": "string"}),
])
def test_map_physical_type_to_schema(data_type, expected):
    assert map_physical_type_to_schema(data_type) == expected

def test_physical_mapping_returns_a_copy():
    mapped = map_physical_type_to_schema("INT8")
    mapped["format"] = "changed"
    assert map_physical_type_to_schema("INT8")["format"] == "int8"
