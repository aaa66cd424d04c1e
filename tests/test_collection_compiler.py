"""Tests for compiling a collection's terms into a single schema document."""

import pytest

from igc_jsonschema.config import GenerationConfig
from igc_jsonschema.models.catalog import RelatedItem, Term
from igc_jsonschema.schema_gen.collection_compiler import CollectionSchemaCompiler

NS = "http://example.com/schemas"


def term(term_id, name, description="", contains=()):
    return Term.model_validate({
        "_id": term_id,
        "_name": name,
        "short_description": description,
        "has_a": {"items": [{"_id": rid, "_name": rname} for rid, rname in contains]},
    })

def ref(term_id, name):
    return RelatedItem.model_validate({"_id": term_id, "_name": name, "_type": "term"})


@pytest.fixture
def terms():
    return {t.id: t for t in [
        term("o1", "Order", "A customer order.", contains=[("c1", "Customer"), ("d1", "Order Date")]),
        term("c1", "Customer", contains=[("n1", "Full Name")]),
        term("n1", "Full Name"),
        term("d1", "Order Date"),
        term("p1", "Card Payment", contains=[("a1", "Amount")]),
        term("p2", "Voucher"),
        term("a1", "Amount"),
    ]}

def compiler_for(terms, term_types=None):
    return CollectionSchemaCompiler(GenerationConfig(namespace=NS), terms, term_types or {})


def test_root_term_embeds_containment(terms):
    compiler = compiler_for(terms, {"d1": "date"})
    document = compiler.compile("Order Message", ref("o1", "Order"), {})

    assert document["$id"] == f"{NS}/orderMessage"
    assert document["title"] == "order"
    assert document["description"] == "A customer order."
    assert document["type"] == "object"
    assert document["properties"]["customer"] == {
        "type": "object",
        "properties": {"fullName": {"type": "string"}},
    }
    assert document["properties"]["orderDate"] == {"type": "string", "format": "date"}
    assert "definitions" not in document
    assert compiler.warnings == []

def test_nested_collections_become_one_of_properties(terms):
    compiler = compiler_for(terms, {"a1": "numeric"})
    groups = {"Payment Method": [ref("p1", "Card Payment"), ref("p2", "Voucher")], "Empty": []}
    document = compiler.compile("Order Message", ref("o1", "Order"), groups)

    assert document["properties"]["paymentMethod"] == {
        "type": "object",
        "oneOf": [{"$ref": "#/definitions/cardPayment"}, {"$ref": "#/definitions/voucher"}],
    }
    assert document["definitions"]["cardPayment"] == {
        "title": "cardPayment",
        "type": "object",
        "properties": {"amount": {"type": "number"}},
    }
    assert document["definitions"]["voucher"] == {"title": "voucher", "type": "string"}
    assert "empty" not in document["properties"]
    assert any("holds no terms" in warning for warning in compiler.warnings)

def test_primitive_root_is_forced_into_object(terms):
    compiler = compiler_for(terms, {"d1": "date"})
    document = compiler.compile("Dates", ref("d1", "Order Date"), {"Payments": [ref("p2", "Voucher")]})
    assert document["type"] == "object"
    assert "format" not in document
    assert set(document["properties"]) == {"payments"}

def test_self_containment_is_typed_as_primitive():
    terms = {"x1": term("x1", "Node", contains=[("x1", "Node")])}
    compiler = compiler_for(terms)
    document = compiler.compile("Graph", ref("x1", "Node"), {})
    assert document["type"] == "string"
    assert "properties" not in document
    assert any("contains itself" in warning for warning in compiler.warnings)

def test_indirect_cycle_stops_at_the_repeated_term():
    terms = {t.id: t for t in [
        term("a", "Alpha", contains=[("b", "Beta")]),
        term("b", "Beta", contains=[("a", "Alpha")]),
    ]}
    compiler = compiler_for(terms)
    document = compiler.compile("Loop", ref("a", "Alpha"), {})
    assert document["properties"]["beta"] == {"type": "string"}

def test_unreadable_term_is_typed_as_string(terms):
    compiler = compiler_for(terms)
    document = compiler.compile("Missing", ref("zz", "Ghost"), {})
    assert document["type"] == "string"
    assert any("could not be read" in warning for warning in compiler.warnings)

def test_duplicate_contained_names_keep_the_first():
    terms = {t.id: t for t in [
        term("o1", "Order", contains=[("n1", "Name"), ("n2", "Name")]),
        term("n1", "Name"),
        term("n2", "Name", contains=[("x", "Extra")]),
    ]}
    compiler = compiler_for(terms)
    document = compiler.compile("Orders", ref("o1", "Order"), {})
    assert document["properties"] == {"name": {"type": "string"}}
    assert any("more than once" in warning for warning in compiler.warnings)
