"""Tests for compiling business terms into JSON Schema documents."""

import pytest

from igc_jsonschema.config import GenerationConfig
from igc_jsonschema.models.catalog import Term
from igc_jsonschema.schema_gen.document_store import InMemoryDocumentStore
from igc_jsonschema.schema_gen.term_compiler import CompilationState, TermSchemaCompiler

NS = "http://example.com/schemas"


def make_term(term_id, name, categories=("Sales",), **relations):
    """Builds a term; relations map a collection name to (id, name) pairs, other kwargs are attributes."""
    payload = {
        "_id": term_id,
        "_name": name,
        # nearest category first, as the catalog returns it
        "category_path": {"items": [{"_id": f"cat-{c}", "_name": c} for c in reversed(categories)]},
    }
    for key, value in relations.items():
        if isinstance(value, list):
            payload[key] = {"items": [{"_id": rid, "_name": rname} for rid, rname in value]}
        else:
            payload[key] = value
    return Term.model_validate(payload)


@pytest.fixture
def store():
    return InMemoryDocumentStore()

@pytest.fixture
def state():
    return CompilationState()

@pytest.fixture
def compiler(state, store):
    return TermSchemaCompiler(state, GenerationConfig(namespace=NS), store)

@pytest.fixture
def order_terms():
    return [
        make_term("o1", "Order", has_a=[("li1", "Line Item"), ("c1", "Customer")],
                  long_description="A customer order."),
        make_term("li1", "Line Item", **{"custom_Can be Multiple": "Yes", "short_description": "One line."}),
        make_term("c1", "Customer"),
    ]


def test_order_scenario(compiler, store, order_terms):
    compiler.register_terms(order_terms)
    compiler.compile_all()

    order = store.raw(f"{NS}/sales/order")
    assert order["$schema"] == "http://json-schema.org/draft-06/schema#"
    assert order["$id"] == f"{NS}/sales/order"
    assert order["title"] == "order"
    assert order["description"] == "A customer order."
    assert order["type"] == "object"
    assert order["properties"] == {
        "lineItem": {"type": "array", "items": {"$ref": f"{NS}/sales/lineItem"}},
        "customer": {"$ref": f"{NS}/sales/customer"},
    }

def test_bare_term_is_a_string(compiler, store):
    compiler.register_terms([make_term("c1", "Customer")])
    compiler.compile_all()
    customer = store.raw(f"{NS}/sales/customer")
    assert customer["type"] == "string"
    assert "format" not in customer
    assert "properties" not in customer
    assert "enum" not in customer

def test_primitive_uses_cached_native_type(compiler, state, store):
    state.term_types["d1"] = "date"
    compiler.register_terms([make_term("d1", "Order Date")])
    compiler.compile_all()
    assert store.raw(f"{NS}/sales/orderDate")["type"] == "string"
    assert store.raw(f"{NS}/sales/orderDate")["format"] == "date"

def test_taxonomy_becomes_enum(compiler, state, store):
    state.term_types["s1"] = "numeric"
    compiler.register_terms([
        make_term("s1", "Status Code", has_types=[("s2", "Open"), ("s3", "Closed")]),
        make_term("s2", "Open", is_a_type_of=[("s1", "Status Code")]),
        make_term("s3", "Closed", is_a_type_of=[("s1", "Status Code")]),
    ])
    compiler.compile_all()
    status = store.raw(f"{NS}/sales/statusCode")
    assert status["enum"] == ["Open", "Closed"]
    assert status["type"] == "number"

def test_containment_wins_over_taxonomy(compiler, store):
    compiler.register_terms([
        make_term("p1", "Party", has_a=[("n1", "Name")], has_types=[("x1", "Person")]),
        make_term("n1", "Name"),
        make_term("x1", "Person"),
    ])
    compiler.compile_all()
    party = store.raw(f"{NS}/sales/party")
    assert party["type"] == "object"
    assert "enum" not in party

def test_define_is_idempotent(compiler, state, store, order_terms):
    compiler.register_terms(order_terms)
    first = compiler.define_schema_for_term(order_terms[0])
    assert first is not None
    processed_before = set(state.processed)
    ids_before = store.ids()

    assert compiler.define_schema_for_term(order_terms[0]) is None
    assert state.processed == processed_before
    assert store.ids() == ids_before

def test_missing_related_term_is_omitted_with_warning(compiler, state, store):
    compiler.register_terms([make_term("o1", "Order", has_a=[("ghost", "Ghost"), ("c1", "Customer")]),
                             make_term("c1", "Customer")])
    assert compiler.schema_ref_for("ghost") is None
    compiler.compile_all()
    order = store.raw(f"{NS}/sales/order")
    assert list(order["properties"]) == ["customer"]
    assert any("ghost" in warning for warning in state.warnings)

def test_duplicate_names_are_advisory(compiler, state, store):
    compiler.register_terms([
        make_term("i1", "Item", categories=("Sales",)),
        make_term("i2", "Item", categories=("Inventory",)),
    ])
    emitted = compiler.compile_all()
    assert {doc.id for doc in emitted} == {f"{NS}/sales/item", f"{NS}/inventory/item"}
    assert state.collisions == [("item", "i1", "i2")]
    assert store.exists(f"{NS}/sales/item")
    assert store.exists(f"{NS}/inventory/item")

def test_associations_without_containment_are_not_emitted(compiler, state, store):
    compiler.register_terms([
        make_term("pu1", "Purchase", assigned_terms=[("c1", "Customer"), ("pr1", "Product")]),
        make_term("c1", "Customer"),
        make_term("pr1", "Product"),
    ])
    compiler.compile_all()
    assert state.association_ids == ["pu1"]
    assert not store.exists(f"{NS}/sales/purchase")

def test_association_with_containment_is_flagged(compiler, store):
    compiler.register_terms([
        make_term("pu1", "Purchase", assigned_terms=[("c1", "Customer")], has_a=[("q1", "Quantity")]),
        make_term("c1", "Customer"),
        make_term("q1", "Quantity"),
    ])
    compiler.compile_all()
    purchase = store.raw(f"{NS}/sales/purchase")
    assert purchase["x-relation-object"] is True
    assert purchase["properties"] == {"quantity": {"$ref": f"{NS}/sales/quantity"}}

@pytest.mark.parametrize("value, expected", [
    ("Yes", True), ("TRUE", True), ("y", True), (" yes ", True),
    ("No", False), ("many", False), (None, False),
])
def test_multiplicity_marker(compiler, value, expected):
    extra = {} if value is None else {"custom_Can be Multiple": value}
    assert compiler.is_multiple(make_term("x", "X", **extra)) is expected

def test_description_precedence():
    assert TermSchemaCompiler.description_for(make_term("a", "A", long_description="long", short_description="short")) == "long"
    assert TermSchemaCompiler.description_for(make_term("a", "A", long_description="", short_description="short")) == "short"
    assert TermSchemaCompiler.description_for(make_term("a", "A", long_description=None, short_description=None)) == ""

def test_sidecar_written_next_to_document(compiler, store, order_terms):
    compiler.register_terms(order_terms)
    compiler.compile_all()
    sidecar = store.get_sidecar(f"{NS}/sales/lineItem").to_json_dict()
    assert sidecar == {
        "_schema": f"{NS}/sales/lineItem",
        "_identity": "Sales::Line Item",
        "_id": "li1",
        "short_description": "One line.",
        "long_description": "",
    }
