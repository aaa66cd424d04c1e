"""Tests for resolving $ref strings into catalog relationship updates."""

from unittest.mock import AsyncMock

import pytest

from igc_jsonschema.catalog_client.exceptions import CatalogRequestError
from igc_jsonschema.config import LoadConfig
from igc_jsonschema.models.common import AssetKind
from igc_jsonschema.schema_gen.asset_compiler import SchemaAssetCompiler
from igc_jsonschema.schema_gen.reference_resolver import ReferenceResolver

CUSTOMER = "http://example.com/sales/customer"
ORDER = "http://example.com/sales/order"


def created_ids(bundle):
    return {node.asset_id: f"rid-{node.asset_id}" for node in bundle.nodes
            if node.kind not in (AssetKind.NAMESPACE, AssetKind.PATH)}


@pytest.fixture
def compiler():
    return SchemaAssetCompiler()

@pytest.fixture
def bundles(compiler):
    customer = compiler.compile_document({
        "$id": CUSTOMER,
        "type": "object",
        "properties": {"name": {"type": "string"}},
    })
    order = compiler.compile_document({
        "$id": ORDER,
        "type": "object",
        "properties": {
            "customer": {"$ref": CUSTOMER},
            "billing": {"$ref": "#/properties/customer"},
            "shipTo": {"$ref": f"{CUSTOMER}#/properties/name"},
            "ghost": {"$ref": "http://example.com/nowhere"},
            "sku": {"type": "string", "x-ibm-igc-assigned-terms": ["term-1", "term-2"], "x-ibm-igc-rid": "orig-1"},
        },
    })
    return customer, order

@pytest.fixture
def resolver(bundles):
    resolver = ReferenceResolver()
    for bundle in bundles:
        resolver.add_bundle(bundle, created_ids(bundle))
    return resolver


def rid(compiler, document_id, path):
    return f"rid-{compiler.identities[(document_id, path)]}"


def test_resolves_absolute_local_and_fragment_refs(compiler, resolver):
    updates = {update.identity: update for update in resolver.resolve()}

    assert updates["#/properties/customer"].patch == {"custom_Uses": {"items": [rid(compiler, CUSTOMER, "#")]}}
    assert updates["#/properties/billing"].patch == {"custom_Uses": {"items": [rid(compiler, ORDER, "#/properties/customer")]}}
    assert updates["#/properties/shipTo"].patch == {"custom_Uses": {"items": [rid(compiler, CUSTOMER, "#/properties/name")]}}
    assert updates["#/properties/customer"].asset_rid == rid(compiler, ORDER, "#/properties/customer")
    assert updates["#/properties/customer"].document_id == ORDER

def test_missing_target_is_reported(resolver):
    updates = resolver.resolve()
    assert "#/properties/ghost" not in {update.identity for update in updates}
    assert len(resolver.unresolved) == 1
    unresolved = resolver.unresolved[0]
    assert unresolved.document_id == ORDER
    assert unresolved.identity == "#/properties/ghost"
    assert unresolved.ref == "http://example.com/nowhere"

def test_resolve_resets_unresolved(resolver):
    resolver.resolve()
    resolver.resolve()
    assert len(resolver.unresolved) == 1

def test_extensions_become_relationships(compiler, resolver):
    sku = next(update for update in resolver.resolve() if update.identity == "#/properties/sku")
    assert sku.patch == {
        "assigned_to_terms": {"items": ["term-1", "term-2"]},
        "custom_Implements": {"items": ["orig-1"]},
    }

def test_relationship_names_are_configurable(bundles):
    resolver = ReferenceResolver(LoadConfig(reference_relationship="custom_References"))
    for bundle in bundles:
        resolver.add_bundle(bundle, created_ids(bundle))
    customer_ref = next(update for update in resolver.resolve() if update.identity == "#/properties/customer")
    assert list(customer_ref.patch) == ["custom_References"]

def test_target_not_created_is_unresolved(bundles):
    customer, order = bundles
    resolver = ReferenceResolver()
    resolver.add_bundle(customer) # creation failed: no ids
    resolver.add_bundle(order, created_ids(order))
    updates = {update.identity for update in resolver.resolve()}
    assert "#/properties/customer" not in updates
    assert "#/properties/billing" in updates
    reasons = {item.identity: item.reason for item in resolver.unresolved}
    assert "was not created" in reasons["#/properties/customer"]

def test_source_not_created_is_unresolved(bundles):
    customer, order = bundles
    resolver = ReferenceResolver()
    resolver.add_bundle(customer, created_ids(customer))
    resolver.add_bundle(order)
    assert resolver.resolve() == []
    assert len(resolver.unresolved) == 5

@pytest.mark.asyncio
async def test_apply_sends_each_patch(resolver):
    client = AsyncMock()
    result = await resolver.apply(client, max_concurrency=2)
    assert result.applied == 4
    assert result.failed == {}
    assert client.update.await_count == 4

@pytest.mark.asyncio
async def test_apply_counts_failures(compiler, resolver):
    updates = resolver.resolve()
    failing_rid = updates[0].asset_rid

    async def update(asset_rid, patch):
        if asset_rid == failing_rid:
            raise CatalogRequestError("HTTP 400 Bad Request", status=400)
        return {}

    client = AsyncMock()
    client.update.side_effect = update
    result = await resolver.apply(client, updates)
    assert result.applied == len(updates) - 1
    assert list(result.failed) == [failing_rid]
    assert "400" in result.failed[failing_rid]
