"""Tests for rendering asset bundles as flow-doc XML."""

import os
import xml.etree.ElementTree as ET
from unittest.mock import patch

import pytest

from igc_jsonschema.schema_gen.asset_compiler import SchemaAssetCompiler
from igc_jsonschema.schema_gen.bundle_writer import (
    FLOW_DOC_NAMESPACE,
    format_attribute_value,
    render_bundle_xml,
    write_bundle_xml,
)

NSMAP = {"f": FLOW_DOC_NAMESPACE}


@pytest.fixture
def bundles():
    compiler = SchemaAssetCompiler()
    return [
        compiler.compile_document({
            "$id": "http://example.com/sales/customer",
            "title": "customer",
            "type": "object",
            "properties": {"vip": {"type": "boolean", "default": False, "xml": {"attribute": True}}},
        }),
        compiler.compile_document({
            "$id": "http://example.com/sales/order",
            "type": "object",
            "properties": {"tags": {"type": "array", "items": {"type": "string", "enum": ["a", "b"]}}},
        }),
    ]


def test_document_structure(bundles):
    root = ET.fromstring(render_bundle_xml(bundles))
    assert root.tag == f"{{{FLOW_DOC_NAMESPACE}}}doc"

    assets = root.findall("f:assets/f:asset", NSMAP)
    assert len(assets) == sum(len(bundle.nodes) for bundle in bundles)
    classes = [asset.get("class") for asset in assets]
    assert classes[:4] == ["$JSON_Schema-JSNamespace", "$JSON_Schema-JSPath",
                           "$JSON_Schema-JSchema", "$JSON_Schema-JSPrimitive"]
    assert classes.count("$JSON_Schema-JSArray") == 1

def test_asset_attributes_and_parent_reference(bundles):
    root = ET.fromstring(render_bundle_xml(bundles))
    vip = next(asset for asset in root.iterfind("f:assets/f:asset", NSMAP) if asset.get("repr") == "vip")
    attributes = {attr.get("name"): attr.get("value") for attr in vip.findall("f:attribute", NSMAP)}
    assert attributes["$type"] == "boolean"
    assert attributes["$default"] == "false"
    assert attributes["$xml_attribute"] == "true"
    assert attributes["$id"] == "#/properties/vip"

    reference = vip.find("f:reference", NSMAP)
    schema_id = bundles[0].complete_asset_ids[0]
    assert reference.get("name") == "$JSchema"
    assert reference.get("assetIDs") == schema_id

    namespace = root.find("f:assets/f:asset", NSMAP)
    assert namespace.find("f:reference", NSMAP) is None

def test_import_action_lists_every_bundle(bundles):
    root = ET.fromstring(render_bundle_xml(bundles))
    action = root.find("f:importAction", NSMAP)
    complete = action.get("completeAssetIDs").split()
    partial = action.get("partialAssetIDs").split()
    assert complete == bundles[0].complete_asset_ids + bundles[1].complete_asset_ids
    assert partial == bundles[0].partial_asset_ids + bundles[1].partial_asset_ids

def test_import_action_without_hierarchy():
    bundle = SchemaAssetCompiler().compile_document({"title": "loose", "type": "string"})
    action = ET.fromstring(render_bundle_xml(bundle)).find("f:importAction", NSMAP)
    assert action.get("partialAssetIDs") is None
    assert action.get("completeAssetIDs") == bundle.complete_asset_ids[0]

def test_enum_rendered_as_json(bundles):
    root = ET.fromstring(render_bundle_xml(bundles))
    items = next(asset for asset in root.iterfind("f:assets/f:asset", NSMAP) if asset.get("repr") == "items")
    values = {attr.get("name"): attr.get("value") for attr in items.findall("f:attribute", NSMAP)}
    assert values["$enum"] == '["a","b"]'

@pytest.mark.parametrize("value, expected", [
    (True, "true"), (False, "false"), (3, "3"), (1.5, "1.5"),
    (["x", 1], '["x",1]'), ({"k": "v"}, '{"k":"v"}'), ("text", "text"),
])
def test_format_attribute_value(value, expected):
    assert format_attribute_value(value) == expected

def test_write_bundle_xml(tmp_path, bundles):
    path = write_bundle_xml(bundles, tmp_path / "out" / "bundle.xml")
    text = path.read_text(encoding="utf-8")
    assert text.startswith("<?xml")
    assert "\n  <assets>" in text
    assert ET.fromstring(text.encode("utf-8")).find("f:importAction", NSMAP) is not None

def test_interrupted_write_keeps_previous_file(tmp_path, bundles):
    target = tmp_path / "bundle.xml"
    target.write_text("<previous/>", encoding="utf-8")
    with patch("igc_jsonschema.schema_gen.document_store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            write_bundle_xml(bundles, target)
    assert target.read_text(encoding="utf-8") == "<previous/>"
    assert os.listdir(tmp_path) == ["bundle.xml"]
