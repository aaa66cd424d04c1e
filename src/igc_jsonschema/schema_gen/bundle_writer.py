"""
Renders asset bundles as OpenIGC flow-doc XML, the payload of the catalog's bundle-creation call.
"""
import json
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from ..models.assets import AssetBundle
from .document_store import write_text_atomic

logger = structlog.get_logger(__name__)

FLOW_DOC_NAMESPACE = "http://www.ibm.com/iis/flow-doc"

ET.register_namespace("", FLOW_DOC_NAMESPACE)


def _tag(name: str) -> str:
    return f"{{{FLOW_DOC_NAMESPACE}}}{name}"

def format_attribute_value(value: Any) -> str:
    """Catalog attribute values are strings: booleans lower-case, lists and objects as JSON."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)

def bundle_to_element(bundles: AssetBundle | Iterable[AssetBundle]) -> ET.Element:
    """Builds one ``<doc>`` holding the assets and import action of every given bundle."""
    if isinstance(bundles, AssetBundle):
        bundles = [bundles]
    doc = ET.Element(_tag("doc"))
    assets = ET.SubElement(doc, _tag("assets"))
    complete_ids: list[str] = []
    partial_ids: list[str] = []
    for bundle in bundles:
        for node in bundle.nodes:
            asset = ET.SubElement(assets, _tag("asset"), {
                "class": node.kind.asset_class,
                "repr": node.name,
                "ID": node.asset_id,
            })
            for name, value in node.catalog_attributes().items():
                ET.SubElement(asset, _tag("attribute"), {"name": name, "value": format_attribute_value(value)})
            if node.parent_id is not None and node.parent_kind is not None:
                ET.SubElement(asset, _tag("reference"), {
                    "name": node.parent_kind.reference_name,
                    "assetIDs": node.parent_id,
                })
        complete_ids.extend(bundle.complete_asset_ids)
        partial_ids.extend(bundle.partial_asset_ids)
    action = {"completeAssetIDs": " ".join(complete_ids)}
    if partial_ids:
        action["partialAssetIDs"] = " ".join(partial_ids)
    ET.SubElement(doc, _tag("importAction"), action)
    return doc

def render_bundle_xml(bundles: AssetBundle | Iterable[AssetBundle], pretty: bool = False) -> str:
    doc = bundle_to_element(bundles)
    if pretty:
        ET.indent(doc)
    return ET.tostring(doc, encoding="UTF-8", xml_declaration=True).decode("utf-8")

def write_bundle_xml(bundles: AssetBundle | Iterable[AssetBundle], path: Path | str) -> Path:
    """Writes the (pretty-printed) bundle XML to a file, for inspection or manual import."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_text_atomic(path, render_bundle_xml(bundles, pretty=True) + "\n")
    logger.info("Asset bundle XML written.", file=str(path))
    return path
