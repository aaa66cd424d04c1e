"""
Compiles a JSON Schema document into the catalog's asset-bundle node tree.

The document's ``$id`` is tokenised into a Namespace/Path hierarchy that the
Schema node hangs from; each property (and each ``items`` schema) becomes an
Object, Array or Primitive node. Nodes get bundle-local ids (``xt1``, ``xt2``,
...) that are unique across every document compiled by one compiler.
"""
import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from ..models.assets import NODE_TYPES, AssetBundle, AssetNode
from ..models.common import AssetKind
from ..models.schema import SchemaDocument
from .exceptions import DocumentParseError
from .naming import local_name

logger = structlog.get_logger(__name__)

DESCRIPTION_LIMIT = 255
SHORT_DESCRIPTION_LENGTH = 251
ROOT_PATH = "#"

TYPE_KINDS: dict[str, AssetKind] = {
    "object": AssetKind.OBJECT,
    "array": AssetKind.ARRAY,
    "string": AssetKind.PRIMITIVE,
    "integer": AssetKind.PRIMITIVE,
    "number": AssetKind.PRIMITIVE,
    "boolean": AssetKind.PRIMITIVE,
    "null": AssetKind.PRIMITIVE,
}

SCHEMA_LEVEL_KEYS = {"$schema", "$id", "id", "title", "description", "type", "enum", "properties"}


def split_description(text: str) -> tuple[str, str | None]:
    """Returns (short, long) descriptions; long is only set when the text is too long for short."""
    if len(text) > DESCRIPTION_LIMIT:
        return text[:SHORT_DESCRIPTION_LENGTH] + "...", text
    return text, None

def hierarchy_tokens(schema_id: str) -> list[str]:
    """Non-empty '/'-separated tokens of a schema id, with any 'scheme://' prefix removed."""
    if "//" in schema_id:
        schema_id = schema_id[schema_id.index("//") + 2:]
    return [token for token in schema_id.split("/") if token]

def kind_for_schema(fragment: dict[str, Any]) -> tuple[AssetKind, bool]:
    """Node kind for a (sub)schema, and whether it had to be guessed."""
    declared = fragment.get("type")
    if isinstance(declared, str) and declared in TYPE_KINDS:
        return TYPE_KINDS[declared], False
    if "$ref" in fragment or "properties" in fragment:
        return AssetKind.OBJECT, False
    if "items" in fragment:
        return AssetKind.ARRAY, False
    return AssetKind.PRIMITIVE, True


class SchemaAssetCompiler:
    """Turns schema documents into :class:`AssetBundle` objects ready to be rendered or resolved."""

    def __init__(self, id_prefix: str = "xt"):
        self.id_prefix = id_prefix
        self._counter = 0
        # (document id, schema-tree path) -> generated id, kept for the whole run
        self.identities: dict[tuple[str | None, str], str] = {}

    def next_id(self, document_id: str | None, identity: str) -> str:
        self._counter += 1
        asset_id = f"{self.id_prefix}{self._counter}"
        self.identities[(document_id, identity)] = asset_id
        return asset_id

    def compile_file(self, path: Path | str) -> AssetBundle:
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise DocumentParseError(str(path), str(e)) from e
        if not isinstance(raw, dict):
            raise DocumentParseError(str(path), "top-level JSON value is not an object")
        bundle = self.compile_document(raw)
        bundle.source = str(path)
        return bundle

    def compile_document(self, document: SchemaDocument | dict[str, Any]) -> AssetBundle:
        raw = document.to_json_dict() if isinstance(document, SchemaDocument) else document
        schema_id = raw.get("$id", raw.get("id"))
        bundle = AssetBundle(document_id=schema_id)
        log = logger.bind(document_id=schema_id)

        def warn(message: str, **context: Any) -> None:
            bundle.warnings.append(message)
            log.warning(message, **context)

        fields: dict[str, Any] = {}
        unknown: dict[str, Any] = {}
        extensions: dict[str, Any] = {}
        for key, value in raw.items():
            if key == "$schema":
                fields["$schema"] = value
            elif key in ("$id", "id"):
                fields["$id"] = value
            elif key == "description":
                self._set_descriptions(fields, value)
            elif key == "type":
                fields["$type"] = value if isinstance(value, str) else json.dumps(value)
            elif key == "enum":
                fields["$enum"] = list(value)
            elif key.startswith("x-"):
                extensions[key] = value
            elif key not in SCHEMA_LEVEL_KEYS:
                warn(f"Unexpected schema-level key: {key}", key=key)
                unknown[key] = value

        name = raw.get("title") or (local_name(schema_id) if schema_id else "schema")
        parent_kind, parent_id = None, None
        if schema_id:
            parent_kind, parent_id = self._add_hierarchy(bundle, schema_id)
        else:
            warn("Schema document has no $id; it will not be placed in a namespace hierarchy")

        schema_node = self._build_node(bundle, AssetKind.SCHEMA, fields, warn,
                                       asset_id=self.next_id(schema_id, ROOT_PATH),
                                       name=name, identity=ROOT_PATH, document_id=schema_id,
                                       parent_kind=parent_kind, parent_id=parent_id,
                                       extensions=extensions, unknown=unknown)
        bundle.complete_asset_ids.append(schema_node.asset_id)

        properties = raw.get("properties")
        if isinstance(properties, dict):
            self._compile_properties(bundle, properties, f"{ROOT_PATH}/properties", schema_node, warn)
        log.debug("Schema document compiled.", nodes=len(bundle.nodes), warnings=len(bundle.warnings))
        return bundle

    def _add_hierarchy(self, bundle: AssetBundle, schema_id: str) -> tuple[AssetKind | None, str | None]:
        tokens = hierarchy_tokens(schema_id)
        parent_kind, parent_id = None, None
        for depth, token in enumerate(tokens[:-1]):
            kind = AssetKind.NAMESPACE if depth == 0 else AssetKind.PATH
            identity = "/".join(tokens[:depth + 1])
            node = NODE_TYPES[kind](asset_id=self.next_id(None, identity), name=token, identity=identity,
                                    parent_kind=parent_kind, parent_id=parent_id)
            bundle.nodes.append(node)
            bundle.partial_asset_ids.append(node.asset_id)
            parent_kind, parent_id = kind, node.asset_id
        return parent_kind, parent_id

    @staticmethod
    def _set_descriptions(fields: dict[str, Any], text: Any) -> None:
        short, long = split_description(str(text))
        fields["short_description"] = short
        if long is not None:
            fields["long_description"] = long

    def _compile_properties(self, bundle: AssetBundle, properties: dict[str, Any], parent_path: str,
                            parent: AssetNode, warn) -> None:
        for title, fragment in properties.items():
            self._compile_fragment(bundle, title, fragment, f"{parent_path}/{title}", parent, warn)

    def _compile_fragment(self, bundle: AssetBundle, name: str, fragment: Any, path: str,
                          parent: AssetNode, warn) -> None:
        if not isinstance(fragment, dict):
            warn(f"Schema at '{path}' is not an object; skipping", path=path)
            return
        kind, guessed = kind_for_schema(fragment)
        if guessed:
            warn(f"Unable to determine the type of '{path}'; treating it as a primitive", path=path)
        known = NODE_TYPES[kind].known_keywords()

        fields: dict[str, Any] = {"$id": path}
        unknown: dict[str, Any] = {}
        extensions: dict[str, Any] = {}
        for key, value in fragment.items():
            if key in ("properties", "items", "title"):
                continue
            if key == "description":
                self._set_descriptions(fields, value)
            elif key == "example":
                fields["$example"] = json.dumps(value, indent=2)
            elif key == "xml" and isinstance(value, dict):
                for xml_key, xml_value in value.items():
                    if f"xml_{xml_key}" in known:
                        fields[f"$xml_{xml_key}"] = xml_value
                    else:
                        warn(f"Unhandled xml key of '{path}': {xml_key}", path=path, key=xml_key)
                        unknown[f"xml.{xml_key}"] = xml_value
            elif key.startswith("x-"):
                extensions[key] = value
            elif key == "$ref":
                fields["$ref"] = value
            elif key in known and key != "id":
                fields[f"${key}"] = value
            elif key == "type":
                continue # implied by the node kind
            else:
                warn(f"Unhandled property of '{path}': {key}", path=path, key=key)
                unknown[key] = value

        node = self._build_node(bundle, kind, fields, warn,
                                asset_id=self.next_id(bundle.document_id, path),
                                name=name, identity=path, document_id=bundle.document_id,
                                parent_kind=parent.kind, parent_id=parent.asset_id,
                                extensions=extensions, unknown=unknown)

        nested = fragment.get("properties")
        if isinstance(nested, dict):
            self._compile_properties(bundle, nested, f"{path}/properties", node, warn)
        items = fragment.get("items")
        if isinstance(items, dict):
            self._compile_fragment(bundle, "items", items, f"{path}/items", node, warn)
        elif isinstance(items, list):
            for position, item in enumerate(items):
                self._compile_fragment(bundle, "items", item, f"{path}/items/{position}", node, warn)

    def _build_node(self, bundle: AssetBundle, kind: AssetKind, attributes: dict[str, Any], warn,
                    **internal: Any) -> AssetNode:
        """Validates the node, moving attributes whose values do not fit their typed field to ``unknown``."""
        node_type = NODE_TYPES[kind]
        payload = {**attributes, **internal}
        try:
            node = node_type.model_validate(payload)
        except ValidationError as e:
            rejected = {error["loc"][0] for error in e.errors() if error["loc"] and error["loc"][0] in attributes}
            if not rejected:
                raise
            unknown = dict(internal.get("unknown") or {})
            for alias in rejected:
                keyword = str(alias).lstrip("$")
                warn(f"Invalid value for '{keyword}' of '{internal['identity']}'; keeping it unrendered",
                     path=internal["identity"], key=keyword)
                unknown[keyword] = payload.pop(alias)
            payload["unknown"] = unknown
            node = node_type.model_validate(payload)
        bundle.nodes.append(node)
        return node
