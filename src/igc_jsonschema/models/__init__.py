"""
Pydantic models for igc-jsonschema.
"""
from .assets import (
    AnyAssetNode,
    ArrayNode,
    AssetBundle,
    AssetNode,
    NamespaceNode,
    ObjectNode,
    PathNode,
    PrimitiveNode,
    SchemaNode,
)
from .catalog import DataClass, DesignColumn, ItemList, RelatedItem, Term
from .common import AssetKind, BasePydanticModel, PassthroughModel
from .schema import SchemaDocument, Sidecar

__all__ = [
    "AnyAssetNode",
    "ArrayNode",
    "AssetBundle",
    "AssetKind",
    "AssetNode",
    "BasePydanticModel",
    "DataClass",
    "DesignColumn",
    "ItemList",
    "NamespaceNode",
    "ObjectNode",
    "PassthroughModel",
    "PathNode",
    "PrimitiveNode",
    "RelatedItem",
    "SchemaDocument",
    "SchemaNode",
    "Sidecar",
    "Term",
]
