"""
Tagged asset-node models for the catalog's JSON Schema bundle representation.

Each recognised JSON Schema keyword maps onto a typed field whose alias is the
catalog attribute name (the keyword prefixed with ``$``). Keywords that are not
recognised for a node's kind are kept in ``unknown`` and never sent to the catalog.
"""
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import Field

from .common import AssetKind, BasePydanticModel

Number = bool | int | float


class AssetNode(BasePydanticModel):
    """Fields shared by every node in an asset bundle."""
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "use_enum_values": False, # kind must stay an AssetKind for class/reference names
    }

    # Bookkeeping fields; not rendered as catalog attributes
    INTERNAL_FIELDS: ClassVar[frozenset[str]] = frozenset({
        "kind", "asset_id", "identity", "document_id", "parent_kind", "parent_id", "extensions", "unknown",
    })

    kind: AssetKind
    asset_id: str = Field(..., description="Bundle-local identifier (e.g. 'xt3').")
    name: str
    identity: str = Field(..., description="Schema-tree path (or hierarchy token) this node was generated from.")
    document_id: str | None = Field(None, description="Identifier of the schema document the node belongs to.")
    parent_kind: AssetKind | None = None
    parent_id: str | None = None
    short_description: str | None = None
    long_description: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict, description="Retained 'x-' vendor keywords.")
    unknown: dict[str, Any] = Field(default_factory=dict, description="Unrecognised keywords (passthrough only).")

    @classmethod
    def known_keywords(cls) -> dict[str, str]:
        """Maps each JSON Schema keyword this kind understands to its field name."""
        mapping = {}
        for field_name, field_info in cls.model_fields.items():
            if field_info.alias and field_info.alias.startswith("$"):
                mapping[field_info.alias[1:]] = field_name
        return mapping

    @property
    def ref(self) -> str | None:
        return getattr(self, "ref_", None)

    def catalog_attributes(self) -> dict[str, Any]:
        """Attributes to send to the catalog, keyed by catalog attribute name."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude=set(self.INTERNAL_FIELDS))

class _DescribedNode(AssetNode):
    """Keywords common to every node generated from a (sub)schema."""
    id: str | None = Field(None, alias="$id")
    format: str | None = Field(None, alias="$format")
    default: Any = Field(None, alias="$default")
    enum: list[Any] | None = Field(None, alias="$enum")
    read_only: bool | None = Field(None, alias="$readOnly")
    example: str | None = Field(None, alias="$example")
    ref_: str | None = Field(None, alias="$ref")
    xml_name: str | None = Field(None, alias="$xml_name")
    xml_namespace: str | None = Field(None, alias="$xml_namespace")
    xml_prefix: str | None = Field(None, alias="$xml_prefix")
    xml_attribute: bool | None = Field(None, alias="$xml_attribute")
    xml_wrapped: bool | None = Field(None, alias="$xml_wrapped")

class NamespaceNode(AssetNode):
    kind: Literal[AssetKind.NAMESPACE] = AssetKind.NAMESPACE

class PathNode(AssetNode):
    kind: Literal[AssetKind.PATH] = AssetKind.PATH

class SchemaNode(AssetNode):
    kind: Literal[AssetKind.SCHEMA] = AssetKind.SCHEMA
    schema_uri: str | None = Field(None, alias="$schema")
    id: str | None = Field(None, alias="$id")
    type: str | None = Field(None, alias="$type")
    enum: list[Any] | None = Field(None, alias="$enum")

class ObjectNode(_DescribedNode):
    kind: Literal[AssetKind.OBJECT] = AssetKind.OBJECT
    discriminator: str | None = Field(None, alias="$discriminator")
    max_properties: int | None = Field(None, alias="$maxProperties")
    min_properties: int | None = Field(None, alias="$minProperties")
    required: list[str] | None = Field(None, alias="$required")

class ArrayNode(_DescribedNode):
    kind: Literal[AssetKind.ARRAY] = AssetKind.ARRAY
    max_items: int | None = Field(None, alias="$maxItems")
    min_items: int | None = Field(None, alias="$minItems")
    unique_items: bool | None = Field(None, alias="$uniqueItems")

class PrimitiveNode(_DescribedNode):
    kind: Literal[AssetKind.PRIMITIVE] = AssetKind.PRIMITIVE
    type: str | None = Field(None, alias="$type")
    multiple_of: Number | None = Field(None, alias="$multipleOf")
    maximum: Number | None = Field(None, alias="$maximum")
    exclusive_maximum: Number | None = Field(None, alias="$exclusiveMaximum")
    minimum: Number | None = Field(None, alias="$minimum")
    exclusive_minimum: Number | None = Field(None, alias="$exclusiveMinimum")
    max_length: int | None = Field(None, alias="$maxLength")
    min_length: int | None = Field(None, alias="$minLength")
    pattern: str | None = Field(None, alias="$pattern")

AnyAssetNode = Annotated[
    Union[NamespaceNode, PathNode, SchemaNode, ObjectNode, ArrayNode, PrimitiveNode],
    Field(discriminator="kind"),
]

NODE_TYPES: dict[AssetKind, type[AssetNode]] = {
    AssetKind.NAMESPACE: NamespaceNode,
    AssetKind.PATH: PathNode,
    AssetKind.SCHEMA: SchemaNode,
    AssetKind.OBJECT: ObjectNode,
    AssetKind.ARRAY: ArrayNode,
    AssetKind.PRIMITIVE: PrimitiveNode,
}

class AssetBundle(BasePydanticModel):
    """Nodes compiled from one schema document, plus how the catalog should import them."""
    document_id: str | None = None
    source: str | None = Field(None, description="File the document was read from, if any.")
    nodes: list[AnyAssetNode] = Field(default_factory=list)
    complete_asset_ids: list[str] = Field(default_factory=list)
    partial_asset_ids: list[str] = Field(default_factory=list, description="Hierarchy nodes that must not replace existing siblings.")
    warnings: list[str] = Field(default_factory=list)

    def node(self, asset_id: str) -> AssetNode | None:
        for candidate in self.nodes:
            if candidate.asset_id == asset_id:
                return candidate
        return None

    def children_of(self, asset_id: str) -> list[AssetNode]:
        return [candidate for candidate in self.nodes if candidate.parent_id == asset_id]
