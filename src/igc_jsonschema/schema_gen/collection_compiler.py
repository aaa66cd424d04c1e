"""
Compiles the terms gathered in a catalog collection into a single JSON Schema document.

The collection holds exactly one term, which becomes the document itself, plus
any number of nested collections. Each nested collection (at any depth) becomes
an object property of the document that must be one of the collection's terms,
each of which is written under ``definitions``. Containment is embedded inline
rather than referenced, so the document stands on its own.
"""
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from ..config import GenerationConfig
from ..models.catalog import RelatedItem, Term
from .naming import format_name
from .type_inference import apply_native_type

logger = structlog.get_logger(__name__)


class CollectionSchemaCompiler:
    """Builds the document from terms (and native types) already fetched from the catalog."""

    def __init__(self, config: GenerationConfig, terms: Mapping[str, Term], term_types: Mapping[str, str]):
        self.config = config
        self.terms = terms
        self.term_types = term_types
        self.warnings: list[str] = []
        self.logger = logger.bind(service="CollectionSchemaCompiler")

    def _warn(self, message: str, **context: Any) -> None:
        self.warnings.append(message)
        self.logger.warning(message, **context)

    def schema_for_term(self, item: RelatedItem, path: frozenset[str] = frozenset()) -> dict[str, Any]:
        """Schema fragment for a term, embedding the terms it contains.

        ``path`` holds the terms enclosing this one; containing any of them (or
        itself) would recurse forever, so such a term is typed as a primitive.
        """
        term = self.terms.get(item.id)
        if term is None:
            self._warn(f"Term '{item.name}' ({item.id}) could not be read; typing it as a string", term_id=item.id)
            return apply_native_type({}, None)

        schema: dict[str, Any] = {}
        if term.short_description:
            schema["description"] = term.short_description
        enclosing = path | {term.id}
        contained = term.has_a.items
        if any(child.id in enclosing for child in contained):
            self._warn(f"Term '{term.name}' ({term.id}) contains itself; typing it as a primitive", term_id=term.id)
            contained = []
        if not contained:
            return apply_native_type(schema, self.term_types.get(term.id))

        properties: dict[str, Any] = {}
        for child in contained:
            related = self.terms.get(child.id)
            property_name = format_name(related.name if related is not None else child.name)
            if property_name in properties:
                self._warn(f"Term '{term.name}' contains '{property_name}' more than once; keeping the first",
                           term_id=term.id, related_term_id=child.id)
                continue
            properties[property_name] = self.schema_for_term(child, enclosing)
        schema["type"] = "object"
        schema["properties"] = properties
        return schema

    def compile(self, collection_name: str, root: RelatedItem,
                groups: Mapping[str, Sequence[RelatedItem]]) -> dict[str, Any]:
        """The document for a collection whose single term is ``root``.

        ``groups`` maps each nested collection's name to the terms it holds.
        """
        title = format_name(root.name)
        document: dict[str, Any] = {
            "$schema": self.config.schema_dialect,
            "$id": f"{self.config.namespace}/{format_name(collection_name)}",
            "title": title,
            **self.schema_for_term(root),
        }
        if not groups:
            return document

        if "properties" not in document:
            self._warn(f"Term '{root.name}' is not an object but its collection nests others; forcing it into one",
                       term_id=root.id)
            for keyword in ("type", "format", "enum"):
                document.pop(keyword, None)
            document["type"] = "object"
            document["properties"] = {}

        definitions: dict[str, Any] = {}
        for group_name, members in groups.items():
            property_name = format_name(group_name)
            if not members:
                self._warn(f"Collection '{group_name}' holds no terms; omitting property '{property_name}'")
                continue
            if property_name in document["properties"]:
                self._warn(f"Collection '{group_name}' clashes with property '{property_name}' of '{title}'; keeping the property")
                continue
            refs = []
            for item in members:
                definition_name = format_name(item.name)
                if definition_name not in definitions:
                    definitions[definition_name] = {"title": definition_name, **self.schema_for_term(item)}
                refs.append({"$ref": f"#/definitions/{definition_name}"})
            document["properties"][property_name] = {"type": "object", "oneOf": refs}
        if definitions:
            document["definitions"] = definitions
        self.logger.debug("Collection schema compiled.", collection=collection_name, definitions=len(definitions))
        return document
