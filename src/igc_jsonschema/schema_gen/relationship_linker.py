"""
Second generation pass: embeds association terms into the documents of the terms they relate.
"""
import copy
from typing import Any

import structlog

from ..models.catalog import Term
from .document_store import DocumentStore
from .exceptions import DocumentNotFoundError
from .naming import format_name, local_name
from .term_compiler import CompilationState

logger = structlog.get_logger(__name__)


class RelationshipLinker:
    """
    For each association term, gives every associated term's document an object
    property named after the association that ``$ref``s the other associated
    terms. Must only run once the term compiler has processed every term.

    Documents that cannot be parsed are not caught here: a
    :class:`~igc_jsonschema.schema_gen.exceptions.DocumentParseError` aborts the run.
    """

    def __init__(self, state: CompilationState, store: DocumentStore):
        self.state = state
        self.store = store
        self.logger = logger.bind(service="RelationshipLinker")

    def _warn(self, message: str, **context: Any) -> None:
        self.state.warnings.append(message)
        self.logger.warning(message, **context)

    def ancestors_of(self, term_id: str, visited: set[str] | None = None) -> set[str]:
        """Every term the given term is (transitively) a type of."""
        visited = set() if visited is None else visited
        term = self.state.term(term_id)
        if term is None:
            return visited
        for parent in term.is_a_type_of.items:
            if parent.id in visited:
                continue
            visited.add(parent.id)
            self.ancestors_of(parent.id, visited)
        return visited

    def _association_properties(self, association: Term) -> dict[str, Any]:
        if not self.state.is_processed(association.id):
            return {}
        try:
            own = self.store.get(self.state.schema_ids[association.id])
        except DocumentNotFoundError:
            return {}
        return own.properties or {}

    def link_association(self, association: Term) -> list[str]:
        """Links one association; returns the schema ids of the documents it updated."""
        relation_name = format_name(association.name)
        relation_id = self.state.schema_ids.get(association.id, relation_name)
        log = self.logger.bind(term_id=association.id, relation=relation_id)
        inherited = self._association_properties(association)

        related: dict[str, str] = {} # term id -> schema id, in association order
        for item in association.assigned_terms.items:
            if not self.state.is_processed(item.id):
                self._warn(f"No processed schema for '{item.name}' ({item.id}) while linking {relation_id}",
                           term_id=association.id, related_term_id=item.id)
                continue
            related[item.id] = self.state.schema_ids[item.id]

        updated = []
        for term_id, schema_id in related.items():
            document = self.store.get(schema_id)
            properties = document.properties
            if properties is None:
                self._warn(f"Schema {schema_id} was not an object while linking {relation_id}; forcing it into one",
                           schema_id=schema_id, term_id=association.id)
                document.type = "object"
                document.enum = document.format = None
                document.properties = properties = {}
            elif relation_name in properties:
                self._warn(f"Schema {schema_id} already has a property for relationship '{relation_name}'; skipping",
                           schema_id=schema_id, term_id=association.id)
                continue

            relation_property: dict[str, Any] = {"type": "object", "properties": copy.deepcopy(inherited)}
            excluded = self.ancestors_of(term_id) | {term_id}
            for other_id, other_schema_id in related.items():
                if other_id in excluded:
                    continue
                relation_property["properties"][local_name(other_schema_id)] = {"$ref": other_schema_id}
            properties[relation_name] = relation_property

            self.store.put(document)
            updated.append(schema_id)
        log.debug("Association linked.", updated=len(updated), related=len(related))
        return updated

    def link_all(self) -> dict[str, list[str]]:
        """Links every association term; returns association term id -> updated schema ids."""
        results = {}
        for term_id in self.state.association_ids:
            term = self.state.term(term_id)
            if term is None:
                continue
            results[term_id] = self.link_association(term)
        self.logger.info("Associations linked.", associations=len(results),
                         documents_updated=sum(len(ids) for ids in results.values()))
        return results
