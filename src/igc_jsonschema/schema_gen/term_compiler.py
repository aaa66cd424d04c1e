"""
Compiles the business-term hierarchy into one JSON Schema document per term.

Terms with containment edges become objects, terms with taxonomy edges become
enumerations of their kinds, and every other term becomes a primitive typed
from its assigned data classes. Association terms are left for the
:class:`~igc_jsonschema.schema_gen.relationship_linker.RelationshipLinker`.
"""
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

from ..config import GenerationConfig
from ..models.catalog import Term
from ..models.schema import SchemaDocument, Sidecar
from .document_store import DocumentStore
from .naming import format_name, identity_for_term, schema_id_for_term
from .type_inference import apply_native_type

logger = structlog.get_logger(__name__)


@dataclass
class CompilationState:
    """Every cache shared by the generation phases of one run."""

    terms: dict[str, Term] = field(default_factory=dict)
    schema_ids: dict[str, str] = field(default_factory=dict)
    processed: set[str] = field(default_factory=set)
    name_owners: dict[str, str] = field(default_factory=dict) # formatted name -> first term id
    term_types: dict[str, str] = field(default_factory=dict)
    association_ids: list[str] = field(default_factory=list)
    collisions: list[tuple[str, str, str]] = field(default_factory=list) # (name, first id, later id)
    warnings: list[str] = field(default_factory=list)

    def term(self, term_id: str) -> Term | None:
        return self.terms.get(term_id)

    def is_processed(self, term_id: str) -> bool:
        return term_id in self.processed


class TermSchemaCompiler:
    """Emits (and stores) the schema document and sidecar for each registered term."""

    def __init__(self, state: CompilationState, config: GenerationConfig, store: DocumentStore):
        self.state = state
        self.config = config
        self.store = store
        self._truthy = {value.lower() for value in config.multiplicity_truthy_values}
        self.logger = logger.bind(service="TermSchemaCompiler", namespace=config.namespace)

    def _warn(self, message: str, **context: Any) -> None:
        self.state.warnings.append(message)
        self.logger.warning(message, **context)

    def register_terms(self, terms: Iterable[Term]) -> int:
        """Caches terms (and their schema ids) for the run; returns how many were registered."""
        count = 0
        for term in terms:
            self.state.terms[term.id] = term
            self.state.schema_ids[term.id] = schema_id_for_term(self.config.namespace, term)
            if term.is_association and term.id not in self.state.association_ids:
                self.state.association_ids.append(term.id)
            count += 1
        self.logger.info("Terms registered.", registered=count, total_terms=len(self.state.terms),
                         association_terms=len(self.state.association_ids))
        return count

    def schema_ref_for(self, term_id: str) -> str | None:
        """Schema id of a registered term, or None when the term was never loaded."""
        if term_id not in self.state.terms:
            return None
        return self.state.schema_ids[term_id]

    def is_multiple(self, term: Term) -> bool:
        value = term.attribute(self.config.multiplicity_attribute)
        if value is None:
            return False
        return str(value).strip().lower() in self._truthy

    @staticmethod
    def description_for(term: Term) -> str:
        """Long description when populated, else the short one, else empty."""
        return term.long_description or term.short_description or ""

    def _check_name_collision(self, name: str, term: Term, schema_id: str) -> None:
        owner = self.state.name_owners.get(name)
        if owner is None:
            self.state.name_owners[name] = term.id
        elif owner != term.id:
            self.state.collisions.append((name, owner, term.id))
            self._warn(f"Non-unique term name '{name}' while processing {schema_id}",
                       term_id=term.id, other_term_id=owner, schema_id=schema_id)

    def _containment_properties(self, term: Term, schema_id: str) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for item in term.has_a.items:
            ref = self.schema_ref_for(item.id)
            related = self.state.term(item.id)
            property_name = format_name(related.name if related is not None else item.name)
            if ref is None:
                self._warn(f"Contained term '{item.name}' ({item.id}) was not loaded; omitting property from {schema_id}",
                           term_id=term.id, related_term_id=item.id, schema_id=schema_id)
                continue
            if self.is_multiple(related):
                properties[property_name] = {"type": "array", "items": {"$ref": ref}}
            else:
                properties[property_name] = {"$ref": ref}
        return properties

    def define_schema_for_term(self, term: Term) -> SchemaDocument | None:
        """Builds, stores and returns the term's document; None if it was already processed."""
        if self.state.is_processed(term.id):
            return None
        self.state.processed.add(term.id)

        schema_id = self.state.schema_ids.get(term.id) or schema_id_for_term(self.config.namespace, term)
        name = format_name(term.name)
        log = self.logger.bind(term_id=term.id, schema_id=schema_id)
        self._check_name_collision(name, term, schema_id)

        body: dict[str, Any] = {
            "$schema": self.config.schema_dialect,
            "$id": schema_id,
            "title": name,
            "description": self.description_for(term),
        }
        if len(term.has_a) > 0:
            body["type"] = "object"
            body["properties"] = self._containment_properties(term, schema_id)
        elif len(term.has_types) > 0:
            body["enum"] = [item.name for item in term.has_types.items]
            apply_native_type(body, self.state.term_types.get(term.id))
        else:
            apply_native_type(body, self.state.term_types.get(term.id))
        if term.is_association:
            body["x-relation-object"] = True

        document = SchemaDocument.model_validate(body)
        self.store.put(document)
        self.store.put_sidecar(self.sidecar_for(term, schema_id))
        log.debug("Schema document emitted.", type=document.type)
        return document

    def sidecar_for(self, term: Term, schema_id: str) -> Sidecar:
        extra = {prop: term.attribute(prop) for prop in self.config.sidecar_properties}
        return Sidecar.model_validate({
            "_schema": schema_id,
            "_identity": identity_for_term(term),
            "_id": term.id,
            **extra,
        })

    def compile_all(self) -> list[SchemaDocument]:
        """Emits a document for every registered term except attribute-less associations."""
        emitted = []
        for term in list(self.state.terms.values()):
            if term.is_association and len(term.has_a) == 0:
                continue
            document = self.define_schema_for_term(term)
            if document is not None:
                emitted.append(document)
        self.logger.info("Schema documents compiled.", emitted=len(emitted), collisions=len(self.state.collisions))
        return emitted
