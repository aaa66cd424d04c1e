from .asset_compiler import SchemaAssetCompiler, split_description
from .bundle_writer import render_bundle_xml, write_bundle_xml
from .document_store import DocumentStore, FileDocumentStore, InMemoryDocumentStore
from .exceptions import DocumentNotFoundError, DocumentParseError, SchemaGenerationError
from .naming import build_path, format_name, identity_for_term, local_name, schema_id_for_term
from .reference_resolver import AssetUpdate, ReferenceResolver
from .relationship_linker import RelationshipLinker
from .term_compiler import CompilationState, TermSchemaCompiler
from .type_inference import build_term_type_cache, map_native_type_to_schema, merge_types

__all__ = [
    "AssetUpdate",
    "CompilationState",
    "DocumentNotFoundError",
    "DocumentParseError",
    "DocumentStore",
    "FileDocumentStore",
    "InMemoryDocumentStore",
    "ReferenceResolver",
    "RelationshipLinker",
    "SchemaAssetCompiler",
    "SchemaGenerationError",
    "TermSchemaCompiler",
    "build_path",
    "build_term_type_cache",
    "format_name",
    "identity_for_term",
    "local_name",
    "map_native_type_to_schema",
    "merge_types",
    "render_bundle_xml",
    "schema_id_for_term",
    "split_description",
    "write_bundle_xml",
]
