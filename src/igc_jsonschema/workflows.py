"""
The end-to-end runs: generating schemas from the term hierarchy, and
loading schemas (and their sidecars) into the catalog. Two smaller runs
generate a single document from a collection or from a physical data model.

Phases run strictly one after the other; inside a phase independent catalog
calls run concurrently, bounded by ``catalog.max_concurrent_requests``.
"""
import asyncio
import json
from collections.abc import Awaitable, Iterable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, Field, ValidationError

from .catalog_client.base_client import BaseCatalogClient, condition
from .catalog_client.exceptions import CatalogClientError
from .config import Config
from .models.assets import AssetBundle
from .models.catalog import DataClass, DesignColumn, RelatedItem, Term
from .models.common import AssetKind
from .schema_gen.asset_compiler import SchemaAssetCompiler
from .schema_gen.bundle_writer import render_bundle_xml, write_bundle_xml
from .schema_gen.collection_compiler import CollectionSchemaCompiler
from .schema_gen.document_store import SIDECAR_SUFFIX, DocumentStore, load_sidecar, write_text_atomic
from .schema_gen.exceptions import InvalidSourceError, SchemaGenerationError
from .schema_gen.naming import local_name
from .schema_gen.pdm_compiler import PhysicalModelSchemaCompiler
from .schema_gen.reference_resolver import ReferenceResolver
from .schema_gen.relationship_linker import RelationshipLinker
from .schema_gen.term_compiler import CompilationState, TermSchemaCompiler
from .schema_gen.type_inference import build_term_type_cache

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RELATIONSHIP_PROPERTIES = ["category_path", "has_types", "is_a_type_of", "is_of", "has_a", "assigned_terms", "assigned_to_terms"]
TERM_PROPERTIES = ["name", "short_description", "long_description", *RELATIONSHIP_PROPERTIES]
DATA_CLASS_PROPERTIES = ["name", "data_type_filter_elements_enum", "assigned_to_terms"]
SCHEMA_ASSET_PROPERTIES = ["name", "$ref", "$id"]
DESIGN_COLUMN_PROPERTIES = [
    "name",
    "data_type",
    "length",
    "minimum_length",
    "allows_null_values",
    "assigned_to_terms",
    "design_table_or_view.assigned_to_terms",
    "included_in_design_foreign_key.referenced_by_design_column",
]


class GenerationSummary(BaseModel):
    terms: int = 0
    data_classes: int = 0
    documents_emitted: int = 0
    associations_linked: int = 0
    documents_updated: int = 0
    collisions: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict, description="Item id -> error, for items that were skipped.")
    output_file: str | None = None

class LoadSummary(BaseModel):
    documents: int = 0
    bundles_created: int = 0
    assets_created: int = 0
    skipped: dict[str, list[str]] = Field(default_factory=dict, description="File -> compiler warnings that caused it to be skipped.")
    failed: dict[str, str] = Field(default_factory=dict, description="File -> error.")
    updates_applied: int = 0
    updates_failed: dict[str, str] = Field(default_factory=dict)
    unresolved: list[str] = Field(default_factory=list)
    terms_linked: int = 0
    xml_file: str | None = None


async def gather_bounded(aws: Iterable[Awaitable[T]], limit: int) -> list[T]:
    """Awaits every awaitable with at most ``limit`` in flight; results keep input order."""
    semaphore = asyncio.Semaphore(limit)

    async def _run(aw: Awaitable[T]) -> T:
        async with semaphore:
            return await aw

    return await asyncio.gather(*(_run(aw) for aw in aws))


def _relationships_truncated(raw: dict[str, Any]) -> bool:
    for prop in RELATIONSHIP_PROPERTIES:
        collection = raw.get(prop)
        if not isinstance(collection, dict):
            continue
        paging = collection.get("paging") or {}
        if paging.get("next") or paging.get("numTotal", 0) > len(collection.get("items", [])):
            return True
    return False


async def fetch_data_classes(client: BaseCatalogClient, summary: GenerationSummary) -> list[DataClass]:
    raw_classes = await client.search_all(["data_class"], DATA_CLASS_PROPERTIES)
    data_classes = []
    for raw in raw_classes:
        try:
            data_classes.append(DataClass.model_validate(raw))
        except ValidationError as e:
            item_id = str(raw.get("_id", "?"))
            summary.errors[item_id] = f"Unreadable data class: {e}"
            logger.warning("Skipping unreadable data class.", data_class_id=item_id, error=str(e))
    summary.data_classes = len(data_classes)
    return data_classes

async def fetch_terms(client: BaseCatalogClient, config: Config, summary: GenerationSummary) -> list[Term]:
    """Fetches every term (optionally within one category), completing truncated relationship collections."""
    generation = config.generation
    properties = list(dict.fromkeys([*TERM_PROPERTIES, generation.multiplicity_attribute, *generation.sidecar_properties]))
    conditions = [condition("category_path._id", generation.category_rid)] if generation.category_rid else None
    raw_terms = await client.search_all(["term"], properties, conditions)

    async def _complete(raw: dict[str, Any]) -> dict[str, Any]:
        if not _relationships_truncated(raw):
            return raw
        try:
            full = await client.get_asset_properties(raw["_id"], properties, config.catalog.related_page_size)
        except CatalogClientError as e:
            logger.warning("Unable to fetch all relationships of term; using the truncated ones.", term_id=raw.get("_id"), error=str(e))
            return raw
        return {**raw, **(full or {})}

    raw_terms = await gather_bounded((_complete(raw) for raw in raw_terms), config.catalog.max_concurrent_requests)
    terms = []
    for raw in raw_terms:
        try:
            terms.append(Term.model_validate(raw))
        except ValidationError as e:
            item_id = str(raw.get("_id", "?"))
            summary.errors[item_id] = f"Unreadable term: {e}"
            logger.warning("Skipping unreadable term.", term_id=item_id, error=str(e))
    summary.terms = len(terms)
    return terms


async def generate_schemas(client: BaseCatalogClient, config: Config, store: DocumentStore) -> GenerationSummary:
    """Reads the term hierarchy, writes one schema (plus sidecar) per term, then links associations."""
    summary = GenerationSummary()
    log = logger.bind(namespace=config.generation.namespace, category_rid=config.generation.category_rid)

    log.info("Caching data classes.")
    state = CompilationState()
    state.term_types = build_term_type_cache(await fetch_data_classes(client, summary))

    log.info("Fetching terms.")
    terms = await fetch_terms(client, config, summary)

    compiler = TermSchemaCompiler(state, config.generation, store)
    compiler.register_terms(terms)
    log.info("Compiling schema documents.", terms=len(terms))
    summary.documents_emitted = len(compiler.compile_all())

    log.info("Linking associations.", associations=len(state.association_ids))
    linked = RelationshipLinker(state, store).link_all()
    summary.associations_linked = len(linked)
    summary.documents_updated = sum(len(ids) for ids in linked.values())

    summary.collisions = [f"{name}: {first} / {later}" for name, first, later in state.collisions]
    summary.warnings = list(state.warnings)
    log.info("Schema generation completed.", documents=summary.documents_emitted, warnings=len(summary.warnings))
    return summary


def write_schema_document(document: dict[str, Any], output: Path | str) -> Path:
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_text_atomic(path, json.dumps(document, indent=2, ensure_ascii=False) + "\n")
    logger.info("Schema document written.", file=str(path))
    return path

def _split_members(members: Iterable[dict[str, Any]]) -> tuple[list[RelatedItem], list[RelatedItem]]:
    """(terms, collections) among a collection's assets; other asset types are ignored."""
    terms, collections = [], []
    for raw in members:
        item = RelatedItem.model_validate(raw)
        if item.type == "term":
            terms.append(item)
        elif item.type == "collection":
            collections.append(item)
    return terms, collections

async def fetch_collection_tree(client: BaseCatalogClient, config: Config,
                                name: str) -> tuple[list[RelatedItem], dict[str, list[RelatedItem]]]:
    """The terms of a collection, and the terms of every collection nested in it (at any depth) by name."""
    members = await client.get_collection_assets(name)
    if members is None:
        raise InvalidSourceError(f"collection '{name}'", "no collection has that name")
    terms, level = _split_members(members)

    groups: dict[str, list[RelatedItem]] = {}
    visited = {name}
    while level:
        level = [item for item in {item.name: item for item in level}.values() if item.name not in visited]
        visited.update(item.name for item in level)
        results = await gather_bounded((client.get_collection_assets(item.name) for item in level),
                                       config.catalog.max_concurrent_requests)
        next_level: list[RelatedItem] = []
        for item, nested in zip(level, results):
            nested_terms, nested_collections = _split_members(nested or [])
            groups[item.name] = nested_terms
            next_level.extend(nested_collections)
        level = next_level
    return terms, groups

async def fetch_terms_by_id(client: BaseCatalogClient, config: Config, items: Iterable[RelatedItem],
                            summary: GenerationSummary) -> dict[str, Term]:
    """Looks up the given terms and, level by level, every term they contain."""
    terms: dict[str, Term] = {}
    pending = {item.id: item for item in items}

    async def _fetch(item: RelatedItem) -> dict[str, Any] | None:
        try:
            return await client.get_asset_properties(item.id, TERM_PROPERTIES, config.catalog.related_page_size)
        except CatalogClientError as e:
            summary.errors[item.id] = str(e)
            logger.warning("Unable to fetch term.", term_id=item.id, error=str(e))
            return None

    while pending:
        batch = list(pending.values())
        results = await gather_bounded((_fetch(item) for item in batch), config.catalog.max_concurrent_requests)
        for item, raw in zip(batch, results):
            if raw is None:
                continue
            try:
                terms[item.id] = Term.model_validate({"_id": item.id, "_name": item.name, **raw})
            except ValidationError as e:
                summary.errors[item.id] = f"Unreadable term: {e}"
                logger.warning("Skipping unreadable term.", term_id=item.id, error=str(e))
        pending = {
            child.id: child
            for term in terms.values() for child in term.has_a.items
            if child.id not in terms and child.id not in summary.errors
        }
    return terms

async def generate_collection_schema(client: BaseCatalogClient, config: Config, collection_name: str,
                                     output: Path | str) -> GenerationSummary:
    """Writes one schema document built from the single term of a collection and its nested collections."""
    summary = GenerationSummary()
    log = logger.bind(collection=collection_name)

    log.info("Caching data classes.")
    term_types = build_term_type_cache(await fetch_data_classes(client, summary))

    log.info("Retrieving collection members.")
    roots, groups = await fetch_collection_tree(client, config, collection_name)
    if len(roots) != 1:
        raise InvalidSourceError(f"collection '{collection_name}'", f"it must hold exactly one term, found {len(roots)}")

    members = [item for group in groups.values() for item in group]
    terms = await fetch_terms_by_id(client, config, [roots[0], *members], summary)
    summary.terms = len(terms)

    compiler = CollectionSchemaCompiler(config.generation, terms, term_types)
    document = compiler.compile(collection_name, roots[0], groups)
    summary.output_file = str(write_schema_document(document, output))
    summary.documents_emitted = 1
    summary.warnings = list(compiler.warnings)
    log.info("Collection schema generated.", terms=summary.terms, nested_collections=len(groups))
    return summary

async def generate_physical_model_schema(client: BaseCatalogClient, config: Config, model_name: str,
                                         output: Path | str) -> GenerationSummary:
    """Writes one schema document describing the tables and columns of a physical data model."""
    summary = GenerationSummary()
    log = logger.bind(physical_data_model=model_name)

    log.info("Retrieving design columns.")
    raw_columns = await client.search_all(["design_column"], DESIGN_COLUMN_PROPERTIES)
    columns = []
    for raw in raw_columns:
        try:
            column = DesignColumn.model_validate(raw)
        except ValidationError as e:
            item_id = str(raw.get("_id", "?"))
            summary.errors[item_id] = f"Unreadable design column: {e}"
            logger.warning("Skipping unreadable design column.", column_id=item_id, error=str(e))
            continue
        if column.in_model(model_name):
            columns.append(column)
    if not columns:
        raise InvalidSourceError(f"physical data model '{model_name}'", "no design columns belong to it")

    compiler = PhysicalModelSchemaCompiler(config.generation)
    document = compiler.compile(model_name, columns)
    summary.output_file = str(write_schema_document(document, output))
    summary.documents_emitted = 1
    summary.warnings = list(compiler.warnings)
    log.info("Physical data model schema generated.", columns=len(columns), tables=len(document["properties"]))
    return summary


def schema_files(directory: Path | str) -> list[Path]:
    """Schema documents (``*.json``) in a directory, in a stable order."""
    return sorted(path for path in Path(directory).iterdir() if path.is_file() and path.suffix == ".json")

def compile_schema_files(files: Iterable[Path], config: Config, summary: LoadSummary,
                         compiler: SchemaAssetCompiler | None = None) -> list[tuple[Path, AssetBundle]]:
    """Compiles each file into a bundle; unreadable files (and, if configured, files with warnings) are skipped."""
    compiler = compiler or SchemaAssetCompiler()
    bundles = []
    for path in files:
        summary.documents += 1
        try:
            bundle = compiler.compile_file(path)
        except SchemaGenerationError as e:
            summary.failed[path.name] = str(e)
            logger.error("Unable to compile schema file.", file=path.name, error=str(e))
            continue
        if bundle.warnings and config.loading.skip_documents_with_warnings:
            summary.skipped[path.name] = list(bundle.warnings)
            logger.warning("Skipping schema file that produced warnings.", file=path.name, warnings=len(bundle.warnings))
            continue
        bundles.append((path, bundle))
    return bundles

def write_bundles(files: Iterable[Path], config: Config, output: Path | str) -> LoadSummary:
    """Compiles schema files into a single bundle XML file without contacting the catalog."""
    summary = LoadSummary()
    bundles = [bundle for _, bundle in compile_schema_files(files, config, summary)]
    summary.xml_file = str(write_bundle_xml(bundles, output))
    return summary


async def create_bundles(client: BaseCatalogClient, config: Config, bundles: list[tuple[Path, AssetBundle]],
                         summary: LoadSummary, resolver: ReferenceResolver) -> None:
    async def _create(path: Path, bundle: AssetBundle) -> None:
        try:
            created = await client.create_bundle_assets(render_bundle_xml(bundle))
        except CatalogClientError as e:
            summary.failed[path.name] = str(e)
            logger.error("Creating assets failed.", file=path.name, error=str(e))
            resolver.add_bundle(bundle)
            return
        summary.bundles_created += 1
        summary.assets_created += len(created)
        resolver.add_bundle(bundle, created)
        logger.info("Assets created.", file=path.name, assets=len(created))

    await gather_bounded((_create(path, bundle) for path, bundle in bundles), config.catalog.max_concurrent_requests)

async def link_sidecar(client: BaseCatalogClient, sidecar_path: Path) -> int:
    """Assigns the sidecar's term to every loaded schema asset named after the schema; returns how many."""
    sidecar = load_sidecar(sidecar_path)
    name = local_name(sidecar.schema_id)
    found = await client.search_all(
        [AssetKind.SCHEMA.asset_class, AssetKind.OBJECT.asset_class],
        SCHEMA_ASSET_PROPERTIES,
        [condition("name", name)],
    )
    rids = [item["_id"] for item in found if "_id" in item]
    if not rids:
        logger.warning("No loaded schema assets found for sidecar.", file=sidecar_path.name, name=name)
        return 0
    await client.update(sidecar.term_id, {"assigned_assets": {"items": rids}})
    logger.info("Term assigned to schema assets.", file=sidecar_path.name, term_id=sidecar.term_id, assets=len(rids))
    return len(rids)

async def link_sidecars(client: BaseCatalogClient, config: Config, sidecar_paths: list[Path], summary: LoadSummary) -> None:
    async def _link(path: Path) -> None:
        try:
            if await link_sidecar(client, path):
                summary.terms_linked += 1
        except (CatalogClientError, SchemaGenerationError) as e:
            summary.failed[path.name] = str(e)
            logger.error("Linking sidecar failed.", file=path.name, error=str(e))

    await gather_bounded((_link(path) for path in sidecar_paths), config.catalog.max_concurrent_requests)


async def load_schemas(client: BaseCatalogClient, config: Config, files: list[Path],
                       link_relationships: bool = True) -> LoadSummary:
    """Creates assets for each schema file, then (optionally) resolves references and links sidecar terms."""
    summary = LoadSummary()
    bundles = compile_schema_files(files, config, summary)

    resolver = ReferenceResolver(config.loading)
    logger.info("Creating asset bundles.", bundles=len(bundles))
    await create_bundles(client, config, bundles, summary, resolver)
    if not link_relationships:
        return summary

    logger.info("Resolving references.")
    updates = resolver.resolve()
    result = await resolver.apply(client, updates, config.catalog.max_concurrent_requests)
    summary.updates_applied = result.applied
    summary.updates_failed = dict(result.failed)
    summary.unresolved = [f"{item.document_id} {item.identity}: {item.reason}" for item in resolver.unresolved]

    sidecars = [path.with_name(path.name + SIDECAR_SUFFIX) for path in files]
    sidecars = [path for path in sidecars if path.is_file()]
    logger.info("Linking terms from sidecars.", sidecars=len(sidecars))
    await link_sidecars(client, config, sidecars, summary)
    logger.info("Schema loading completed.", bundles=summary.bundles_created, failed=len(summary.failed))
    return summary
