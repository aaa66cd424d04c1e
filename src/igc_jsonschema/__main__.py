"""CLI entry point for igc-jsonschema."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import SecretStr

from .catalog_client.http_client import HTTPCatalogClient
from .config import Config
from .logging_config import configure_logging
from .schema_gen.document_store import FileDocumentStore
from .workflows import (
    generate_collection_schema,
    generate_physical_model_schema,
    generate_schemas,
    load_schemas,
    schema_files,
    write_bundles,
)


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration (authorisation) file with the catalog URL and user.",
    envvar="IGC_JSONSCHEMA_CONFIG_FILE"
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format.",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """igc-jsonschema - converts between catalog business terms, JSON Schema and catalog assets."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()
    configure_logging(cfg.logging)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


def _ensure_password(config: Config, password: Optional[str]) -> None:
    """Uses the given password, else the configured one, else prompts for it without echo."""
    if password:
        config.catalog.password = SecretStr(password)
    elif config.catalog.password is None:
        entered = click.prompt(f"Password for user '{config.catalog.username}'", hide_input=True)
        config.catalog.password = SecretStr(entered)

def _run(coro, action: str):
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        click.echo(f"\n{action} interrupted by user.", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"{action} failed: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--directory", "-d", required=True,
              type=click.Path(file_okay=False, resolve_path=True, path_type=Path),
              help="Directory into which to write the schema documents and sidecars.")
@click.option("--namespace", "-n", required=True, help="Namespace prefix for every schema id (e.g. http://example.com/schemas).")
@click.option("--limit", "-l", "category_rid", default=None, help="Only generate schemas for terms within this category (RID).")
@click.option("--sidecar", "-s", "sidecar_file", default=None,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="JSON file holding an array of term properties to record in each sidecar.")
@click.option("--multiple-attr", "-m", default=None, help="Term attribute marking a contained term as multi-valued.")
@click.option("--password", "-p", default=None, help="Password for the catalog user (prompted for if not given).")
@click.pass_context
def generate(ctx: click.Context, directory: Path, namespace: str, category_rid: Optional[str],
             sidecar_file: Optional[Path], multiple_attr: Optional[str], password: Optional[str]) -> None:
    """Generates JSON Schema documents (and sidecars) from the catalog's term hierarchy."""
    config: Config = ctx.obj["config"]
    config.generation.namespace = namespace.rstrip("/")
    config.generation.category_rid = category_rid
    if multiple_attr:
        config.generation.multiplicity_attribute = multiple_attr
    if sidecar_file:
        try:
            properties = json.loads(sidecar_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            click.echo(f"Sidecar configuration {sidecar_file} is not valid JSON: {e}", err=True)
            sys.exit(1)
        if not isinstance(properties, list) or not all(isinstance(p, str) for p in properties):
            click.echo("Provided sidecar configuration must be an array of property names.", err=True)
            sys.exit(1)
        config.generation.sidecar_properties = properties
    _ensure_password(config, password)

    async def run_workflow():
        store = FileDocumentStore(directory)
        async with HTTPCatalogClient(config) as client:
            return await generate_schemas(client, config, store)

    summary = _run(run_workflow(), "Schema generation")
    click.echo(summary.model_dump_json(indent=2))


def _single_document_options(func):
    func = click.option("--password", "-p", default=None, help="Password for the catalog user (prompted for if not given).")(func)
    func = click.option("--namespace", default=None, help="Namespace prefix for the schema id (defaults to the configured one).")(func)
    func = click.option("--file", "-f", "output", required=True, type=click.Path(dir_okay=False, path_type=Path),
                        help="JSON Schema file to write.")(func)
    return func

@cli.command()
@click.option("--name", "-n", "collection_name", required=True, help="Collection holding the root term and nested collections.")
@_single_document_options
@click.pass_context
def generate_collection(ctx: click.Context, collection_name: str, output: Path, namespace: Optional[str],
                        password: Optional[str]) -> None:
    """Generates one JSON Schema document from the terms of a collection."""
    config: Config = ctx.obj["config"]
    if namespace:
        config.generation.namespace = namespace.rstrip("/")
    _ensure_password(config, password)

    async def run_workflow():
        async with HTTPCatalogClient(config) as client:
            return await generate_collection_schema(client, config, collection_name, output)

    summary = _run(run_workflow(), "Collection schema generation")
    click.echo(summary.model_dump_json(indent=2))

@cli.command()
@click.option("--name", "-n", "model_name", required=True, help="Physical data model whose tables and columns to describe.")
@_single_document_options
@click.pass_context
def generate_pdm(ctx: click.Context, model_name: str, output: Path, namespace: Optional[str],
                 password: Optional[str]) -> None:
    """Generates one JSON Schema document from a physical data model."""
    config: Config = ctx.obj["config"]
    if namespace:
        config.generation.namespace = namespace.rstrip("/")
    _ensure_password(config, password)

    async def run_workflow():
        async with HTTPCatalogClient(config) as client:
            return await generate_physical_model_schema(client, config, model_name, output)

    summary = _run(run_workflow(), "Physical data model schema generation")
    click.echo(summary.model_dump_json(indent=2))


@cli.command()
@click.option("--directory", "-d", default=None,
              type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Directory of JSON Schema files (and sidecars) to load.")
@click.option("--file", "-f", "schema_file", default=None,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Single JSON Schema file to load.")
@click.option("--output", "-o", default=None,
              type=click.Path(dir_okay=False, writable=True, path_type=Path),
              help="Write the asset bundle XML to this file instead of loading it into the catalog.")
@click.option("--no-relationships", is_flag=True, default=False,
              help="Only create the assets; skip reference resolution and term linking.")
@click.option("--password", "-p", default=None, help="Password for the catalog user (prompted for if not given).")
@click.pass_context
def load(ctx: click.Context, directory: Optional[Path], schema_file: Optional[Path], output: Optional[Path],
         no_relationships: bool, password: Optional[str]) -> None:
    """Loads JSON Schema documents into the catalog as assets."""
    config: Config = ctx.obj["config"]
    if (directory is None) == (schema_file is None):
        raise click.UsageError("Provide exactly one of --directory or --file.")
    files = schema_files(directory) if directory is not None else [schema_file]
    if not files:
        click.echo(f"No JSON Schema files found in {directory}.", err=True)
        sys.exit(1)

    if output is not None:
        summary = write_bundles(files, config, output)
        click.echo(summary.model_dump_json(indent=2))
        return

    _ensure_password(config, password)

    async def run_workflow():
        async with HTTPCatalogClient(config) as client:
            return await load_schemas(client, config, files, link_relationships=not no_relationships)

    summary = _run(run_workflow(), "Schema loading")
    click.echo(summary.model_dump_json(indent=2))
    if summary.failed:
        sys.exit(1)


@cli.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show version information."""
    from . import __version__
    click.echo(f"igc-jsonschema v{__version__}")


@cli.command()
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration (the password is masked)."""
    config: Config = ctx.obj["config"]
    click.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    cli()
