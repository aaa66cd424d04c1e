"""
Compiles the design columns of a physical data model into a single JSON Schema document.

Every table (or view) becomes an object property of the document and every
column a property of its table, named after the first business term assigned
to it when there is one. Foreign key columns ``$ref`` the table they point at;
other columns are typed from their physical data type. Each property records
the catalog asset it came from, so loading the document back can link the two.
"""
from collections.abc import Iterable
from typing import Any

import structlog

from ..config import GenerationConfig
from ..models.catalog import DesignColumn, ItemList
from .naming import format_name
from .reference_resolver import ASSIGNED_TERMS_EXTENSION, ORIGINATING_ASSET_EXTENSION
from .type_inference import map_physical_type_to_schema

logger = structlog.get_logger(__name__)


class PhysicalModelSchemaCompiler:
    def __init__(self, config: GenerationConfig):
        self.config = config
        self.warnings: list[str] = []
        self.logger = logger.bind(service="PhysicalModelSchemaCompiler")

    def _warn(self, message: str, **context: Any) -> None:
        self.warnings.append(message)
        self.logger.warning(message, **context)

    def name_for(self, asset_id: str, asset_name: str, assigned_terms: ItemList) -> str:
        """Property name of a table or column: its first assigned term's name, else its own."""
        name = asset_name
        if assigned_terms.items:
            if len(assigned_terms) > 1:
                self._warn(f"'{asset_name}' has {len(assigned_terms)} assigned terms; naming it after the first",
                           rid=asset_id)
            name = assigned_terms.items[0].name
        return format_name(name)

    def compile(self, model_name: str, columns: Iterable[DesignColumn]) -> dict[str, Any]:
        document: dict[str, Any] = {
            "$schema": self.config.schema_dialect,
            "$id": f"{self.config.namespace}/{format_name(model_name)}",
            "title": format_name(model_name),
            "type": "object",
            "properties": {},
        }
        tables: dict[str, dict[str, Any]] = document["properties"]
        table_names: dict[str, str] = {} # table rid -> property name
        column_tables: dict[str, str] = {} # column rid -> table rid

        placed: list[DesignColumn] = []
        for column in columns:
            table = column.table
            if table is None:
                self._warn(f"Column '{column.name}' ({column.id}) is not within a table or view; skipping it",
                           rid=column.id)
                continue
            column_tables[column.id] = table.id
            placed.append(column)
            if table.id in table_names:
                continue
            name = self.name_for(table.id, table.name, column.table_assigned_to_terms)
            if name in tables:
                suffix = 2
                while f"{name}{suffix}" in tables:
                    suffix += 1
                unique = f"{name}{suffix}"
                self._warn(f"Tables '{table.name}' and another both map to '{name}'; using '{unique}'", rid=table.id)
                name = unique
            table_names[table.id] = name
            tables[name] = {
                ORIGINATING_ASSET_EXTENSION: table.id,
                ASSIGNED_TERMS_EXTENSION: column.table_assigned_to_terms.ids,
                "type": "object",
                "properties": {},
            }

        for column in placed:
            table_schema = tables[table_names[column_tables[column.id]]]
            name = self.name_for(column.id, column.name, column.assigned_to_terms)
            if name in table_schema["properties"]:
                self._warn(f"Column '{column.name}' ({column.id}) maps to '{name}', already used in its table; skipping it",
                           rid=column.id)
                continue
            table_schema["properties"][name] = self._column_property(column, table_names, column_tables)
            if column.allows_null_values is False:
                table_schema.setdefault("required", []).append(name)

        self.logger.debug("Physical data model schema compiled.", model=model_name, tables=len(tables), columns=len(placed))
        return document

    def _column_property(self, column: DesignColumn, table_names: dict[str, str],
                         column_tables: dict[str, str]) -> dict[str, Any]:
        prop: dict[str, Any] = {
            ORIGINATING_ASSET_EXTENSION: column.id,
            ASSIGNED_TERMS_EXTENSION: column.assigned_to_terms.ids,
        }
        referenced = [column_tables.get(rid) for rid in column.referenced_columns.ids]
        targets = list(dict.fromkeys(table_names[rid] for rid in referenced if rid is not None))
        if len(targets) > 1:
            self._warn(f"Foreign key column '{column.name}' references several tables; using '{targets[0]}'", rid=column.id)
        if targets:
            prop["$ref"] = f"#/properties/{targets[0]}"
            return prop
        if column.referenced_columns.items:
            self._warn(f"Foreign key column '{column.name}' references columns outside the model; typing it instead",
                       rid=column.id)

        prop.update(map_physical_type_to_schema(column.data_type))
        if prop["type"] == "string" and "format" not in prop:
            if column.length:
                prop["maxLength"] = column.length
            if column.minimum_length:
                prop["minLength"] = column.minimum_length
        return prop
