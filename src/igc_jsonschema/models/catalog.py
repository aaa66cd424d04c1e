"""Models for payloads returned by the catalog's search and lookup calls."""
from typing import Any

from pydantic import Field

from .common import PassthroughModel

TABLE_TYPES = ("design_table", "design_view")


class RelatedItem(PassthroughModel):
    """A reference to another catalog asset inside a relationship collection."""
    id: str = Field(..., alias="_id")
    name: str = Field("", alias="_name")
    type: str | None = Field(None, alias="_type")

class ItemList(PassthroughModel):
    """A relationship collection, shaped as ``{"items": [...], "paging": {...}}``."""
    items: list[RelatedItem] = Field(default_factory=list)
    paging: dict[str, Any] | None = None

    @property
    def ids(self) -> list[str]:
        return [item.id for item in self.items]

    def __len__(self) -> int:
        return len(self.items)

class Term(PassthroughModel):
    """A business term, with the relationship collections used to build schemas."""
    id: str = Field(..., alias="_id")
    name: str = Field(..., alias="_name")
    type: str = Field("term", alias="_type")
    category_path: ItemList = Field(default_factory=ItemList, description="Parent categories, nearest first (leaf-to-root).")
    short_description: str | None = ""
    long_description: str | None = ""
    has_a: ItemList = Field(default_factory=ItemList, description="Containment: terms this term is composed of.")
    is_of: ItemList = Field(default_factory=ItemList)
    has_types: ItemList = Field(default_factory=ItemList, description="Taxonomy: terms that are kinds of this term.")
    is_a_type_of: ItemList = Field(default_factory=ItemList, description="Taxonomy: terms this term is a kind of.")
    assigned_terms: ItemList = Field(default_factory=ItemList, description="Association: terms this term relates.")
    assigned_to_terms: ItemList = Field(default_factory=ItemList)

    @property
    def is_association(self) -> bool:
        return len(self.assigned_terms) > 0

    def attribute(self, name: str, default: Any = None) -> Any:
        """Returns a declared or passthrough attribute by its catalog name."""
        if name in type(self).model_fields:
            return getattr(self, name)
        for field_name, field_info in type(self).model_fields.items():
            if field_info.alias == name:
                return getattr(self, field_name)
        return (self.model_extra or {}).get(name, default)

class DataClass(PassthroughModel):
    """A data class: carries native type tags and the terms it is assigned to."""
    id: str = Field(..., alias="_id")
    name: str = Field("", alias="_name")
    data_type_filter_elements_enum: list[str] = Field(default_factory=list)
    assigned_to_terms: ItemList = Field(default_factory=ItemList)

class DesignColumn(PassthroughModel):
    """A column of a physical data model, with its table's and foreign key's relationships flattened in."""
    id: str = Field(..., alias="_id")
    name: str = Field("", alias="_name")
    context: list[RelatedItem] = Field(default_factory=list, alias="_context", description="Containing assets, outermost first.")
    data_type: str | None = None
    length: int | None = None
    minimum_length: int | None = None
    allows_null_values: bool | None = None
    assigned_to_terms: ItemList = Field(default_factory=ItemList)
    table_assigned_to_terms: ItemList = Field(default_factory=ItemList, alias="design_table_or_view.assigned_to_terms")
    referenced_columns: ItemList = Field(default_factory=ItemList,
                                         alias="included_in_design_foreign_key.referenced_by_design_column")

    @property
    def table(self) -> RelatedItem | None:
        """The design table or view holding this column."""
        tables = [item for item in self.context if item.type in TABLE_TYPES]
        return tables[-1] if tables else None

    def in_model(self, model_name: str) -> bool:
        return any(item.type == "physical_data_model" and item.name == model_name for item in self.context)
