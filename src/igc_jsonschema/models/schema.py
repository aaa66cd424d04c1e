"""Models for JSON Schema documents and their provenance sidecars."""
from typing import Any

from pydantic import AliasChoices, Field

from .common import PassthroughModel


class SchemaDocument(PassthroughModel):
    """A JSON Schema document representing one term.

    Only the vocabulary this project produces or consumes is modelled explicitly;
    any other keyword survives a read-modify-write cycle as passthrough.
    """
    schema_uri: str | None = Field(None, alias="$schema")
    id: str | None = Field(None, validation_alias=AliasChoices("$id", "id"), serialization_alias="$id")
    title: str | None = None
    description: str | None = None
    type: str | list[str] | None = None
    format: str | None = None
    enum: list[Any] | None = None
    properties: dict[str, Any] | None = None
    items: dict[str, Any] | list[Any] | None = None
    ref: str | None = Field(None, alias="$ref")
    relation_object: bool | None = Field(None, alias="x-relation-object")

    @property
    def is_object(self) -> bool:
        return self.properties is not None

    def to_json_dict(self) -> dict[str, Any]:
        """Dumps the document using JSON Schema keyword names, omitting unset keywords."""
        return self.model_dump(by_alias=True, exclude_none=True)

class Sidecar(PassthroughModel):
    """Provenance for a schema document: which term produced it, and selected term properties."""
    schema_id: str = Field(..., alias="_schema")
    identity: str = Field(..., alias="_identity")
    term_id: str = Field(..., alias="_id")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
