from enum import Enum

from pydantic import BaseModel


class BasePydanticModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "use_enum_values": True,
    }

class PassthroughModel(BasePydanticModel):
    """Base for catalog payloads whose attribute set is open-ended."""
    model_config = {
        "extra": "allow", # Custom attributes (e.g. 'custom_Can be Multiple') are kept as-is
        "populate_by_name": True,
        "use_enum_values": True,
    }

class AssetKind(str, Enum):
    NAMESPACE = "JSNamespace"
    PATH = "JSPath"
    SCHEMA = "JSchema"
    OBJECT = "JSObject"
    ARRAY = "JSArray"
    PRIMITIVE = "JSPrimitive"

    @property
    def asset_class(self) -> str:
        """Fully-qualified catalog class name of this kind of asset."""
        return f"$JSON_Schema-{self.value}"

    @property
    def reference_name(self) -> str:
        """Name of the containment reference pointing at a parent of this kind."""
        return f"${self.value}"
