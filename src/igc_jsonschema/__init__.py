"""igc-jsonschema - conversion between a metadata catalog's business terms, JSON Schema and catalog asset bundles.

Generates a forest of JSON Schema documents from the catalog's business-term
hierarchy, and loads JSON Schema documents back into the catalog as OpenIGC
asset bundles with their cross-references resolved.
"""

__version__ = "0.1.0"

from .config import Config

__all__ = ["Config", "__version__"]
