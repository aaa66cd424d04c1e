from .base_client import BaseCatalogClient, build_search_query, condition
from .exceptions import (
    CatalogAuthError,
    CatalogClientError,
    CatalogConnectionError,
    CatalogProtocolError,
    CatalogRequestError,
    CatalogTimeoutError,
)
from .http_client import HTTPCatalogClient

__all__ = [
    "BaseCatalogClient",
    "CatalogAuthError",
    "CatalogClientError",
    "CatalogConnectionError",
    "CatalogProtocolError",
    "CatalogRequestError",
    "CatalogTimeoutError",
    "HTTPCatalogClient",
    "build_search_query",
    "condition",
]
