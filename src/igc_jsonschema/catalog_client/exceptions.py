"""
Custom exceptions for the catalog client.
"""
from typing import Any, Optional

class CatalogClientError(Exception):
    """Base class for all catalog client errors."""
    pass

class CatalogConnectionError(CatalogClientError):
    """Raised when the catalog cannot be reached or answers with a server-side error."""
    pass

class CatalogTimeoutError(CatalogConnectionError):
    """Raised when a connection or request times out."""
    pass

class CatalogProtocolError(CatalogClientError):
    """Raised for responses that cannot be understood (undecodable or unexpected payloads)."""
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

class CatalogRequestError(CatalogClientError):
    """Raised when the catalog rejects a request (4xx other than authentication). Never retried."""
    def __init__(self, message: str, status: int, body: Optional[Any] = None):
        super().__init__(message)
        self.status = status
        self.body = body

class CatalogAuthError(CatalogClientError):
    """Raised when the catalog refuses the credentials (401) or the user's permissions (403)."""
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
