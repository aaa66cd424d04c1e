"""
Exceptions raised while generating or reading schema artifacts.
"""

class SchemaGenerationError(Exception):
    """Base class for schema generation errors."""
    pass

class DocumentNotFoundError(SchemaGenerationError):
    """Raised when a schema document or sidecar does not exist in the store."""
    def __init__(self, document_id: str, location: str | None = None):
        message = f"No document stored for '{document_id}'"
        if location:
            message += f" (expected at {location})"
        super().__init__(message)
        self.document_id = document_id
        self.location = location

class DocumentParseError(SchemaGenerationError):
    """Raised when a persisted document cannot be parsed back into a schema."""
    def __init__(self, document_id: str, reason: str):
        super().__init__(f"Unable to parse document '{document_id}': {reason}")
        self.document_id = document_id
        self.reason = reason

class InvalidSourceError(SchemaGenerationError):
    """Raised when the catalog asset a single schema is generated from is missing or unusable."""
    def __init__(self, source: str, reason: str):
        super().__init__(f"Cannot generate a schema from {source}: {reason}")
        self.source = source
        self.reason = reason
