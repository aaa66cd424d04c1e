"""Configuration management for igc-jsonschema."""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class CatalogClientConfig(BaseModel):
    """Connection and request behaviour for the catalog REST client."""

    base_url: HttpUrl = Field(default="https://localhost:9443", description="Base URL of the catalog services tier.")
    api_prefix: str = Field(default="/ibm/iis/igc-rest/v1", description="Path prefix of the catalog REST API.")
    username: str = Field(default="isadmin", description="User to authenticate as.")
    password: Optional[SecretStr] = Field(default=None, description="Password for the user. Prompted for by the CLI if absent.")

    ssl_verify: bool = Field(default=True, description="Verify the catalog's SSL certificate.")
    request_timeout_seconds: float = Field(default=120.0, ge=5.0, description="Total timeout for a single request.")
    connect_timeout_seconds: float = Field(default=10.0, ge=1.0, description="Timeout for establishing a connection.")
    connection_pool_total_limit: int = Field(default=20, ge=1, description="Total connection pool limit for the aiohttp session.")
    connection_pool_per_host_limit: int = Field(default=10, ge=1, description="Per-host connection pool limit for the aiohttp session.")

    max_retries: int = Field(default=3, ge=1, description="Attempts made for an idempotent request before giving up.")
    initial_backoff_seconds: float = Field(default=1.0, ge=0.0, description="Initial backoff delay for retries.")
    max_backoff_seconds: float = Field(default=30.0, ge=0.0, description="Maximum backoff delay for retries.")

    enable_circuit_breaker: bool = Field(default=True, description="Protect the catalog with a circuit breaker.")
    cb_failure_threshold: int = Field(default=5, ge=1, description="Consecutive failures that open the circuit.")
    cb_recovery_timeout_seconds: float = Field(default=30.0, gt=0, description="Seconds the circuit stays open before a trial call.")
    cb_half_open_max_successes: int = Field(default=2, ge=1, description="Successful trial calls needed to close the circuit again.")

    page_size: int = Field(default=100, ge=1, le=10000, description="Page size used for catalog searches.")
    related_page_size: int = Field(default=1000, ge=1, description="Maximum related items returned per relationship on point lookups.")
    max_concurrent_requests: int = Field(default=8, ge=1, le=100, description="Concurrent catalog requests within a single phase.")


class GenerationConfig(BaseModel):
    """Settings for generating JSON Schema documents from the term hierarchy."""

    namespace: str = Field(default="http://example.com/schemas", description="Namespace prefix qualifying every schema id.")
    category_rid: Optional[str] = Field(default=None, description="Only compile terms within this category (catalog identifier).")
    multiplicity_attribute: str = Field(default="custom_Can be Multiple", description="Term attribute marking a contained term as multi-valued.")
    multiplicity_truthy_values: List[str] = Field(default_factory=lambda: ["yes", "true", "y"], description="Values (case-insensitive) of the multiplicity attribute meaning 'many'.")
    sidecar_properties: List[str] = Field(default_factory=lambda: ["short_description", "long_description"], description="Term properties copied into each sidecar file.")
    schema_dialect: str = Field(default="http://json-schema.org/draft-06/schema#", description="Value written to each document's $schema.")


class LoadConfig(BaseModel):
    """Settings for loading JSON Schema documents into the catalog."""

    reference_relationship: str = Field(default="custom_Uses", description="Relationship used for resolved $ref edges.")
    implements_relationship: str = Field(default="custom_Implements", description="Relationship linking an asset to the catalog asset it was generated from.")
    skip_documents_with_warnings: bool = Field(default=False, description="Do not create assets for documents that produced compiler warnings.")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format ('console' or 'json')")
    file: Optional[Path] = Field(default=None, description="Log file path")


class Config(BaseSettings):
    """Main configuration. Loads from environment variables prefixed with IGC_JSONSCHEMA_."""

    model_config = SettingsConfigDict(
        env_prefix='IGC_JSONSCHEMA_',
        env_nested_delimiter='__', # e.g., IGC_JSONSCHEMA_CATALOG__BASE_URL
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    catalog: CatalogClientConfig = Field(default_factory=CatalogClientConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    loading: LoadConfig = Field(default_factory=LoadConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    app_name: str = Field(default="igc-jsonschema", description="Name reported in the User-Agent header.")
    app_version: str = Field(default="0.1.0", description="Version reported in the User-Agent header.")

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file (no environment layering).

        The file doubles as the authentication file: it usually holds at least
        ``catalog.base_url`` and ``catalog.username``.
        """
        with open(file_path, encoding="utf-8") as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
