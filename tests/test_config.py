"""Tests for configuration module."""

import json

import pytest
from pydantic import ValidationError

from igc_jsonschema.config import Config


def test_config_from_env(monkeypatch):
    """Test loading configuration from environment variables."""
    monkeypatch.setenv("IGC_JSONSCHEMA_LOGGING__LEVEL", "DEBUG")
    monkeypatch.setenv("IGC_JSONSCHEMA_CATALOG__BASE_URL", "https://igc.example.com:9443")
    monkeypatch.setenv("IGC_JSONSCHEMA_CATALOG__MAX_RETRIES", "5")
    monkeypatch.setenv("IGC_JSONSCHEMA_CATALOG__SSL_VERIFY", "false")
    monkeypatch.setenv("IGC_JSONSCHEMA_CATALOG__PASSWORD", "s3cret")
    monkeypatch.setenv("IGC_JSONSCHEMA_GENERATION__NAMESPACE", "http://acme.com/schemas")
    monkeypatch.setenv("IGC_JSONSCHEMA_LOADING__SKIP_DOCUMENTS_WITH_WARNINGS", "true")

    config = Config()

    assert config.logging.level == "DEBUG"
    assert config.catalog.base_url.host == "igc.example.com"
    assert config.catalog.max_retries == 5
    assert config.catalog.ssl_verify is False
    assert config.catalog.password.get_secret_value() == "s3cret"
    assert config.generation.namespace == "http://acme.com/schemas"
    assert config.loading.skip_documents_with_warnings is True

def test_config_defaults():
    """Test default configuration values."""
    config = Config()

    assert config.catalog.api_prefix == "/ibm/iis/igc-rest/v1"
    assert config.catalog.username == "isadmin"
    assert config.catalog.password is None
    assert config.catalog.ssl_verify is True
    assert config.catalog.max_retries == 3
    assert config.catalog.page_size == 100
    assert config.catalog.enable_circuit_breaker is True

    assert config.generation.multiplicity_attribute == "custom_Can be Multiple"
    assert config.generation.multiplicity_truthy_values == ["yes", "true", "y"]
    assert config.generation.sidecar_properties == ["short_description", "long_description"]
    assert config.generation.schema_dialect == "http://json-schema.org/draft-06/schema#"

    assert config.loading.reference_relationship == "custom_Uses"
    assert config.loading.skip_documents_with_warnings is False

    assert config.logging.level == "INFO"
    assert config.logging.format == "console"
    assert config.logging.file is None
    assert config.app_name == "igc-jsonschema"


def test_config_from_file(tmp_path):
    """The configuration file doubles as the authorisation file."""
    config_content = {
        "catalog": {
            "base_url": "https://10.0.0.5:9443",
            "username": "steward",
            "password": "from-file",
            "ssl_verify": False,
        },
        "generation": {"category_rid": "6662c0f2.ee6a64fe.0001"},
        "logging": {"level": "WARNING", "format": "json"},
    }
    config_file = tmp_path / "auth.json"
    config_file.write_text(json.dumps(config_content), encoding="utf-8")

    config = Config.from_file(config_file)

    assert str(config.catalog.base_url) == "https://10.0.0.5:9443/"
    assert config.catalog.username == "steward"
    assert config.catalog.password.get_secret_value() == "from-file"
    assert config.catalog.ssl_verify is False
    assert config.generation.category_rid == "6662c0f2.ee6a64fe.0001"
    assert config.logging.format == "json"
    # unspecified fields retain defaults
    assert config.catalog.max_retries == 3
    assert config.loading.reference_relationship == "custom_Uses"

def test_password_is_masked_when_dumped():
    config = Config.model_validate({"catalog": {"password": "hidden"}})
    dumped = json.dumps(config.model_dump(mode="json"))
    assert "hidden" not in dumped
    assert "**********" in dumped

@pytest.mark.parametrize("catalog", [
    {"base_url": "not a url"},
    {"max_retries": 0},
    {"page_size": 0},
    {"request_timeout_seconds": 1},
])
def test_invalid_catalog_settings(catalog):
    with pytest.raises(ValidationError):
        Config.model_validate({"catalog": catalog})
