"""
Storage for generated schema documents and their sidecars.

Documents are written once by the term compiler and later re-read and rewritten
by the relationship linker, so stores always hand back a fresh copy on ``get``:
callers mutate their copy and ``put`` it back.
"""
import abc
import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from ..models.schema import SchemaDocument, Sidecar
from .exceptions import DocumentNotFoundError, DocumentParseError
from .naming import local_name

logger = structlog.get_logger(__name__)

SCHEMA_SUFFIX = ".json"
SIDECAR_SUFFIX = ".igc"


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

def _parse_document(document_id: str, text: str) -> SchemaDocument:
    try:
        return SchemaDocument.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as e:
        raise DocumentParseError(document_id, str(e)) from e

def _parse_sidecar(document_id: str, text: str) -> Sidecar:
    try:
        return Sidecar.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as e:
        raise DocumentParseError(document_id, str(e)) from e


def write_text_atomic(path: Path, text: str, file_mode: int = 0o644) -> None:
    """Writes through a temporary file in the same directory that then replaces ``path``."""
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, file_mode)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

def load_sidecar(path: Path | str) -> Sidecar:
    """Reads a sidecar file directly, e.g. one found next to a schema being loaded."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise DocumentNotFoundError(path.name, str(path)) from e
    return _parse_sidecar(path.name, text)


class DocumentStore(abc.ABC):
    """Key-value storage of schema documents (and sidecars) keyed by schema id."""

    @abc.abstractmethod
    def get(self, document_id: str) -> SchemaDocument:
        """Returns a fresh copy of the stored document. Raises DocumentNotFoundError / DocumentParseError."""
        pass

    @abc.abstractmethod
    def put(self, document: SchemaDocument) -> None:
        """Stores (replacing) the document under its own id."""
        pass

    @abc.abstractmethod
    def exists(self, document_id: str) -> bool:
        pass

    @abc.abstractmethod
    def get_sidecar(self, document_id: str) -> Sidecar:
        pass

    @abc.abstractmethod
    def put_sidecar(self, sidecar: Sidecar) -> None:
        pass

    @abc.abstractmethod
    def ids(self) -> list[str]:
        """Ids of every document written through this store."""
        pass

    @staticmethod
    def _require_id(document: SchemaDocument) -> str:
        if not document.id:
            raise ValueError("Cannot store a schema document without an id.")
        return document.id


class InMemoryDocumentStore(DocumentStore):
    """Keeps serialised documents in memory; useful for tests and dry runs."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}
        self._sidecars: dict[str, str] = {}

    def get(self, document_id: str) -> SchemaDocument:
        if document_id not in self._documents:
            raise DocumentNotFoundError(document_id)
        return _parse_document(document_id, self._documents[document_id])

    def put(self, document: SchemaDocument) -> None:
        self._documents[self._require_id(document)] = _dumps(document.to_json_dict())

    def exists(self, document_id: str) -> bool:
        return document_id in self._documents

    def get_sidecar(self, document_id: str) -> Sidecar:
        if document_id not in self._sidecars:
            raise DocumentNotFoundError(document_id)
        return _parse_sidecar(document_id, self._sidecars[document_id])

    def put_sidecar(self, sidecar: Sidecar) -> None:
        self._sidecars[sidecar.schema_id] = _dumps(sidecar.to_json_dict())

    def ids(self) -> list[str]:
        return list(self._documents)

    def raw(self, document_id: str) -> dict[str, Any]:
        """The stored JSON payload, exactly as it would be written to disk."""
        return json.loads(self._documents[document_id])


class FileDocumentStore(DocumentStore):
    """
    Stores each document as ``<directory>/<name>.json`` and its sidecar as
    ``<name>.json.igc``, where ``<name>`` is the last segment of the schema id.

    When two different ids share a last segment within one run, the later one is
    written to ``<name>-<hash>.json`` so neither document is lost. Every write
    goes to a temporary file in the same directory which then replaces the
    target, so an interrupted run never leaves a truncated document behind.
    """

    def __init__(self, directory: Path | str, file_mode: int = 0o644):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.file_mode = file_mode
        self._paths: dict[str, Path] = {} # document id -> file
        self._owners: dict[str, str] = {} # file name -> document id
        self.logger = logger.bind(store="file", directory=str(self.directory))

    def path_for(self, document_id: str) -> Path:
        """File a document id maps to (assigning one on first use)."""
        if document_id in self._paths:
            return self._paths[document_id]
        file_name = local_name(document_id) + SCHEMA_SUFFIX
        owner = self._owners.get(file_name)
        if owner is not None and owner != document_id:
            digest = hashlib.sha1(document_id.encode("utf-8")).hexdigest()[:8]
            file_name = f"{local_name(document_id)}-{digest}{SCHEMA_SUFFIX}"
            self.logger.warning("File name already used by another schema; writing to a disambiguated file.",
                                document_id=document_id, clashes_with=owner, file_name=file_name)
        self._owners[file_name] = document_id
        path = self.directory / file_name
        self._paths[document_id] = path
        return path

    def sidecar_path_for(self, document_id: str) -> Path:
        path = self.path_for(document_id)
        return path.with_name(path.name + SIDECAR_SUFFIX)

    def _read(self, document_id: str, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise DocumentNotFoundError(document_id, str(path)) from e

    def get(self, document_id: str) -> SchemaDocument:
        return _parse_document(document_id, self._read(document_id, self.path_for(document_id)))

    def put(self, document: SchemaDocument) -> None:
        path = self.path_for(self._require_id(document))
        write_text_atomic(path, _dumps(document.to_json_dict()), self.file_mode)
        self.logger.debug("Schema document written.", document_id=document.id, file=path.name)

    def exists(self, document_id: str) -> bool:
        return self.path_for(document_id).is_file()

    def get_sidecar(self, document_id: str) -> Sidecar:
        return _parse_sidecar(document_id, self._read(document_id, self.sidecar_path_for(document_id)))

    def put_sidecar(self, sidecar: Sidecar) -> None:
        path = self.sidecar_path_for(sidecar.schema_id)
        write_text_atomic(path, _dumps(sidecar.to_json_dict()), self.file_mode)

    def ids(self) -> list[str]:
        return list(self._paths)
