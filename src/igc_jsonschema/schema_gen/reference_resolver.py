"""
Second loading pass: turns ``$ref`` strings (and IGC vendor extensions) on
created assets into relationship updates between catalog assets.
"""
import asyncio
from typing import Any

import structlog
from pydantic import Field

from ..catalog_client.base_client import BaseCatalogClient
from ..catalog_client.exceptions import CatalogClientError
from ..config import LoadConfig
from ..models.assets import AssetBundle, AssetNode
from ..models.common import AssetKind, BasePydanticModel
from .asset_compiler import ROOT_PATH

logger = structlog.get_logger(__name__)

ASSIGNED_TERMS_EXTENSION = "x-ibm-igc-assigned-terms"
ORIGINATING_ASSET_EXTENSION = "x-ibm-igc-rid"


class AssetUpdate(BasePydanticModel):
    """A relationship patch for one created asset."""
    asset_rid: str
    asset_id: str = Field(..., description="Bundle-local id the asset was created from.")
    document_id: str | None = None
    identity: str
    patch: dict[str, Any]

class UnresolvedReference(BasePydanticModel):
    document_id: str | None = None
    identity: str
    ref: str | None = None
    reason: str

class ApplyResult(BasePydanticModel):
    applied: int = 0
    failed: dict[str, str] = Field(default_factory=dict, description="Asset RID -> error message.")


class ReferenceResolver:
    """
    Indexes the nodes of every created bundle by ``(document id, schema-tree
    path)`` and maps them to the catalog ids returned when the bundles were
    created. Must only be used once all bundles have been created.
    """

    def __init__(self, config: LoadConfig | None = None):
        self.config = config or LoadConfig()
        self._nodes: dict[tuple[str | None, str], AssetNode] = {}
        self._ordered: list[AssetNode] = []
        self.rids: dict[str, str] = {} # bundle-local id -> catalog id
        self.unresolved: list[UnresolvedReference] = []
        self.logger = logger.bind(service="ReferenceResolver")

    def add_bundle(self, bundle: AssetBundle, created_ids: dict[str, str] | None = None) -> None:
        for node in bundle.nodes:
            if node.kind in (AssetKind.NAMESPACE, AssetKind.PATH):
                continue
            self._nodes[(node.document_id, node.identity)] = node
            self._ordered.append(node)
        if created_ids:
            self.rids.update(created_ids)

    def target_for(self, document_id: str | None, ref: str) -> AssetNode | None:
        """The node a ``$ref`` points at: local ('#/...') within the document, else absolute (with optional fragment)."""
        base, _, fragment = ref.partition("#")
        path = f"{ROOT_PATH}{fragment}".rstrip("/") or ROOT_PATH
        target_document = base if base else document_id
        return self._nodes.get((target_document, path))

    def _unresolved(self, node: AssetNode, reason: str, ref: str | None = None) -> None:
        self.unresolved.append(UnresolvedReference(document_id=node.document_id, identity=node.identity, ref=ref, reason=reason))
        self.logger.warning("Unable to resolve relationship.", document_id=node.document_id,
                            path=node.identity, ref=ref, reason=reason)

    def _patch_for(self, node: AssetNode) -> dict[str, Any]:
        patch: dict[str, Any] = {}
        ref = node.ref
        if ref:
            target = self.target_for(node.document_id, ref)
            if target is None:
                self._unresolved(node, "no asset was compiled for the referenced schema", ref)
            elif target.asset_id not in self.rids:
                self._unresolved(node, f"referenced asset {target.asset_id} was not created in the catalog", ref)
            else:
                patch[self.config.reference_relationship] = {"items": [self.rids[target.asset_id]]}
        assigned_terms = node.extensions.get(ASSIGNED_TERMS_EXTENSION)
        if assigned_terms:
            terms = assigned_terms if isinstance(assigned_terms, list) else [assigned_terms]
            patch["assigned_to_terms"] = {"items": [str(rid) for rid in terms]}
        originating = node.extensions.get(ORIGINATING_ASSET_EXTENSION)
        if originating:
            patch[self.config.implements_relationship] = {"items": [str(originating)]}
        return patch

    def resolve(self) -> list[AssetUpdate]:
        """Builds one consolidated patch per created node that has something to relate."""
        self.unresolved = []
        updates = []
        for node in self._ordered:
            patch = self._patch_for(node)
            if not patch:
                continue
            rid = self.rids.get(node.asset_id)
            if rid is None:
                self._unresolved(node, f"asset {node.asset_id} was not created in the catalog", node.ref)
                continue
            updates.append(AssetUpdate(asset_rid=rid, asset_id=node.asset_id, document_id=node.document_id,
                                       identity=node.identity, patch=patch))
        self.logger.info("References resolved.", updates=len(updates), unresolved=len(self.unresolved))
        return updates

    async def apply(self, client: BaseCatalogClient, updates: list[AssetUpdate] | None = None,
                    max_concurrency: int = 1) -> ApplyResult:
        """Sends each patch through the catalog; a failed update is logged and counted, never raised."""
        updates = self.resolve() if updates is None else updates
        result = ApplyResult()
        semaphore = asyncio.Semaphore(max_concurrency)

        async def _apply_one(update: AssetUpdate) -> None:
            async with semaphore:
                try:
                    await client.update(update.asset_rid, update.patch)
                    result.applied += 1
                except CatalogClientError as e:
                    result.failed[update.asset_rid] = str(e)
                    self.logger.error("Relationship update failed.", asset_rid=update.asset_rid,
                                      document_id=update.document_id, path=update.identity, error=str(e))

        await asyncio.gather(*(_apply_one(update) for update in updates))
        return result
