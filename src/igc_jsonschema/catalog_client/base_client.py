"""
Base catalog client abstract class.
"""
import abc
import asyncio
import random
from collections.abc import Sequence
from typing import Any

import aiohttp
import structlog

from ..config import CatalogClientConfig, Config
from ..utils.resilience import CircuitBreaker, CircuitBreakerOpenError
from .exceptions import (
    CatalogAuthError,
    CatalogClientError,
    CatalogConnectionError,
    CatalogProtocolError,
    CatalogRequestError,
)


def build_search_query(
    types: Sequence[str],
    properties: Sequence[str] | None = None,
    conditions: Sequence[dict[str, Any]] | None = None,
    operator: str = "and",
    page_size: int = 100,
) -> dict[str, Any]:
    """Builds the body of a catalog search request."""
    query: dict[str, Any] = {
        "types": list(types),
        "properties": list(properties or []),
        "pageSize": page_size,
    }
    if conditions:
        query["where"] = {"conditions": list(conditions), "operator": operator}
    return query

def condition(prop: str, value: Any, operator: str = "=") -> dict[str, Any]:
    return {"property": prop, "operator": operator, "value": value}


class BaseCatalogClient(abc.ABC):
    """
    Abstract base class for a client of the catalog's REST API.

    Subclasses provide the transport (``_send_request_raw``) and session
    handling; this class adds retries with exponential backoff for idempotent
    calls, an optional circuit breaker, and the high-level catalog operations.
    """

    def __init__(self, config: Config):
        self.config = config
        self.catalog_config: CatalogClientConfig = config.catalog
        self.api_root = str(self.catalog_config.base_url).rstrip("/") + "/" + self.catalog_config.api_prefix.strip("/")

        self.logger = structlog.get_logger(__name__).bind(catalog=str(self.catalog_config.base_url), user=self.catalog_config.username)

        if self.catalog_config.enable_circuit_breaker:
            self._circuit_breaker: CircuitBreaker | None = CircuitBreaker(
                failure_threshold=self.catalog_config.cb_failure_threshold,
                recovery_timeout_seconds=self.catalog_config.cb_recovery_timeout_seconds,
                half_open_max_successes=self.catalog_config.cb_half_open_max_successes,
                name=f"CB-{self.catalog_config.base_url.host}",
                ignored_exceptions=(CatalogRequestError, CatalogAuthError),
            )
        else:
            self._circuit_breaker = None

    def url_for(self, path: str) -> str:
        """Absolute URL for an API path; absolute URLs (e.g. paging links) are returned unchanged."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.api_root}/{path.lstrip('/')}"

    @abc.abstractmethod
    async def open_session(self) -> None:
        """Authenticates against the catalog. Raises CatalogAuthError / CatalogConnectionError."""
        pass

    @abc.abstractmethod
    async def close_session(self) -> None:
        """Logs out and releases transport resources. Never raises for logout failures."""
        pass

    @abc.abstractmethod
    async def _send_request_raw(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        data: str | None = None,
        content_type: str | None = None,
    ) -> Any:
        """
        Sends one HTTP request and returns the decoded JSON body (None when empty).
        Must map failures onto the catalog exception taxonomy, raising
        CatalogTimeoutError on transport timeouts.
        """
        pass

    async def send_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        data: str | None = None,
        content_type: str | None = None,
        is_idempotent: bool = True,
    ) -> Any:
        """
        Sends a request, retrying connection failures of idempotent requests.
        Requests the catalog rejected (auth, 4xx, undecodable responses) are never retried.
        """
        url = self.url_for(path)
        max_attempts = self.catalog_config.max_retries
        initial_backoff = self.catalog_config.initial_backoff_seconds
        max_backoff = self.catalog_config.max_backoff_seconds

        for attempt in range(max_attempts):
            log_attempt = self.logger.bind(attempt=attempt + 1, max_attempts=max_attempts, method=method, url=url)
            try:
                log_attempt.debug("Attempting to send request.")
                if self._circuit_breaker:
                    return await self._circuit_breaker.call(self._send_request_raw, method, url, params, json_body, data, content_type)
                return await self._send_request_raw(method, url, params, json_body, data, content_type)

            except CircuitBreakerOpenError as cboe:
                log_attempt.warning("Catalog circuit open; request not sent.", remaining_time=cboe.remaining_time)
                raise CatalogConnectionError(f"Circuit breaker for the catalog is open. Try again in {cboe.remaining_time:.1f}s.") from cboe

            except (CatalogConnectionError, aiohttp.ClientError) as e:
                if is_idempotent and attempt < max_attempts - 1:
                    # Exponential backoff with full jitter
                    capped_backoff = min(initial_backoff * (2 ** attempt), max_backoff)
                    backoff_time = random.uniform(0, capped_backoff)
                    log_attempt.warning(f"Connection error encountered. Retrying in {backoff_time:.2f}s...", error_message=str(e), error_type=type(e).__name__)
                    await asyncio.sleep(backoff_time)
                    continue
                log_attempt.error("Request failed.", last_error=str(e), is_idempotent=is_idempotent)
                if isinstance(e, CatalogConnectionError):
                    raise
                raise CatalogConnectionError(f"Failed request {method} {url} after {attempt + 1} attempts: {e}") from e

            except CatalogClientError:
                log_attempt.debug("Non-retryable catalog error encountered.")
                raise

        raise CatalogClientError(f"Request {method} {url} failed after exhausting retries.")

    async def search(
        self,
        types: Sequence[str],
        properties: Sequence[str] | None = None,
        conditions: Sequence[dict[str, Any]] | None = None,
        operator: str = "and",
        page_size: int | None = None,
    ) -> dict[str, Any]:
        """Runs a search and returns its first page: ``{"items": [...], "paging": {...}}``."""
        query = build_search_query(types, properties, conditions, operator, page_size or self.catalog_config.page_size)
        page = await self.send_request("POST", "search", json_body=query)
        if not isinstance(page, dict) or "items" not in page:
            raise CatalogProtocolError(f"Unexpected search response for types {list(types)}")
        return page

    async def get_all_pages(self, items: list[dict[str, Any]], paging: dict[str, Any] | None) -> list[dict[str, Any]]:
        """Follows ``paging.next`` links, returning the given items plus every following page's items."""
        results = list(items)
        visited: set[str] = set()
        next_url = (paging or {}).get("next")
        while next_url and next_url not in visited:
            visited.add(next_url)
            page = await self.send_request("GET", next_url)
            if not isinstance(page, dict):
                raise CatalogProtocolError(f"Unexpected page response from {next_url}")
            results.extend(page.get("items", []))
            next_url = (page.get("paging") or {}).get("next")
        return results

    async def search_all(
        self,
        types: Sequence[str],
        properties: Sequence[str] | None = None,
        conditions: Sequence[dict[str, Any]] | None = None,
        operator: str = "and",
    ) -> list[dict[str, Any]]:
        """Runs a search and collects the items of every page."""
        first = await self.search(types, properties, conditions, operator)
        results = await self.get_all_pages(first.get("items", []), first.get("paging"))
        self.logger.debug("Search completed.", types=list(types), results=len(results))
        return results

    async def get_asset_properties(self, rid: str, properties: Sequence[str], related_page_size: int | None = None) -> dict[str, Any]:
        """Point lookup of an asset's properties; relationship collections are capped at ``related_page_size``."""
        params = {
            "properties": ",".join(properties),
            "limit": related_page_size or self.catalog_config.related_page_size,
        }
        return await self.send_request("GET", f"assets/{rid}", params=params)

    async def get_collection_assets(self, name: str) -> list[dict[str, Any]] | None:
        """Every asset (``_id``, ``_name``, ``_type``) in the named collection; None if there is no such collection."""
        found = await self.search_all(["collection"], ["name", "assets"], [condition("name", name)])
        if not found:
            return None
        if len(found) > 1:
            self.logger.warning("Several collections share a name; using the first.", collection=name, matches=len(found))
        assets = found[0].get("assets") or {}
        return await self.get_all_pages(assets.get("items", []), assets.get("paging"))

    async def update(self, rid: str, patch: dict[str, Any]) -> Any:
        """Applies a partial update (attributes and/or relationships) to an asset."""
        self.logger.debug("Updating asset.", rid=rid, attributes=sorted(patch))
        return await self.send_request("PUT", f"assets/{rid}", json_body=patch)

    async def create_bundle_assets(self, bundle_xml: str) -> dict[str, str]:
        """Imports a flow-doc XML asset bundle; returns bundle-local id -> catalog id."""
        created = await self.send_request("POST", "bundles/assets", data=bundle_xml,
                                          content_type="application/xml", is_idempotent=False)
        if not isinstance(created, dict):
            raise CatalogProtocolError("Bundle creation did not return a map of created asset ids")
        return {str(k): str(v) for k, v in created.items()}

    async def __aenter__(self):
        await self.open_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_session()
