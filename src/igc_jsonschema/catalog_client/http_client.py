"""
Catalog client implementation over HTTPS using aiohttp.
"""
import json
from typing import Any

import aiohttp
import structlog

from ..config import Config
from .base_client import BaseCatalogClient
from .exceptions import (
    CatalogAuthError,
    CatalogConnectionError,
    CatalogProtocolError,
    CatalogRequestError,
    CatalogTimeoutError,
)

logger = structlog.get_logger(__name__)

class HTTPCatalogClient(BaseCatalogClient):
    """
    Talks to the catalog's REST API with HTTP basic authentication; the catalog
    then keeps the session alive through cookies until ``close_session`` logs out.
    """

    def __init__(self, config: Config, aiohttp_session: aiohttp.ClientSession | None = None):
        super().__init__(config)
        self._session = aiohttp_session
        self._owns_session = aiohttp_session is None
        self.logger = logger.bind(catalog=str(self.catalog_config.base_url), user=self.catalog_config.username, transport="http")

    def _auth(self) -> aiohttp.BasicAuth:
        password = self.catalog_config.password
        if password is None:
            raise CatalogAuthError(f"No password available for user '{self.catalog_config.username}'.")
        return aiohttp.BasicAuth(self.catalog_config.username, password.get_secret_value())

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            cfg = self.catalog_config
            auth = self._auth()
            ssl_context = True
            if not cfg.ssl_verify:
                self.logger.warning("SSL verification is DISABLED for the catalog client.")
                ssl_context = False
            connector = aiohttp.TCPConnector(
                limit=cfg.connection_pool_total_limit,
                limit_per_host=cfg.connection_pool_per_host_limit,
                ssl=ssl_context,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                auth=auth,
                cookie_jar=aiohttp.CookieJar(unsafe=True), # catalog hosts are often bare IP addresses
                headers={"User-Agent": f"{self.config.app_name}/{self.config.app_version}"},
            )
            self._owns_session = True
        return self._session

    async def open_session(self) -> None:
        """Verifies the credentials with a light request so failures surface before any work starts."""
        self.logger.debug("Opening catalog session.")
        await self._get_session()
        await self.send_request("GET", "types")
        self.logger.info("Catalog session opened.")

    async def close_session(self) -> None:
        if self._session is None or self._session.closed:
            self._session = None
            return
        try:
            await self._send_request_raw("GET", self.url_for("logout"))
        except (CatalogConnectionError, CatalogProtocolError, CatalogRequestError, CatalogAuthError) as e:
            self.logger.warning("Unable to log out of the catalog.", error=str(e))
        if self._owns_session:
            await self._session.close()
        self._session = None
        self.logger.info("Catalog session closed.")

    async def _send_request_raw(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        data: str | None = None,
        content_type: str | None = None,
    ) -> Any:
        session = await self._get_session()
        cfg = self.catalog_config
        timeout = aiohttp.ClientTimeout(total=cfg.request_timeout_seconds, connect=cfg.connect_timeout_seconds)
        headers = {"Accept": "application/json"}
        if content_type:
            headers["Content-Type"] = content_type

        self.logger.debug("Sending HTTP request", method=method, url=url)
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json_body,
                data=data.encode("utf-8") if data is not None else None,
                headers=headers,
                timeout=timeout,
            ) as response:
                response_text = await response.text()
                self.logger.debug("Received HTTP response", status=response.status, content_length=len(response_text))

                if response.status == 401:
                    self.logger.warning("Authentication failed (401 Unauthorized)", server_response=response_text[:500])
                    raise CatalogAuthError(f"Authentication failed (401) for user '{cfg.username}'", status=401)
                if response.status == 403:
                    self.logger.warning("Forbidden (403)", server_response=response_text[:500])
                    raise CatalogAuthError(f"Forbidden (403) for {method} {url}. Check the user's permissions.", status=403)
                if 400 <= response.status < 500:
                    self.logger.error("Request rejected", status=response.status, reason=response.reason, response_body=response_text[:500])
                    raise CatalogRequestError(f"HTTP {response.status} {response.reason} for {method} {url}",
                                              status=response.status, body=response_text)
                if response.status >= 300:
                    self.logger.error("HTTP error status received", status=response.status, reason=response.reason, response_body=response_text[:500])
                    raise CatalogConnectionError(f"HTTP error {response.status} {response.reason} for {method} {url}")

                if not response_text.strip():
                    return None
                try:
                    return json.loads(response_text)
                except json.JSONDecodeError as e:
                    self.logger.error("Failed to decode JSON response", error=str(e), response_text=response_text[:500])
                    raise CatalogProtocolError(f"Failed to decode JSON response from {url}: {e}", status=response.status) from e

        except aiohttp.ClientConnectorError as e:
            self.logger.error("Client connector error", error_os_error=e.os_error, error_str=str(e))
            raise CatalogConnectionError(f"Connection failed to {url}: {e.os_error or str(e)}") from e
        except TimeoutError as e:
            self.logger.error("Request timed out", url=url, timeout_total=cfg.request_timeout_seconds)
            raise CatalogTimeoutError(f"Request to {url} timed out after {cfg.request_timeout_seconds}s.") from e
        except aiohttp.ClientError as e:
            self.logger.error("AIOHTTP client error", error_type=type(e).__name__, error_message=str(e))
            raise CatalogConnectionError(f"HTTP client error for {url}: {e}") from e
