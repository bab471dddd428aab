"""Async HTTP client for the catalog API.

Error responses are raised as the same CatalogError subclasses the server
uses, rebuilt from the structured ``code`` field of the body.
"""

import logging
from typing import Any

import httpx

from mvdb.client.config import ProjectConfig, ProjectConfigStore
from mvdb.core.errors import ServerError, error_from_response
from mvdb.services.translation_service import TranslationResult

logger = logging.getLogger(__name__)


class CatalogClient:
    """Thin wrapper over the /api/v1 endpoints.

    The underlying httpx client is rebuilt on the next request whenever the
    config store reports a change (project switch, new key).
    """

    def __init__(
        self,
        config_store: ProjectConfigStore,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.config_store = config_store
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._stale: list[httpx.AsyncClient] = []
        self._unsubscribe = config_store.subscribe(self._on_config_change)

    def _on_config_change(self, config: ProjectConfig) -> None:
        if self._client is not None:
            self._stale.append(self._client)
            self._client = None
        logger.info(f"Catalog client rebinding to {config.function_url}")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        while self._stale:
            await self._stale.pop().aclose()

        if self._client is None or self._client.is_closed:
            config = self.config_store.get()
            headers = {"Content-Type": "application/json"}
            if config.anon_key:
                headers["Authorization"] = f"Bearer {config.anon_key}"
            self._client = httpx.AsyncClient(
                base_url=config.function_url.rstrip("/"),
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client and stop listening for config changes."""
        self._unsubscribe()
        while self._stale:
            await self._stale.pop().aclose()
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Any = None,
        params: dict | None = None,
    ) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(method, path, json=json_data, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Catalog API request failed: {method} {path} - {e}")
            raise ServerError(f"Request to catalog API failed: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise error_from_response(response.status_code, body)

        return response.json()

    # ==================== Master Data ====================

    async def list_master(self, entity_type: str) -> list[dict]:
        return (await self._request("GET", f"/master/{entity_type}"))["data"]

    async def search_master(self, entity_type: str, query: str) -> list[dict]:
        body = await self._request("GET", f"/master/{entity_type}/search", params={"q": query})
        return body["data"]

    async def get_master(self, entity_type: str, item_id: str) -> dict:
        return (await self._request("GET", f"/master/{entity_type}/{item_id}"))["data"]

    async def create_master(self, entity_type: str, data: dict) -> dict:
        """Create a record. Raises ConflictError (with .existing) on a duplicate name."""
        return (await self._request("POST", f"/master/{entity_type}", json_data=data))["data"]

    async def update_master(
        self,
        entity_type: str,
        item_id: str,
        changes: dict,
        sync: bool = False,
    ) -> dict:
        """PATCH only the given fields. With sync=True the response carries rename-sync counts."""
        params = {"sync": "true"} if sync else None
        body = await self._request(
            "PATCH", f"/master/{entity_type}/{item_id}", json_data=changes, params=params
        )
        return body if sync else body["data"]

    async def delete_master(self, entity_type: str, item_id: str) -> dict:
        return await self._request("DELETE", f"/master/{entity_type}/{item_id}")

    # ==================== Photobooks ====================

    async def list_photobooks(self) -> list[dict]:
        return await self._request("GET", "/photobooks")

    async def search_photobooks(self, query: str) -> list[dict]:
        return await self._request("GET", "/photobooks/search", params={"q": query})

    async def get_photobook(self, photobook_id: str) -> dict:
        return await self._request("GET", f"/photobooks/{photobook_id}")

    async def create_photobook(self, data: dict) -> dict:
        return await self._request("POST", "/photobooks", json_data=data)

    async def update_photobook(self, photobook_id: str, changes: dict) -> dict:
        return await self._request("PUT", f"/photobooks/{photobook_id}", json_data=changes)

    async def delete_photobook(self, photobook_id: str) -> dict:
        return await self._request("DELETE", f"/photobooks/{photobook_id}")

    async def link_photobook(self, photobook_id: str, target_type: str, target_id: str) -> dict:
        return await self._request(
            "POST",
            f"/photobooks/{photobook_id}/link",
            json_data={"targetType": target_type, "targetId": target_id},
        )

    async def unlink_photobook(self, photobook_id: str, target_type: str) -> dict:
        return await self._request(
            "DELETE", f"/photobooks/{photobook_id}/unlink", params={"targetType": target_type}
        )

    async def photobooks_by_target(self, target_type: str, target_id: str) -> list[dict]:
        return await self._request("GET", f"/photobooks/by-{target_type}/{target_id}")

    async def photobooks_by_actress(self, name: str) -> list[dict]:
        return await self._request("GET", f"/photobooks/by-actress/{name}")

    # ==================== Translation ====================

    async def translate(
        self,
        text: str,
        context: str = "general",
        movie_context: dict | None = None,
    ) -> TranslationResult:
        payload: dict[str, Any] = {"text": text, "context": context}
        if movie_context:
            payload["movieContext"] = movie_context
        body = await self._request("POST", "/translate", json_data=payload)
        return TranslationResult(body["translatedText"], body["translationMethod"])
