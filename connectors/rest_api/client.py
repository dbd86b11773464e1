"""Ledger REST API Store client.

Talks to the ledger backend's JSON API:

    GET    {base}/{kind}              -> {"success": true, "data": [...]}
    POST   {base}/{kind}              -> {"success": true, "data": {...}}
    DELETE {base}/{kind}/{id}[?cascade=true]

Error responses carry ``{"success": false, "error": "..."}``. Requests are
sent once; the interchange engine records failures per record instead of
retrying.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import aiohttp

from connectors.store_base import (
    Store,
    StoreAuthenticationError,
    StoreError,
    StoreNotFoundError,
    StoreValidationError,
    register_store,
)
from core.models.records import EntityKind
from core.observability.logging import get_logger

logger = get_logger(__name__)


@register_store("rest")
class RestApiStore(Store):
    """aiohttp Store client for the ledger REST API.

    Usage:
        async with RestApiStore("http://localhost:3001/api") as store:
            products = await store.query_all(EntityKind.PRODUCTS)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001/api",
        timeout_seconds: float = 10.0,
        auth_token: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.auth_token = auth_token
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and unwrap the response envelope.

        Returns:
            The envelope's ``data`` member (None when absent)

        Raises:
            StoreAuthenticationError: 401/403
            StoreNotFoundError: 404
            StoreValidationError: 400
            StoreError: Other API errors, network errors, bad envelopes
        """
        session = await self._get_session()
        url = f"{self.base_url}/{path}"

        try:
            async with session.request(
                method, url, headers=self._headers(), params=params, json=data
            ) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise StoreError(f"Request to {url} timed out") from e
        except aiohttp.ClientError as e:
            raise StoreError(f"Request to {url} failed: {e}") from e

        try:
            payload = json.loads(text) if text else {}
        except ValueError:
            payload = {}
        message = text
        if isinstance(payload, dict):
            message = payload.get("error") or payload.get("message") or text

        if status in (401, 403):
            raise StoreAuthenticationError(f"Authentication failed: {message}", status, text)
        if status == 404:
            raise StoreNotFoundError(f"Not found: {message}", status, text)
        if status == 400:
            raise StoreValidationError(f"Validation error: {message}", status, text)
        if status >= 400:
            raise StoreError(f"API error {status}: {message}", status, text)

        if isinstance(payload, dict) and payload.get("success") is False:
            raise StoreError(f"API reported failure: {message}", status, text)

        return payload.get("data") if isinstance(payload, dict) else payload

    # =========================================================================
    # Store
    # =========================================================================

    async def query_all(self, kind: EntityKind) -> List[Dict[str, Any]]:
        kind = EntityKind(kind)
        data = await self._request("GET", kind.value)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreError(f"Expected a list of {kind.value}, got {type(data).__name__}")
        return data

    async def insert(self, kind: EntityKind, record: Dict[str, Any]) -> Dict[str, Any]:
        kind = EntityKind(kind)
        payload = {k: v for k, v in record.items() if k != "id"}
        data = await self._request("POST", kind.value, data=payload)
        if not isinstance(data, dict):
            raise StoreError(f"Create {kind.value} returned no record")
        return data

    async def delete(self, kind: EntityKind, record_id: Any, cascade: bool = False) -> None:
        kind = EntityKind(kind)
        params = {"cascade": "true"} if cascade else None
        await self._request("DELETE", f"{kind.value}/{record_id}", params=params)
        logger.debug("Deleted record", extra_fields={"record_kind": kind.value, "id": record_id})
