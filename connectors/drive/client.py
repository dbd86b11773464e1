"""Drive HTTP Client.

Blob transport over the Google Drive v3 REST API (or anything speaking the
same subset): multipart create, media update, media download and search by
name. Authentication is a bearer token supplied by ``DriveSession``.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from connectors.blob_base import (
    BlobNotFoundError,
    BlobTransport,
    CredentialExpiredError,
    TransportError,
)
from core.observability.logging import get_logger
from tabular.codec import XLSX_CONTENT_TYPE

logger = get_logger(__name__)


class DriveClient(BlobTransport):
    """Drive v3 blob transport.

    Usage:
        async with DriveClient(token, api_url, upload_url) as drive:
            file_id = await drive.upload_new(data, {"name": "backup.xlsx"})
            data = await drive.download(file_id)
    """

    def __init__(
        self,
        access_token: str,
        api_url: str = "https://www.googleapis.com/drive/v3",
        upload_url: str = "https://www.googleapis.com/upload/drive/v3",
        timeout_seconds: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
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

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        if extra:
            headers.update(extra)
        return headers

    async def _request(self, method: str, url: str, **kwargs) -> bytes:
        """Send a request and return the raw body.

        Raises:
            CredentialExpiredError: 401
            BlobNotFoundError: 404
            TransportError: Any other failure
        """
        session = await self._get_session()
        headers = self._headers(kwargs.pop("headers", None))
        try:
            async with session.request(method, url, headers=headers, **kwargs) as response:
                body = await response.read()
                if response.status < 400:
                    return body

                text = body.decode("utf-8", errors="replace")
                if response.status == 401:
                    raise CredentialExpiredError("Drive credential expired or revoked", 401, text)
                if response.status == 404:
                    raise BlobNotFoundError(f"Drive file not found: {url}", 404, text)
                raise TransportError(f"Drive API error {response.status}: {text}", response.status, text)
        except asyncio.TimeoutError as e:
            raise TransportError(f"Drive request timed out: {url}") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Drive request failed: {e}") from e

    async def _request_json(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        body = await self._request(method, url, **kwargs)
        return json.loads(body) if body else {}

    # =========================================================================
    # BlobTransport
    # =========================================================================

    async def upload_new(self, data: bytes, metadata: Dict[str, Any]) -> str:
        meta = {"mimeType": XLSX_CONTENT_TYPE, **metadata}

        with aiohttp.MultipartWriter("related") as writer:
            writer.append_json(meta)
            writer.append(data, {"Content-Type": meta["mimeType"]})

        result = await self._request_json(
            "POST",
            f"{self.upload_url}/files",
            params={"uploadType": "multipart", "fields": "id,name"},
            data=writer,
        )
        file_id = result.get("id")
        if not file_id:
            raise TransportError(f"Drive upload returned no file id: {result}")

        logger.info("Uploaded new backup file", extra_fields={"file_id": file_id, "size_bytes": len(data)})
        return file_id

    async def upload_update(self, file_id: str, data: bytes) -> None:
        await self._request(
            "PATCH",
            f"{self.upload_url}/files/{file_id}",
            params={"uploadType": "media"},
            data=data,
            headers={"Content-Type": XLSX_CONTENT_TYPE},
        )
        logger.info("Updated backup file", extra_fields={"file_id": file_id, "size_bytes": len(data)})

    async def download(self, file_id: str) -> bytes:
        data = await self._request("GET", f"{self.api_url}/files/{file_id}", params={"alt": "media"})
        logger.info("Downloaded backup file", extra_fields={"file_id": file_id, "size_bytes": len(data)})
        return data

    async def find_by_name(self, name: str) -> Optional[str]:
        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        result = await self._request_json(
            "GET",
            f"{self.api_url}/files",
            params={
                "q": f"name = '{escaped}' and trashed = false",
                "fields": "files(id,name,modifiedTime)",
                "orderBy": "modifiedTime desc",
            },
        )
        files = result.get("files") or []
        return files[0]["id"] if files else None
