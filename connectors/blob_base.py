"""Abstract Blob Transport Interface.

A blob transport moves whole workbook files to and from a remote file
service on behalf of the user. It needs a bearer credential; an expired or
revoked credential surfaces as ``CredentialExpiredError`` so callers can
ask the user to reconnect.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class TransportError(Exception):
    """Base exception for blob transport failures."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class CredentialExpiredError(TransportError):
    """Credential missing, expired or revoked (401)."""
    pass


class BlobNotFoundError(TransportError):
    """Remote file does not exist (404)."""
    pass


class BlobTransport(ABC):
    """Abstract base class for remote file transports."""

    @abstractmethod
    async def upload_new(self, data: bytes, metadata: Dict[str, Any]) -> str:
        """Create a remote file and return its id.

        Args:
            data: File content
            metadata: At least ``name``; ``mimeType`` optional
        """
        pass

    @abstractmethod
    async def upload_update(self, file_id: str, data: bytes) -> None:
        """Replace the content of an existing remote file."""
        pass

    @abstractmethod
    async def download(self, file_id: str) -> bytes:
        """Fetch the content of a remote file."""
        pass

    async def find_by_name(self, name: str) -> Optional[str]:
        """Id of a remote file with this name, if the transport can search."""
        return None

    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
