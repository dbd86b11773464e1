"""Encrypted credential storage backends.

- InMemoryCredentialStore: For development/testing
- FileCredentialStore: One JSON file per account/provider pair
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from core.observability.logging import get_logger
from core.security.encryption import EncryptedCredential

logger = get_logger(__name__)


@dataclass
class StoredCredential:
    """Credential record with metadata.

    ``metadata`` holds non-secret session state such as the id of the
    remote backup file.
    """
    account: str
    provider: str  # e.g. "drive"
    encrypted: EncryptedCredential
    expires_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """Expired, or expiring within ``buffer_seconds``. No expiry means valid."""
        if not self.expires_at:
            return False
        return datetime.utcnow() >= (self.expires_at - timedelta(seconds=buffer_seconds))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "provider": self.provider,
            "encrypted": self.encrypted.to_dict(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredCredential":
        return cls(
            account=data["account"],
            provider=data["provider"],
            encrypted=EncryptedCredential.from_dict(data["encrypted"]),
            expires_at=datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None,
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.utcnow(),
            metadata=data.get("metadata") or {},
        )


class CredentialStore(ABC):
    """Abstract base class for credential storage."""

    @abstractmethod
    async def store(self, credential: StoredCredential) -> None:
        pass

    @abstractmethod
    async def get(self, account: str, provider: str) -> Optional[StoredCredential]:
        pass

    @abstractmethod
    async def delete(self, account: str, provider: str) -> bool:
        pass


class InMemoryCredentialStore(CredentialStore):
    """In-memory credential storage.

    WARNING: Credentials are lost on restart. Use only for development.
    """

    def __init__(self):
        self._credentials: Dict[str, StoredCredential] = {}
        self._lock = threading.Lock()

    def _key(self, account: str, provider: str) -> str:
        return f"{provider}:{account}"

    async def store(self, credential: StoredCredential) -> None:
        with self._lock:
            self._credentials[self._key(credential.account, credential.provider)] = credential

    async def get(self, account: str, provider: str) -> Optional[StoredCredential]:
        with self._lock:
            return self._credentials.get(self._key(account, provider))

    async def delete(self, account: str, provider: str) -> bool:
        with self._lock:
            return self._credentials.pop(self._key(account, provider), None) is not None


class FileCredentialStore(CredentialStore):
    """File-based credential storage.

    Directory structure:
        {base_path}/
            drive/
                {account}.json
    """

    def __init__(self, base_path: str = ".credentials"):
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        try:
            os.chmod(self._base_path, 0o700)
        except OSError:
            pass  # Windows

    def _path(self, account: str, provider: str) -> Path:
        provider_dir = self._base_path / provider
        provider_dir.mkdir(parents=True, exist_ok=True)
        safe_account = "".join(c if c.isalnum() or c in "-_" else "_" for c in account)
        return provider_dir / f"{safe_account}.json"

    async def store(self, credential: StoredCredential) -> None:
        path = self._path(credential.account, credential.provider)
        with self._lock:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(credential.to_dict(), f, indent=2)
            try:
                os.chmod(path, 0o600)
            except OSError:
                pass

    async def get(self, account: str, provider: str) -> Optional[StoredCredential]:
        path = self._path(account, provider)
        if not path.exists():
            return None

        with self._lock:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return StoredCredential.from_dict(json.load(f))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning("Unreadable credential file", extra_fields={"path": str(path), "error": str(e)})
                return None

    async def delete(self, account: str, provider: str) -> bool:
        path = self._path(account, provider)
        with self._lock:
            if path.exists():
                path.unlink()
                return True
            return False
