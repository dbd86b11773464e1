"""Drive session state.

Holds the user's Drive bearer credential (encrypted at rest) and the id of
the remote backup file between runs. An expired credential is detected
before a sync or restore starts; a credential the server rejects is
invalidated so the user is asked to reconnect.
"""

from datetime import datetime, timedelta
from typing import Optional

from connectors.drive.client import DriveClient
from core.config import Settings
from core.observability.logging import get_logger
from core.security.credential_store import (
    CredentialStore,
    FileCredentialStore,
    InMemoryCredentialStore,
    StoredCredential,
)
from core.security.encryption import CredentialEncryption, generate_encryption_key

logger = get_logger(__name__)

PROVIDER = "drive"


class DriveSession:
    """Credential and backup-file bookkeeping for one account."""

    def __init__(
        self,
        credential_store: CredentialStore,
        encryption: CredentialEncryption,
        account: str = "default",
    ):
        self.credential_store = credential_store
        self.encryption = encryption
        self.account = account

    async def _stored(self) -> Optional[StoredCredential]:
        return await self.credential_store.get(self.account, PROVIDER)

    async def connect(self, access_token: str, expires_in: Optional[int] = None) -> None:
        """Store a new bearer credential.

        Args:
            access_token: Bearer token from the provider's OAuth flow
            expires_in: Lifetime in seconds, if the provider reported one
        """
        previous = await self._stored()
        credential = StoredCredential(
            account=self.account,
            provider=PROVIDER,
            encrypted=self.encryption.encrypt({"access_token": access_token}, account=self.account),
            expires_at=datetime.utcnow() + timedelta(seconds=expires_in) if expires_in else None,
            metadata=dict(previous.metadata) if previous else {},
        )
        await self.credential_store.store(credential)
        logger.info("Drive account connected", extra_fields={"account": self.account})

    async def access_token(self) -> Optional[str]:
        """Current bearer token; None when absent, expired or unreadable."""
        stored = await self._stored()
        if stored is None or stored.is_expired():
            return None
        try:
            payload = self.encryption.decrypt(stored.encrypted)
        except ValueError as e:
            logger.warning("Stored Drive credential cannot be decrypted", extra_fields={"error": str(e)})
            return None
        return payload.get("access_token")

    async def is_connected(self) -> bool:
        return await self.access_token() is not None

    async def invalidate(self) -> None:
        """Forget the credential; the remembered backup file id is kept."""
        stored = await self._stored()
        if stored is None:
            return
        await self.credential_store.delete(self.account, PROVIDER)
        if stored.metadata:
            # Keep the backup file id for after reconnecting
            stored.encrypted = self.encryption.encrypt({}, account=self.account)
            stored.expires_at = datetime.utcnow() - timedelta(seconds=1)
            await self.credential_store.store(stored)
        logger.warning("Drive credential invalidated", extra_fields={"account": self.account})

    async def backup_file_id(self) -> Optional[str]:
        stored = await self._stored()
        return stored.metadata.get("backup_file_id") if stored else None

    async def remember_backup_file(self, file_id: str) -> None:
        stored = await self._stored()
        if stored is None:
            return
        stored.metadata["backup_file_id"] = file_id
        await self.credential_store.store(stored)

    def client(self, access_token: str, settings: Settings) -> DriveClient:
        return DriveClient(
            access_token,
            api_url=settings.drive_api_url,
            upload_url=settings.drive_upload_url,
            timeout_seconds=settings.drive_timeout,
        )


def session_from_settings(settings: Settings, account: str = "default") -> DriveSession:
    """Drive session on the configured credential directory.

    Without an encryption key credentials live in memory for the process only.
    """
    if not settings.credential_encryption_key:
        return DriveSession(
            InMemoryCredentialStore(),
            CredentialEncryption(generate_encryption_key()),
            account=account,
        )
    return DriveSession(
        FileCredentialStore(str(settings.credential_dir)),
        CredentialEncryption(settings.credential_encryption_key),
        account=account,
    )
