"""Security module - credential encryption and storage."""

from core.security.encryption import (
    CredentialEncryption,
    EncryptedCredential,
    generate_encryption_key,
)
from core.security.credential_store import (
    CredentialStore,
    StoredCredential,
    InMemoryCredentialStore,
    FileCredentialStore,
)

__all__ = [
    "CredentialEncryption",
    "EncryptedCredential",
    "generate_encryption_key",
    "CredentialStore",
    "StoredCredential",
    "InMemoryCredentialStore",
    "FileCredentialStore",
]
