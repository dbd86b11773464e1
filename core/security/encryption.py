"""Credential encryption using AES-GCM.

Transport credentials (bearer tokens for the remote backup service) are
encrypted at rest with AES-256-GCM. The account name is bound to the
ciphertext as additional authenticated data, so a credential file copied to
another account will not decrypt.
"""

import base64
import json
import os
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


def generate_encryption_key() -> str:
    """Generate a new 256-bit encryption key.

    Returns:
        Base64-encoded 32-byte key suitable for AES-256
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("utf-8")


@dataclass
class EncryptedCredential:
    """Encrypted credential payload with metadata."""
    ciphertext: str  # Base64, GCM tag appended
    nonce: str       # Base64 96-bit nonce
    created_at: str  # ISO timestamp
    account: str     # Bound as additional authenticated data
    key_version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ciphertext": self.ciphertext,
            "nonce": self.nonce,
            "created_at": self.created_at,
            "account": self.account,
            "key_version": self.key_version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedCredential":
        return cls(
            ciphertext=data["ciphertext"],
            nonce=data["nonce"],
            created_at=data["created_at"],
            account=data["account"],
            key_version=data.get("key_version", 1),
        )


class CredentialEncryption:
    """AES-256-GCM encryption for transport credentials.

    Usage:
        enc = CredentialEncryption(generate_encryption_key())
        encrypted = enc.encrypt({"access_token": "..."}, account="default")
        payload = enc.decrypt(encrypted)
    """

    def __init__(self, encryption_key: str):
        """Initialize with base64-encoded encryption key.

        Raises:
            ValueError: If the key is not base64 or not 32 bytes
        """
        try:
            key = base64.b64decode(encryption_key, validate=True)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid encryption key: {e}")
        if len(key) != 32:
            raise ValueError("Invalid encryption key: key must be 32 bytes (256 bits)")

        self._aesgcm = AESGCM(key)

    def encrypt(self, payload: Dict[str, Any], account: str, key_version: int = 1) -> EncryptedCredential:
        plaintext = json.dumps(payload).encode("utf-8")
        nonce = os.urandom(12)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext, account.encode("utf-8"))

        return EncryptedCredential(
            ciphertext=base64.b64encode(ciphertext).decode("utf-8"),
            nonce=base64.b64encode(nonce).decode("utf-8"),
            created_at=datetime.utcnow().isoformat(),
            account=account,
            key_version=key_version,
        )

    def decrypt(self, encrypted: EncryptedCredential) -> Dict[str, Any]:
        """Decrypt a credential payload.

        Raises:
            ValueError: If decryption fails (wrong key, tampered data, wrong account)
        """
        try:
            ciphertext = base64.b64decode(encrypted.ciphertext)
            nonce = base64.b64decode(encrypted.nonce)
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, encrypted.account.encode("utf-8"))
        except (InvalidTag, ValueError, TypeError) as e:
            raise ValueError(f"Credential decryption failed: {e!r}")
        return json.loads(plaintext.decode("utf-8"))
