"""Connectors - Store and Blob Transport integrations.

This package contains the abstract Store and BlobTransport interfaces and
their concrete implementations:

- memory_store: in-process Store
- rest_api: ledger REST API Store
- drive: Drive v3 blob transport and credential session

Key Design Principle:
- Workflows depend ONLY on the Store / BlobTransport interfaces
- Adapters exchange plain record dictionaries; the canonical models stay in core

To add a new Store:
1. Implement the Store interface
2. Register it using the @register_store decorator
"""

from connectors.store_base import (
    Store,
    StoreError,
    StoreNotFoundError,
    StoreValidationError,
    StoreAuthenticationError,
    create_store,
    register_store,
    list_available_stores,
)
from connectors.blob_base import (
    BlobTransport,
    TransportError,
    CredentialExpiredError,
    BlobNotFoundError,
)

# Register the bundled stores
from connectors.memory_store import MemoryStore
from connectors.rest_api.client import RestApiStore

__all__ = [
    "Store",
    "StoreError",
    "StoreNotFoundError",
    "StoreValidationError",
    "StoreAuthenticationError",
    "create_store",
    "register_store",
    "list_available_stores",
    "BlobTransport",
    "TransportError",
    "CredentialExpiredError",
    "BlobNotFoundError",
    "MemoryStore",
    "RestApiStore",
]
