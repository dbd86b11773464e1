"""Abstract Store Interface.

The Store is the live transactional ledger the interchange engine reads from
on export and writes to on import. It is deliberately small: list a table,
create one record, delete one record. The Store is the id authority; records
are submitted without ids and come back with them.

Implementations:
- connectors/memory_store.py (in-process, enforces foreign keys)
- connectors/rest_api/client.py (ledger REST API over aiohttp)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from core.models.records import EntityKind


# =============================================================================
# Exceptions
# =============================================================================

class StoreError(Exception):
    """Base exception for Store failures."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class StoreNotFoundError(StoreError):
    """Record or table not found (404)."""
    pass


class StoreValidationError(StoreError):
    """Record refused by the Store (400), including foreign key violations."""
    pass


class StoreAuthenticationError(StoreError):
    """Store refused our credentials (401/403)."""
    pass


# =============================================================================
# Interface
# =============================================================================

class Store(ABC):
    """Abstract base class for ledger stores.

    All methods take the table as an ``EntityKind`` (or its string value):
    products, customers, invoices, bills.
    """

    @abstractmethod
    async def query_all(self, kind: EntityKind) -> List[Dict[str, Any]]:
        """Return every record of a table."""
        pass

    @abstractmethod
    async def insert(self, kind: EntityKind, record: Dict[str, Any]) -> Dict[str, Any]:
        """Create a record and return it as persisted (with its id).

        Raises:
            StoreValidationError: Record refused
            StoreError: Any other Store failure
        """
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, record_id: Any, cascade: bool = False) -> None:
        """Delete a record by id.

        Args:
            kind: Table
            record_id: Store id of the record
            cascade: Also remove records referencing this one

        Raises:
            StoreNotFoundError: No such record
            StoreValidationError: Record still referenced and cascade not set
        """
        pass

    async def close(self) -> None:
        """Release connections; no-op by default."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


# =============================================================================
# Store Factory
# =============================================================================

_store_registry: Dict[str, type] = {}


def register_store(store_type: str):
    """Decorator to register a Store implementation."""
    def decorator(cls):
        _store_registry[store_type] = cls
        return cls
    return decorator


def create_store(store_type: str, **kwargs) -> Store:
    """Create a Store instance by registered type.

    Raises:
        ValueError: If store_type is not registered
    """
    store_type = store_type.lower()
    if store_type not in _store_registry:
        available = list(_store_registry.keys())
        raise ValueError(f"Unknown store type: {store_type}. Available: {available}")
    return _store_registry[store_type](**kwargs)


def list_available_stores() -> List[str]:
    return list(_store_registry.keys())
