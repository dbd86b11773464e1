"""In-memory Store.

Keeps the four ledger tables in process memory and applies the same
constraints as the ledger database:

- product SKUs are unique
- an invoice must reference an existing customer
- bills carry their number as ``invoice_number`` on create, stored as
  ``bill_number``
- customers and products cannot be deleted while referenced unless
  ``cascade`` is set

Used by the tests and by the CLI's ``--store memory`` mode.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from connectors.store_base import (
    Store,
    StoreNotFoundError,
    StoreValidationError,
    register_store,
)
from core.dates import format_iso
from core.models.records import EntityKind
from core.observability.logging import get_logger

logger = get_logger(__name__)


@register_store("memory")
class MemoryStore(Store):
    """Dictionary-backed Store with auto-increment ids per table."""

    def __init__(self, seed: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        """
        Args:
            seed: Records per table, inserted without validation
        """
        self._tables: Dict[EntityKind, Dict[int, Dict[str, Any]]] = {k: {} for k in EntityKind}
        self._next_id: Dict[EntityKind, int] = {k: 1 for k in EntityKind}
        self.calls: List[tuple] = []

        for kind, records in (seed or {}).items():
            for record in records:
                self._put(EntityKind(kind), dict(record))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _put(self, kind: EntityKind, record: Dict[str, Any]) -> Dict[str, Any]:
        record_id = self._next_id[kind]
        self._next_id[kind] += 1
        record["id"] = record_id
        self._tables[kind][record_id] = record
        return record

    def _find(self, kind: EntityKind, record_id: Any) -> Optional[Dict[str, Any]]:
        try:
            return self._tables[kind].get(int(record_id))
        except (TypeError, ValueError):
            return None

    def _item_refs(self, product_id: int) -> List[Dict[str, Any]]:
        refs = []
        for kind in (EntityKind.INVOICES, EntityKind.BILLS):
            for record in self._tables[kind].values():
                for item in record.get("items") or []:
                    if _same_id(item.get("product_id"), product_id):
                        refs.append(item)
        return refs

    # -------------------------------------------------------------------------
    # Store
    # -------------------------------------------------------------------------

    async def query_all(self, kind: EntityKind) -> List[Dict[str, Any]]:
        kind = EntityKind(kind)
        self.calls.append(("query_all", kind.value))
        return [copy.deepcopy(r) for r in self._tables[kind].values()]

    async def insert(self, kind: EntityKind, record: Dict[str, Any]) -> Dict[str, Any]:
        kind = EntityKind(kind)
        self.calls.append(("insert", kind.value))

        data = copy.deepcopy(record)
        data.pop("id", None)
        self._validate(kind, data)

        now = format_iso(datetime.now(timezone.utc))
        data.setdefault("created_at", now)
        if kind is not EntityKind.CUSTOMERS:
            data.setdefault("updated_at", now)

        if kind is EntityKind.BILLS:
            data["bill_number"] = data.pop("invoice_number", None) or data.get("bill_number")

        stored = self._put(kind, data)
        return copy.deepcopy(stored)

    async def delete(self, kind: EntityKind, record_id: Any, cascade: bool = False) -> None:
        kind = EntityKind(kind)
        self.calls.append(("delete", kind.value))

        record = self._find(kind, record_id)
        if record is None:
            raise StoreNotFoundError(f"{kind.value} record not found: {record_id}", 404)

        if kind is EntityKind.CUSTOMERS:
            invoices = [
                r for r in self._tables[EntityKind.INVOICES].values()
                if _same_id(r.get("customer_id"), record["id"])
            ]
            if invoices and not cascade:
                raise StoreValidationError(
                    f"Cannot delete customer. It is referenced in {len(invoices)} invoice(s).", 400
                )
            for invoice in invoices:
                del self._tables[EntityKind.INVOICES][invoice["id"]]
            for bill in self._tables[EntityKind.BILLS].values():
                if _same_id(bill.get("customer_id"), record["id"]):
                    bill["customer_id"] = None

        if kind is EntityKind.PRODUCTS:
            refs = self._item_refs(record["id"])
            if refs and not cascade:
                raise StoreValidationError(
                    f"Cannot delete product. It is referenced in {len(refs)} line item(s). "
                    "Use cascade=true to force deletion.",
                    400,
                )
            for item in refs:
                item["product_id"] = None

        del self._tables[kind][record["id"]]

    # -------------------------------------------------------------------------
    # Constraints
    # -------------------------------------------------------------------------

    def _validate(self, kind: EntityKind, data: Dict[str, Any]) -> None:
        if kind is EntityKind.PRODUCTS:
            if not data.get("name") or not data.get("sku"):
                raise StoreValidationError("Missing required fields (name, sku)", 400)
            if any(p.get("sku") == data["sku"] for p in self._tables[kind].values()):
                raise StoreValidationError(f"Duplicate SKU: {data['sku']}", 400)
            return

        if kind is EntityKind.CUSTOMERS:
            if not data.get("name") or not data.get("phone"):
                raise StoreValidationError("Missing required fields (name, phone)", 400)
            return

        if not data.get("customer_name") or not data.get("total_amount") or not data.get("payment_method"):
            raise StoreValidationError("Missing required fields", 400)

        if kind is EntityKind.INVOICES:
            customer_id = data.get("customer_id")
            if customer_id is None or self._find(EntityKind.CUSTOMERS, customer_id) is None:
                raise StoreValidationError(f"Unknown customer_id: {customer_id}", 400)

        if kind is EntityKind.BILLS and not (data.get("invoice_number") or data.get("bill_number")):
            raise StoreValidationError("Missing required fields", 400)


def _same_id(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    return str(left) == str(right)
