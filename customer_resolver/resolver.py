"""Customer Resolver Algorithm.

Maps the customer reference on an imported invoice (a name and a phone
number) to a customer record in the Store, creating one when nothing
matches. Resolution strategy:

1. Exact lookup by composite identity key (name + phone)
2. Name-only scan when the name is non-empty (first match wins)
3. Create a new customer through the Store and register it

The index is built once per import pass and grows with the customers
created during the pass, so records must be resolved sequentially.
"""

import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from connectors.store_base import Store, StoreError
from core.models.records import UNKNOWN_CUSTOMER, Customer, EntityKind
from core.observability.logging import get_logger
from customer_resolver.models import CustomerResolution, MatchType
from customer_resolver.normalize import identity_key, normalize_name, normalize_phone

logger = get_logger(__name__)


def placeholder_phone() -> str:
    """Phone used for customers created without one; unique per call."""
    return f"PHONE-{uuid.uuid4().hex[:12]}"


class CustomerResolver:
    """Resolves (name, phone) pairs to Store customers.

    Example:
        resolver = CustomerResolver(store)
        await resolver.build_index()

        resolution = await resolver.resolve("Asha Rao", "98450 12345")
        if resolution.is_resolved:
            invoice.customer_id = resolution.customer_id
    """

    def __init__(self, store: Store):
        self.store = store
        self._index: Dict[str, Dict[str, Any]] = {}
        self.created: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._index)

    async def build_index(self) -> int:
        """Load every Store customer into the index.

        Returns:
            Number of distinct identity keys
        """
        self._index = {}
        customers = await self.store.query_all(EntityKind.CUSTOMERS)
        for customer in customers:
            self.register(customer)
        logger.debug("Customer index built", extra_fields={"keys": len(self._index)})
        return len(self._index)

    def register(self, customer: Dict[str, Any]) -> None:
        """Add a customer to the index; a later record for the same key wins."""
        self._index[identity_key(customer.get("name"), customer.get("phone"))] = customer

    def lookup(self, name: Optional[str], phone: Optional[str]) -> Optional[CustomerResolution]:
        """Resolve from the index only; None when a customer would need creating."""
        key = identity_key(name, phone)

        customer = self._index.get(key)
        if customer is not None:
            return CustomerResolution(
                match_type=MatchType.EXACT,
                customer=customer,
                identity_key=key,
                reasons=[f"Exact identity match: '{key}'"],
            )

        wanted = normalize_name(name)
        if wanted:
            for candidate in self._index.values():
                if normalize_name(candidate.get("name")) == wanted:
                    return CustomerResolution(
                        match_type=MatchType.NAME_ONLY,
                        customer=candidate,
                        identity_key=key,
                        reasons=[f"Name match ignoring phone: '{wanted}'"],
                    )
        return None

    async def resolve(self, name: Optional[str], phone: Optional[str]) -> CustomerResolution:
        """Resolve a customer reference, creating the customer if needed.

        Never raises for Store failures: a refused creation yields a FAILED
        resolution without a customer.
        """
        start_time = time.time()
        requested_name = (name or "").strip()
        requested_phone = normalize_phone(phone)

        resolution = self.lookup(name, phone)
        if resolution is None:
            resolution = await self._create(requested_name, requested_phone)

        resolution.requested_name = requested_name
        resolution.requested_phone = requested_phone
        resolution.resolved_at = datetime.utcnow()
        resolution.resolution_time_ms = int((time.time() - start_time) * 1000)
        return resolution

    async def _create(self, name: str, phone: str) -> CustomerResolution:
        record = Customer(name=name or UNKNOWN_CUSTOMER, phone=phone or placeholder_phone())
        # The Store stamps created_at itself
        payload = {k: v for k, v in record.to_store_payload().items() if v is not None}
        key = identity_key(payload["name"], payload["phone"])

        try:
            customer = await self.store.insert(EntityKind.CUSTOMERS, payload)
        except StoreError as e:
            logger.error(
                "Customer creation failed",
                extra_fields={"customer_name": payload["name"], "error": str(e)},
            )
            return CustomerResolution(
                match_type=MatchType.FAILED,
                identity_key=key,
                reasons=[f"Store refused new customer: {e}"],
            )

        self.register(customer)
        self.created.append(customer)
        logger.info(
            "Created customer during import",
            extra_fields={"customer_name": customer.get("name"), "customer_id": customer.get("id")},
        )
        return CustomerResolution(
            match_type=MatchType.CREATED,
            customer=customer,
            identity_key=key,
            reasons=["No existing customer matched; created"],
        )
