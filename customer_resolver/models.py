"""Customer Resolver Data Models.

- MatchType: How a customer reference was resolved
- CustomerResolution: The result of resolving one (name, phone) pair
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    """How the customer was resolved."""
    EXACT = "exact"            # Composite key (name + phone) matched
    NAME_ONLY = "name_only"    # Name matched, phone differed or was missing
    CREATED = "created"        # No match; a new customer was created
    FAILED = "failed"          # Creation was refused by the Store


class CustomerResolution(BaseModel):
    """Result of customer resolution.

    Attributes:
        match_type: How the customer was found
        customer: The Store record of the customer (None when FAILED)
        requested_name: Name as given by the referencing record
        requested_phone: Phone as given by the referencing record
        identity_key: Composite key that was looked up
        reasons: Explanation of the resolution
        resolved_at: When resolution finished
        resolution_time_ms: Time spent, including any Store call
    """
    match_type: MatchType
    customer: Optional[Dict[str, Any]] = None
    requested_name: str = ""
    requested_phone: str = ""
    identity_key: str = ""
    reasons: List[str] = Field(default_factory=list)
    resolved_at: Optional[datetime] = None
    resolution_time_ms: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.customer is not None and self.customer.get("id") is not None

    @property
    def customer_id(self) -> Optional[Any]:
        return self.customer.get("id") if self.customer else None
