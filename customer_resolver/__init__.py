"""Customer Resolver - identity resolution for imported invoices.

Invoices in a workbook reference customers by name and phone only; the Store
needs a customer id. The resolver matches the reference against existing
customers and creates missing ones on the fly.

Usage:
    from customer_resolver import CustomerResolver

    resolver = CustomerResolver(store)
    await resolver.build_index()
    resolution = await resolver.resolve("Asha Rao", "9845012345")
"""

from customer_resolver.models import CustomerResolution, MatchType
from customer_resolver.normalize import identity_key, normalize_name, normalize_phone
from customer_resolver.resolver import CustomerResolver, placeholder_phone

__all__ = [
    "CustomerResolver",
    "CustomerResolution",
    "MatchType",
    "identity_key",
    "normalize_name",
    "normalize_phone",
    "placeholder_phone",
]
