"""Customer identity normalization.

A customer is identified across re-imports by a composite key built from
their name and phone number:

    "  Asha Rao " + "98450 12345"  ->  "asha rao__9845012345"
"""

import re
from typing import Any, Optional

KEY_SEPARATOR = "__"

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: Optional[Any]) -> str:
    """Lower-case and trim a customer name."""
    if name is None:
        return ""
    return str(name).strip().lower()


def normalize_phone(phone: Optional[Any]) -> str:
    """Remove all whitespace from a phone number.

    Whole floats (phone numbers read from numeric cells) lose their ``.0``.
    """
    if phone is None:
        return ""
    if isinstance(phone, float) and phone.is_integer():
        phone = int(phone)
    return _WHITESPACE.sub("", str(phone))


def identity_key(name: Optional[Any], phone: Optional[Any]) -> str:
    """Composite identity key of a customer.

    Examples:
        >>> identity_key("Asha Rao ", "98450 12345")
        'asha rao__9845012345'
    """
    return f"{normalize_name(name)}{KEY_SEPARATOR}{normalize_phone(phone)}"
