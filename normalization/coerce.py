"""Cell value coercion.

Spreadsheet cells arrive as whatever the producing tool chose: numbers as
text with currency symbols, phone numbers as floats, enumerations in any
case. These helpers turn a cell into the field type and never raise; an
unusable value yields the default.
"""

import json
import math
import re
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from core.models.records import LineItem
from core.observability.logging import get_logger

logger = get_logger(__name__)

# Currency symbols, thousands separators, percent signs and spaces
_NUMBER_NOISE = re.compile(r"[₹$,%\s]|Rs\.?", re.IGNORECASE)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Parse a numeric cell; default on blank or unparseable input."""
    if _blank(value) or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = _NUMBER_NOISE.sub("", str(value))
        try:
            number = float(text)
        except ValueError:
            return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def coerce_int(value: Any, default: int = 0) -> int:
    number = coerce_number(value, default=float("nan"))
    if math.isnan(number):
        return default
    return int(round(number))


def coerce_text(value: Any, default: str = "") -> str:
    """Convert a cell to stripped text.

    Whole floats lose their ``.0`` (phone numbers and pincodes typed into a
    numeric cell come back as floats).
    """
    if _blank(value):
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def coerce_choice(value: Any, default: str, choices: Optional[Iterable[str]] = None) -> str:
    """Lower-cased enumeration value; default when blank or not allowed."""
    text = coerce_text(value).lower()
    if not text:
        return default
    if choices is not None and text not in set(choices):
        return default
    return text


def coerce_items(value: Any) -> List[LineItem]:
    """Line items from JSON text or a list of mappings.

    Items that fail validation are dropped; the record keeps the rest.
    """
    if _blank(value):
        return []

    data = value
    if isinstance(value, str):
        try:
            data = json.loads(value)
        except ValueError:
            logger.warning("Ignoring unreadable items cell", extra_fields={"value": value[:80]})
            return []

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return []

    items = []
    for entry in data:
        if isinstance(entry, LineItem):
            items.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        try:
            items.append(LineItem.model_validate(entry))
        except ValidationError as e:
            logger.debug("Dropping invalid line item", extra_fields={"errors": e.error_count()})
    return items
