"""Date interpretation for imported spreadsheet cells.

Spreadsheet tools encode the same instant in different ways: ISO strings,
locale strings such as ``21/3/2024, 5:30:00 pm`` or raw day serials. The
functions here turn any of them into one canonical UTC timestamp string and
never raise; unparseable input falls back to a supplied value or to now.

Examples:
    >>> interpret_date(44197)
    '2021-01-01T00:00:00.000Z'
    >>> interpret_date("21/03/2024, 5:30:00 pm")
    '2024-03-21T17:30:00.000Z'
"""

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

# Day zero of spreadsheet serial dates (Lotus 1-2-3 leap year bug included)
SERIAL_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)

# Serials beyond this are not plausible dates (year 9999)
MAX_SERIAL = 2958465

LOCALE_PATTERN = re.compile(
    r"^\s*(\d{1,2})[/-](\d{1,2})[/-](\d{4})"
    r"(?:,?\s+(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([ap]\.?m\.?)?)?\s*$",
    re.IGNORECASE,
)

# Absolute formats tried after ISO-8601
ABSOLUTE_FORMATS = (
    "%a, %d %b %Y %H:%M:%S GMT",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso(value: datetime) -> str:
    """Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    utc = _as_utc(value)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def from_serial(serial: float) -> Optional[datetime]:
    """Convert a spreadsheet day serial to a UTC datetime.

    The integer part counts days since 1899-12-30, the fraction is the time
    of day. Rounded to the millisecond.
    """
    if math.isnan(serial) or math.isinf(serial) or serial < 0 or serial > MAX_SERIAL:
        return None
    millis = round(serial * 86400 * 1000)
    return SERIAL_EPOCH + timedelta(milliseconds=millis)


def _parse_absolute(text: str) -> Optional[datetime]:
    iso = text.replace("Z", "+00:00") if text.endswith("Z") else text
    try:
        return _as_utc(datetime.fromisoformat(iso))
    except ValueError:
        pass

    for fmt in ABSOLUTE_FORMATS:
        try:
            return _as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


def _parse_locale(text: str) -> Optional[datetime]:
    match = LOCALE_PATTERN.match(text)
    if not match:
        return None

    day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
    hour = int(match.group(4)) if match.group(4) else 0
    minute = int(match.group(5)) if match.group(5) else 0
    second = int(match.group(6)) if match.group(6) else 0
    meridiem = match.group(7)

    if meridiem:
        marker = meridiem.lower().replace(".", "")
        if marker == "pm" and hour < 12:
            hour += 12
        elif marker == "am" and hour == 12:
            hour = 0

    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Interpret a value as a UTC datetime, or return None.

    Resolution order: date objects, numeric day serials, absolute strings,
    day-first locale strings.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        return from_serial(float(value))

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return _parse_absolute(text) or _parse_locale(text)

    return None


def interpret_date(value: Any, fallback: Any = None) -> str:
    """Interpret a date value of unknown origin as a canonical timestamp.

    Args:
        value: datetime/date, day serial, or date string
        fallback: Used when value cannot be interpreted (any form accepted
            by this function); current time when omitted or unusable

    Returns:
        ISO-8601 UTC timestamp string
    """
    parsed = parse_timestamp(value)
    if parsed is None and fallback is not None:
        parsed = parse_timestamp(fallback)
    if parsed is None:
        parsed = datetime.now(timezone.utc)
    return format_iso(parsed)


def format_locale_timestamp(value: Any) -> str:
    """Render a timestamp the way exported sheets show it.

    Produces ``D/M/YYYY, H:MM:SS am`` (day first, 12-hour clock, UTC), which
    the locale pattern above reads back to the same second. Returns an empty
    string for values that cannot be interpreted.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        return ""
    hour12 = parsed.hour % 12 or 12
    meridiem = "pm" if parsed.hour >= 12 else "am"
    return (
        f"{parsed.day}/{parsed.month}/{parsed.year}, "
        f"{hour12}:{parsed.minute:02d}:{parsed.second:02d} {meridiem}"
    )


def today_stamp(now: Optional[datetime] = None) -> str:
    """ISO date used in export file names."""
    return _as_utc(now or datetime.now(timezone.utc)).date().isoformat()
