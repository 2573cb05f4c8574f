import re
from datetime import date, datetime
from typing import Any, Optional

# Tried in order; RFC-3339 timestamps are handled separately
DATE_LAYOUTS = ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y")

# Date part, then a "T"/"t"/space separated time with optional fraction and offset
_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ]\d{2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?(?:[Zz]|[+-]\d{2}(?::?\d{2})?)?$"
)


def parse_date(value: Any) -> Optional[date]:
    """Return the calendar date for a supported layout, or None."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    for layout in DATE_LAYOUTS:
        try:
            return datetime.strptime(text, layout).date()
        except ValueError:
            continue

    # The calendar date is the one written, no timezone conversion
    match = _TIMESTAMP.match(text)
    if match:
        try:
            return datetime.strptime(match.group(1), "%Y-%m-%d").date()
        except ValueError:
            return None
    return None


def normalize_date(value: Any) -> Optional[str]:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None
