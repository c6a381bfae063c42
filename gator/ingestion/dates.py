"""
Publication date normalization.

Feeds in the wild publish ``pubDate`` in many shapes. ``parse_published_at``
tries a fixed list of layouts in order and returns the first match as an
aware UTC datetime.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from ..errors import DateParseError

# Offsets for zone abbreviations that commonly appear in RSS dates. Any other
# alphabetic abbreviation is read as UTC.
ZONE_OFFSETS = {
    "UT": 0,
    "UTC": 0,
    "GMT": 0,
    "Z": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
}

_ZONE_SUFFIX = re.compile(r"^(?P<stamp>.+?)\s+(?P<zone>[A-Za-z]{1,5})$")
# strptime reads at most microseconds; longer fractions are cut to six digits
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


def _strptime(fmt: str) -> Callable[[str], Optional[datetime]]:
    def parse(value: str) -> Optional[datetime]:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            return None

    return parse


def _rfc1123_zone_name(value: str) -> Optional[datetime]:
    match = _ZONE_SUFFIX.match(value)
    if not match:
        return None
    try:
        parsed = datetime.strptime(match.group("stamp"), "%a, %d %b %Y %H:%M:%S")
    except ValueError:
        return None
    hours = ZONE_OFFSETS.get(match.group("zone").upper(), 0)
    return parsed.replace(tzinfo=timezone(timedelta(hours=hours)))


def _rfc3339(value: str) -> Optional[datetime]:
    value = _LONG_FRACTION.sub(r"\1", value)
    for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


# Order matters: for ambiguous strings the earlier layout wins.
LAYOUTS: List[Tuple[str, Callable[[str], Optional[datetime]]]] = [
    ("Mon, 02 Jan 2006 15:04:05 -0700", _strptime("%a, %d %b %Y %H:%M:%S %z")),
    ("Mon, 02 Jan 2006 15:04:05 MST", _rfc1123_zone_name),
    ("2006-01-02T15:04:05Z07:00", _rfc3339),
    ("2006-01-02T15:04:05Z", _strptime("%Y-%m-%dT%H:%M:%SZ")),
    ("2006-01-02T15:04:05", _strptime("%Y-%m-%dT%H:%M:%S")),
    ("Mon, 02 Jan 2006", _strptime("%a, %d %b %Y")),
    ("2006-01-02", _strptime("%Y-%m-%d")),
    ("02 Jan 2006 15:04:05 -0700", _strptime("%d %b %Y %H:%M:%S %z")),
    ("02 Jan 2006 15:04:05", _strptime("%d %b %Y %H:%M:%S")),
    ("January 2, 2006", _strptime("%B %d, %Y")),
    ("Jan 2, 2006", _strptime("%b %d, %Y")),
]


def parse_published_at(value: str) -> datetime:
    """
    Parse a publication date string.

    Args:
        value: Raw ``pubDate`` text

    Returns:
        Timezone-aware datetime in UTC. Layouts without a zone are read as UTC.

    Raises:
        DateParseError: If no layout matches
    """
    if not isinstance(value, str) or not value.strip():
        raise DateParseError(value if isinstance(value, str) else repr(value))

    text = value.strip()
    for _, parse in LAYOUTS:
        parsed = parse(text)
        if parsed is None:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    raise DateParseError(value)
