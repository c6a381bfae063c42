"""
Parsing of Go-style duration strings such as ``30s``, ``1m30s`` or ``100ms``.
"""

import re
from datetime import timedelta

from ..errors import UsageError

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration string.

    Args:
        text: Optional sign followed by one or more ``<number><unit>`` groups,
            or the bare string ``"0"``

    Returns:
        The duration as a timedelta

    Raises:
        UsageError: If the string is not a valid duration
    """
    if not isinstance(text, str):
        raise UsageError(f"invalid duration: {text!r}")

    value = text.strip()
    sign = 1
    if value[:1] in ("+", "-"):
        sign = -1 if value[0] == "-" else 1
        value = value[1:]

    if value == "0":
        return timedelta(0)
    if not value:
        raise UsageError(f"invalid duration: {text!r}")

    seconds = 0.0
    pos = 0
    while pos < len(value):
        match = _COMPONENT.match(value, pos)
        if not match:
            raise UsageError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        seconds += float(number) * _UNIT_SECONDS[unit]
        pos = match.end()

    return timedelta(seconds=sign * seconds)


def format_duration(delta: timedelta) -> str:
    """Render a timedelta the way Go prints durations (``1h2m3s``, ``500ms``)."""
    total = delta.total_seconds()
    if total == 0:
        return "0s"

    sign = "-" if total < 0 else ""
    total = abs(total)
    if total < 1:
        millis = total * 1000
        return f"{sign}{millis:g}ms"

    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if hours or minutes:
        parts.append(f"{int(minutes)}m")
    parts.append(f"{round(seconds, 6):g}s")
    return sign + "".join(parts)
