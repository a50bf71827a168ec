"""Parse user-entered durations and format elapsed timer values."""

import math
import re

_UNIT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([hm])", re.IGNORECASE)
_BARE_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")


def parse_duration(text: str) -> int:
    """Convert a duration like ``1h 30m``, ``1.5h``, ``90m`` or ``90`` to minutes.

    A bare number is read as minutes. Fractional results are rounded to the
    nearest minute.

    Raises:
        ValueError: If the text is not a positive duration
    """
    value = text.strip().lower()
    if not value:
        raise ValueError("Duration is empty")

    if _BARE_NUMBER_RE.match(value):
        minutes = float(value)
    else:
        parts = _UNIT_RE.findall(value)
        # Everything except the matched parts must be whitespace
        if not parts or _UNIT_RE.sub("", value).strip():
            raise ValueError(
                f"Invalid duration: '{text}' (expected e.g. 1h 30m, 1.5h or 90m)"
            )
        minutes = 0.0
        for amount, unit in parts:
            minutes += float(amount) * (60 if unit == "h" else 1)

    result = int(round(minutes))
    if result <= 0:
        raise ValueError(f"Duration must be at least one minute: '{text}'")
    return result


def format_elapsed(elapsed_millis: float) -> str:
    """Format milliseconds as ``HH:MM:SS`` (hours may exceed 99)."""
    total_seconds = max(0, math.floor(elapsed_millis / 1000))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
