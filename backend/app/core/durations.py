"""Duration strings used by the auth settings.

Accepted forms: ``<int><unit>`` with unit one of s, m, h, d (``"30s"``,
``"5m"``, ``"2h"``, ``"10d"``), or a bare integer taken as milliseconds
(``"1500"``).
"""

import re
from datetime import timedelta

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_BARE_MS_RE = re.compile(r"^\d+$")

_UNIT_MS = {
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}


def parse_duration_ms(value: str | int) -> int:
    """Parse a duration string into milliseconds.

    Raises ValueError for empty or malformed input; nothing falls back
    to a default.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ValueError(f"Invalid time format: {value}")
        return value
    if value is None or value == "":
        raise ValueError("Time string is required")

    text = str(value)
    if _BARE_MS_RE.match(text):
        return int(text)

    match = _DURATION_RE.match(text)
    if not match:
        raise ValueError(
            f"Invalid time format: {text}. Use format like '5m', '30s', '2h', '7d'"
        )
    amount, unit = match.groups()
    return int(amount) * _UNIT_MS[unit]


def parse_duration(value: str | int) -> timedelta:
    return timedelta(milliseconds=parse_duration_ms(value))


def duration_seconds(value: str | int) -> float:
    return parse_duration_ms(value) / 1000


def duration_days(value: str | int) -> float:
    return parse_duration_ms(value) / _UNIT_MS["d"]
