"""Normalizers for loosely-typed fields in elgoose.net records.

Every function here is pure and total: bad input yields an empty/None value,
never an exception.
"""

import math
import re
from datetime import date, datetime, timezone
from html.entities import name2codepoint
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import SetlistEntry, Show

_ENTITY_RE = re.compile(r"&(#[xX][0-9a-fA-F]+|#[0-9]+|[a-zA-Z][a-zA-Z0-9]*);")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")

# The source data renders straight quotes as typographic ones
_QUOTE_STYLE = {'"': "”", "'": "’"}

_NAMED_ENTITIES = {**{name: chr(code) for name, code in name2codepoint.items()}, "apos": "'"}

_TRUE_STRINGS = frozenset({"1", "true", "yes"})
_FALSE_STRINGS = frozenset({"0", "false", "no"})


def _decode_entity(match: re.Match) -> str:
    entity = match.group(1)
    decoded: str | None = None
    try:
        if entity[:2] in ("#x", "#X"):
            decoded = chr(int(entity[2:], 16))
        elif entity.startswith("#"):
            decoded = chr(int(entity[1:]))
        else:
            decoded = _NAMED_ENTITIES.get(entity)
    except (ValueError, OverflowError):
        # Code point outside the Unicode range
        decoded = None
    if decoded is None:
        return match.group(0)
    return _QUOTE_STYLE.get(decoded, decoded)


def decode_html_entities(value: str | None) -> str:
    """Decode numeric and named character references.

    Decoded straight quotes become curly quotes. Unknown entities are left as-is.

    >>> decode_html_entities("Rock &amp; Roll")
    'Rock & Roll'
    """
    if not value:
        return ""
    if "&" not in value:
        return value
    return _ENTITY_RE.sub(_decode_entity, value)


def to_numeric_id(value: Any) -> int | None:
    """Coerce an API identifier to an int, or None when it isn't one.

    Strings are read like a lenient integer parse: leading digits win, so
    ``"42"`` and ``"42abc"`` both give 42.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value.strip())
        return int(match.group(0)) if match else None
    return None


def normalize_is_original(value: Any) -> bool | None:
    """Interpret an ``isoriginal`` flag. Returns None when absent."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        trimmed = value.strip().lower()
        if trimmed in _TRUE_STRINGS:
            return True
        if trimmed in _FALSE_STRINGS:
            return False
    return bool(value)


def is_cover(entry: "SetlistEntry") -> bool:
    """True when the entry is a cover.

    An explicit ``isoriginal`` flag decides; otherwise an entry is a cover iff
    it names an original artist.
    """
    original = normalize_is_original(entry.isoriginal)
    if original is not None:
        return not original
    return bool(entry.original_artist)


def parse_calendar_date(value: Any) -> datetime | None:
    """Parse a date-only string as UTC midnight. Returns None for bad input."""
    if not value:
        return None
    try:
        parsed = date.fromisoformat(str(value).strip())
    except ValueError:
        return None
    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)


def parse_show_year(show: "Show") -> int | None:
    """Year of a show: explicit ``show_year`` first, else from ``showdate``."""
    year = to_numeric_id(show.show_year)
    if year is not None:
        return year
    if show.showdate:
        return to_numeric_id(str(show.showdate)[:4])
    return None
