"""Tolerant parsing of scraped profile fields (numbers, dates, badges, histories)."""

import json
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional, Tuple

import pandas as pd


HISTORY_WINDOW_DAYS = 30

_ZERO_LIKE = re.compile(r"^0+$")
_MISSING_LIKE = re.compile(r"^(?:n/?a|null|undefined|-|—)$", re.IGNORECASE)
_BADGE_WORD = re.compile(r"badge", re.IGNORECASE)
_ZERO_BADGE_MENTION = re.compile(r"\b0\s*badge", re.IGNORECASE)
_DIGITS = re.compile(r"\d+")
_HAS_DIGIT = re.compile(r"\d")
_TOKEN_SPLIT = re.compile(r"[|,;\n]+")


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Return *now* as an aware UTC datetime, defaulting to the current time."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def to_number(value: Any, fallback: float = 0) -> float:
    """
    Coerce a scraped counter to a number.

    Native finite numbers pass through unchanged. Strings have thousands
    separators stripped before parsing ("1,234" -> 1234.0).

    Args:
        value: Raw field value (number, numeric string, None, ...)
        fallback: Value returned when *value* cannot be parsed

    Returns:
        The parsed number, or *fallback*
    """
    if value is None:
        return fallback
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return value if math.isfinite(value) else fallback
        except OverflowError:
            return fallback
    try:
        parsed = float(str(value).replace(",", "").strip())
    except (ValueError, TypeError):
        return fallback
    return parsed if math.isfinite(parsed) else fallback


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-ish date or datetime string into an aware UTC datetime.

    Date-only strings ("2025-01-30") are read as UTC midnight.
    Returns None for missing or unparseable values, including relative
    keywords like "now" or "today" that carry no date of their own.
    """
    if not isinstance(value, str) or not _HAS_DIGIT.search(value):
        return None
    parsed = pd.to_datetime(value.strip(), utc=True, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def sum_history_entries(
    history: Optional[Mapping[str, Any]],
    days: int = HISTORY_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> float:
    """
    Sum a sparse date -> count history over the trailing *days* window.

    Entries with unparseable dates are skipped and negative counts never
    subtract from the total.
    """
    if not history or days <= 0:
        return 0
    threshold = resolve_now(now) - timedelta(days=days)

    total = 0
    for date_key, value in history.items():
        date = parse_date(date_key)
        if date is None or date < threshold:
            continue
        numeric_value = to_number(value, 0)
        if numeric_value >= 0:
            total += numeric_value
    return total


def sum_all_entries(history: Optional[Mapping[str, Any]]) -> float:
    """All-time sum of a history map."""
    if not history:
        return 0
    return sum(to_number(value, 0) for value in history.values())


def days_since(value: Any, now: Optional[datetime] = None) -> Optional[int]:
    """
    Whole days between the calendar date of *value* and today.

    Returns None when the date is missing or unparseable; dates in the
    future clamp to 0.
    """
    date = parse_date(value)
    if date is None:
        return None
    diff = (resolve_now(now).date() - date.date()).days
    return max(diff, 0)


_NOT_PARSED = object()


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return _NOT_PARSED


def _is_truthy(item: Any) -> bool:
    # JSON null, false, 0 and "" are the only falsy array members
    if item is None or item is False or item == "":
        return False
    if isinstance(item, (int, float)) and item == 0:
        return False
    return True


def _badges_from_json_array(text: str) -> Optional[float]:
    parsed = _load_json(text)
    if isinstance(parsed, list):
        return sum(1 for item in parsed if _is_truthy(item))
    return None


def _badges_from_json_object(text: str) -> Optional[float]:
    parsed = _load_json(text)
    if not isinstance(parsed, dict):
        return None
    values = [to_number(v, 0) for v in parsed.values()]
    values = [v for v in values if v >= 0]
    if not values:
        return None
    return sum(values)


def _badges_from_keyword(text: str) -> Optional[float]:
    if not _BADGE_WORD.search(text):
        return None
    if _ZERO_BADGE_MENTION.search(text):
        return 0
    return len(_BADGE_WORD.findall(text))


def _badges_from_digits(text: str) -> Optional[float]:
    numbers = [to_number(token, 0) for token in _DIGITS.findall(text)]
    if not numbers or any(n < 0 for n in numbers):
        return None
    total = sum(numbers)
    return total if total > 0 else None


def _badges_from_tokens(text: str) -> Optional[float]:
    tokens = [token.strip() for token in _TOKEN_SPLIT.split(text)]
    return len([token for token in tokens if token])


# Order matters: the first parser that returns a value wins
BADGE_PARSERS: Tuple[Callable[[str], Optional[float]], ...] = (
    _badges_from_json_array,
    _badges_from_json_object,
    _badges_from_keyword,
    _badges_from_digits,
    _badges_from_tokens,
)


def count_badges(raw: Optional[str]) -> float:
    """
    Best-effort badge count from an opaque badge string.

    Badge data comes from several scrapers, so the same field may hold a
    JSON array ('["star", "pull-shark"]'), a JSON object of counts
    ('{"gold": 2}'), free text mentioning badges, bare numbers, or a
    delimiter-separated list. Zero-like markers ("0", "N/A", "null", "-")
    count as no badges.

    Args:
        raw: Badge string as stored on the student record

    Returns:
        Plausible badge count (0 when nothing can be made of it)
    """
    if not raw or not isinstance(raw, str):
        return 0
    text = raw.strip()
    if not text or _ZERO_LIKE.match(text) or _MISSING_LIKE.match(text):
        return 0

    for parser in BADGE_PARSERS:
        result = parser(text)
        if result is not None:
            return result
    return 0
