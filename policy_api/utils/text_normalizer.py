import math
from typing import Any

DECISION_CLASSES = ("yes", "no", "tie")


def normalize_text(value: Any, max_len: int = 500) -> str:
    """Trim a free-form request field and cap its length.

    Non-string values (numbers, nulls, objects) normalize to an empty string
    so callers can treat "absent" and "wrong type" the same way.

    Args:
        value: Raw field from a JSON body.
        max_len: Maximum characters kept after trimming.

    Returns:
        str: Trimmed, truncated text.
    """
    if not isinstance(value, str):
        return ""
    return value.strip()[:max_len]


def parse_days(value: Any) -> int | None:
    """Coerce a days-since-purchase field to a non-negative whole number.

    Numeric strings are accepted, fractions are floored and negatives clamp
    to 0. Anything non-numeric or non-finite returns None, as do numeric
    strings too large for a float.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return max(0, value)
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(parsed):
        return None
    return max(0, math.floor(parsed))


def normalize_decision(value: Any) -> str:
    """Return "yes", "no" or "tie" for a decision field, else ""."""
    decision = str(value or "").lower().strip()
    return decision if decision in DECISION_CLASSES else ""


def normalize_options(value: Any, max_len: int = 500) -> list[str]:
    """Return the non-empty, whitespace-collapsed entries of a JSON list.

    Anything other than a list yields no options.
    """
    if not isinstance(value, list):
        return []
    options = []
    for item in value:
        if item is None or isinstance(item, (dict, list)):
            continue
        text = " ".join(str(item).split())[:max_len]
        if text:
            options.append(text)
    return options
