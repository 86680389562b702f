import html
import re
from typing import Optional

# Free-text notes on schedules and transactions
NOTE_MAX_LENGTH = 1000


def sanitize_string(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """
    Escape HTML special characters and trim surrounding whitespace.

    Returns None for None or blank input. Text longer than `max_length` is cut.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if not value:
        return None
    if max_length is not None:
        value = value[:max_length]
    return html.escape(value, quote=True)


def sanitize_note(value: Optional[str]) -> Optional[str]:
    """Sanitize a free-text note, collapsing runs of whitespace"""
    if value is None:
        return None
    return sanitize_string(re.sub(r"\s+", " ", str(value)), NOTE_MAX_LENGTH)
