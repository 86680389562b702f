"""Shared validation utilities"""

import re
from datetime import datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current time as naive UTC, matching how timestamps are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_timestamp(value: Union[str, datetime, None], field_name: str = "date") -> datetime:
    """
    Normalize an incoming timestamp to naive UTC.

    Args:
        value: ISO 8601 string (a trailing "Z" is accepted) or datetime

    Returns:
        Naive datetime in UTC

    Raises:
        ValueError: If the value is missing or cannot be parsed
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{field_name} is required")

    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"{field_name} is not a valid date") from None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to digits with an optional leading "+".

    Raises:
        ValueError: If fewer than 7 digits remain
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)
    if len(digits) < 7:
        raise ValueError("Phone number is too short")

    return f"+{digits}" if phone.strip().startswith("+") else digits
