"""
Phone Number Normalization

Every session, allowlist and account lookup keys on the same form:
digits only, no leading "+", no separators.
"""

import re

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_phone(phone: str | None) -> str:
    """
    Normalize a phone number for comparison.

    "+1 (555) 123-4567", "1-555-123-4567" and "15551234567" all map to
    "15551234567".
    """
    if not phone:
        return ""
    return _NON_DIGITS.sub("", phone)


def phones_match(a: str | None, b: str | None) -> bool:
    """Check whether two phone representations refer to the same number."""
    normalized = normalize_phone(a)
    return bool(normalized) and normalized == normalize_phone(b)
