"""
Phone number normalization for cross-source contact matching.

Both contact sources key their records by phone number, but they do not agree
on formatting. Numbers are reduced to a bare digit string (country code
included, no leading '+') before they are indexed or looked up.
"""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(value: str | None) -> str:
    """
    Normalize a phone number to its digits-only form.

    Args:
        value: Phone number in any format, e.g. "+55 (11) 91234-5678"
               or a messaging id such as "5511912345678@c.us"

    Returns:
        Digits-only string (e.g. "5511912345678"), or "" if value is empty

    Example:
        >>> normalize_phone_number("+1 (555) 010-9999")
        '15550109999'
    """
    if not value:
        return ""

    # Messaging ids carry a server suffix after '@'
    number = value.split("@", 1)[0]

    return _NON_DIGITS.sub("", number)
