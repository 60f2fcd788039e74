from __future__ import annotations

import re

ITALY_PREFIX = "+39"


def normalize_italian_phone(raw_phone: str | None) -> str | None:
    """Return the number in +<country><number> form, assuming Italy when no prefix is given.

    - spaces, dashes and parentheses are dropped
    - a leading 00 becomes +
    - a bare 39... number gets a + in front
    - anything else gets +39
    """
    trimmed = (raw_phone or "").strip()
    if not trimmed:
        return None

    compact = re.sub(r"[\s()\-]", "", trimmed)
    if not compact:
        return None
    if compact.startswith("+"):
        return compact
    if compact.startswith("00"):
        return f"+{compact[2:]}"
    if compact.startswith("39"):
        return f"+{compact}"
    return f"{ITALY_PREFIX}{compact}"
