import html
import math
from typing import Optional

import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored and displayed.

    - Removes NULL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Unescapes the entities bleach leaves behind, so the result is plain text
    - Trims whitespace
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = html.unescape(bleach.clean(val, tags=[], strip=True))
    return val.strip()


def normalize_comment(value: Optional[str], min_length: int = 10, max_length: int = 2000) -> Optional[str]:
    """Return the cleaned review comment, or None when it is empty.

    Raises ValueError when a non-empty comment is outside the length bounds.
    """
    comment = sanitize_input(value)
    if not comment:
        return None
    if len(comment) < min_length:
        raise ValueError(f"Comment must be at least {min_length} characters if provided")
    if len(comment) > max_length:
        raise ValueError(f"Comment cannot exceed {max_length} characters")
    return comment


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
