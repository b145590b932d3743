from __future__ import annotations

import re
from urllib.parse import urlparse

MISSING_FIELDS_MESSAGE = "Please fill in both title and URL"
INVALID_URL_MESSAGE = "Please enter a valid URL"
TITLE_MAX_LENGTH = 512
TITLE_TOO_LONG_MESSAGE = f"Title must be {TITLE_MAX_LENGTH} characters or fewer"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*$")


def is_absolute_url(value: str) -> bool:
    if not value or any(ch.isspace() for ch in value):
        return False
    try:
        parsed = urlparse(value)
        # Accessing .port validates the port component.
        parsed.port
    except ValueError:
        return False
    if not parsed.scheme or not _SCHEME_RE.match(parsed.scheme):
        return False
    return bool(parsed.netloc)


def validate_bookmark_fields(title: str | None, url: str | None) -> str | None:
    """Return a user-facing message when the pair is not storable, else None."""
    # JSON clients can send numbers, lists or objects here.
    if not isinstance(title or "", str) or not isinstance(url or "", str):
        return MISSING_FIELDS_MESSAGE
    title = (title or "").strip()
    url = (url or "").strip()
    if not title or not url:
        return MISSING_FIELDS_MESSAGE
    if len(title) > TITLE_MAX_LENGTH:
        return TITLE_TOO_LONG_MESSAGE
    if not is_absolute_url(url):
        return INVALID_URL_MESSAGE
    return None
