"""
Stable identifier extraction, author handles and placeholder urls.

A source url carries its stable identifier as the 36 character token that
follows ``post/``. Everything here is pure: no I/O, no randomness.
"""
import hashlib
import hmac
import re
from typing import Optional, Tuple

from .config import get_settings

settings = get_settings()

STABLE_ID_PATTERN = re.compile(r"post/([a-f0-9-]{36})")
STABLE_ID_SHAPE = re.compile(r"^[a-f0-9-]{36}$")

AUTHOR_HANDLE_LENGTH = 16
AUTHOR_HANDLE_SHAPE = re.compile(r"^[a-f0-9]{%d}$" % AUTHOR_HANDLE_LENGTH)

PLACEHOLDER_SEPARATOR = "|"


def extract(url: Optional[str]) -> Optional[str]:
    """Return the stable identifier embedded in ``url``, or None.

    A missing match is a normal outcome, so malformed or non-string input
    never raises.
    """
    if not isinstance(url, str):
        return None
    match = STABLE_ID_PATTERN.search(url)
    if not match:
        return None
    return match.group(1)


def is_stable_id(value: Optional[str]) -> bool:
    """True if ``value`` itself has the shape of a stable identifier."""
    return isinstance(value, str) and bool(STABLE_ID_SHAPE.match(value))


def source_url(identifier: str, template: Optional[str] = None) -> str:
    """Build the canonical source url for a stable identifier."""
    return (template or settings.source_url_template).format(id=identifier)


# ============================================================
# AUTHOR HANDLES
# ============================================================

def author_handle(author_ref: Optional[str], key: Optional[str] = None) -> Optional[str]:
    """Public handle for a client token.

    The token authorizes edits and is never shown to other visitors; the
    handle is what listings and author pages expose instead.
    """
    if not author_ref:
        return None
    digest = hmac.new(
        (key or settings.secret_key).encode("utf-8"),
        author_ref.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest[:AUTHOR_HANDLE_LENGTH]


def is_author_handle(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(AUTHOR_HANDLE_SHAPE.match(value))


# ============================================================
# MIGRATION PLACEHOLDERS
# ============================================================

def make_placeholder(old_id: str, original_url: str, prefix: Optional[str] = None) -> str:
    """Synthetic url that frees the real one while a post is being re-keyed.

    Unique because ``old_id`` is a primary key.
    """
    return f"{prefix or settings.placeholder_prefix}{old_id}{PLACEHOLDER_SEPARATOR}{original_url}"


def is_placeholder(url: Optional[str], prefix: Optional[str] = None) -> bool:
    return isinstance(url, str) and url.startswith(prefix or settings.placeholder_prefix)


def parse_placeholder(
    url: str,
    prefix: Optional[str] = None,
    old_id: Optional[str] = None,
) -> Tuple[str, Optional[str]]:
    """Split a placeholder into ``(old_id, original_url)``.

    Old ids may themselves contain the separator, so when the row's id is
    known it is stripped whole rather than split on. Placeholders written
    by older tooling carry only the old id, in which case the original url
    is None.
    """
    payload = url[len(prefix or settings.placeholder_prefix):]
    if old_id is not None:
        if payload.startswith(old_id + PLACEHOLDER_SEPARATOR):
            return old_id, payload[len(old_id) + 1:] or None
        if payload == old_id:
            return old_id, None
    if PLACEHOLDER_SEPARATOR in payload:
        found_id, original_url = payload.split(PLACEHOLDER_SEPARATOR, 1)
        return found_id, original_url or None
    return payload, None
