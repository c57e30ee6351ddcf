"""
Anonymous identity and privileged-session helpers.

There are no accounts. A browser generates a random client token once,
keeps it locally and sends it as ``X-Client-Id``; that token is the only
authorship signal. Moderation is gated by a shared admin token.
"""
import hmac
import re
from typing import Optional

from fastapi import Depends, Header

from .config import get_settings
from .identifiers import is_author_handle
from .responses import bad_request, forbidden

settings = get_settings()

CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def normalize_client_id(value: Optional[str]) -> Optional[str]:
    """Validate a client token; blank means unknown."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not CLIENT_ID_PATTERN.match(value):
        bad_request("Invalid client id", "INVALID_CLIENT_ID", {"client_id": value[:64]})
    return value


def get_client_identity(x_client_id: Optional[str] = Header(None)) -> Optional[str]:
    """The caller's anonymous client token (optional)."""
    return normalize_client_id(x_client_id)


def is_admin_token(token: Optional[str]) -> bool:
    """Constant-time check of a presented admin token."""
    expected = get_settings().admin_token
    if not expected or not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def get_is_admin(x_admin_token: Optional[str] = Header(None)) -> bool:
    """Privileged-session capability as a plain boolean."""
    return is_admin_token(x_admin_token)


def require_admin(is_admin: bool = Depends(get_is_admin)) -> bool:
    """Reject the request unless the session is privileged."""
    if not is_admin:
        forbidden("Moderator access required")
    return True


def can_edit(author_ref: Optional[str], identity: Optional[str], is_admin: bool) -> bool:
    """Submitters may edit their own posts; privileged sessions may edit any."""
    if is_admin:
        return True
    return author_ref is not None and identity is not None and author_ref == identity


def normalize_author_handle(value: Optional[str]) -> Optional[str]:
    """Validate a public author handle; blank means no filter."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not is_author_handle(value):
        bad_request("Invalid author handle", "INVALID_AUTHOR", {"author": value[:64]})
    return value
