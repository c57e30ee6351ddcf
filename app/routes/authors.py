"""
Author routes: everything shared under one public author handle.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_client_identity, get_is_admin, normalize_author_handle
from ..database import get_db
from .posts import gallery_page

router = APIRouter(prefix="/api/authors", tags=["authors"])


@router.get("/{author_handle}/posts")
def get_author_posts(
    author_handle: str,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    sort: str = "new",
    db: Session = Depends(get_db),
    identity: Optional[str] = Depends(get_client_identity),
    is_admin: bool = Depends(get_is_admin),
):
    """Posts shared by one author, newest first by default."""
    author_handle = normalize_author_handle(author_handle)
    result = gallery_page(
        db, page, per_page, sort,
        author=author_handle,
        identity=identity,
        is_admin=is_admin,
    )
    result["author_handle"] = author_handle
    result["post_count"] = result["pagination"]["total"]
    return result
