"""
Posts routes: gallery listing, submission, edits, moderation and counters.
"""
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..auth import (
    can_edit,
    get_client_identity,
    get_is_admin,
    normalize_author_handle,
    normalize_client_id,
    require_admin,
)
from ..config import get_settings
from ..database import get_db
from ..identifiers import extract
from ..limiter import limiter
from ..logging_config import api_logger as logger
from ..models.post import Post
from ..responses import (
    bad_request,
    conflict,
    deleted,
    forbidden,
    not_found,
    paginated,
    server_error,
    success,
    validation_error,
)
from ..schemas.posts import NsfwUpdate, PostCreate, PostUpdate
from ..store import ConflictError, RecordNotFound, RecordStore, StoreError
from ..worker.media_resolver import MediaResolver

settings = get_settings()

router = APIRouter(prefix="/api/posts", tags=["posts"])

SORTS = {
    "new": [Post.created_at.desc()],
    "old": [Post.created_at.asc()],
    "popular": [Post.clicks.desc(), Post.created_at.desc()],
    "views": [Post.views.desc(), Post.created_at.desc()],
    "comments": [Post.comment_count.desc(), Post.last_comment_at.desc().nullslast(), Post.created_at.desc()],
}

NSFW_FILTERS = ("all", "hide", "only")


@lru_cache()
def get_media_resolver() -> MediaResolver:
    """Shared resolver so successful lookups stay memoised across requests."""
    return MediaResolver()


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def post_to_dict(post: Post, identity: Optional[str] = None, is_admin: bool = False) -> dict:
    """Convert a Post model to a dictionary response.

    The client token authorizes edits, so only moderators see it; everyone
    else gets the public handle and whether the post is theirs.
    """
    data = {
        "id": post.id,
        "url": post.url,
        "prompt": post.prompt,
        "author_handle": post.author_handle,
        "mine": identity is not None and post.author_ref == identity,
        "media_video_ref": post.media_video_ref,
        "media_image_ref": post.media_image_ref,
        "site_name": post.site_name,
        "title": post.title,
        "nsfw": bool(post.nsfw),
        "clicks": post.clicks or 0,
        "views": post.views or 0,
        "comment_count": post.comment_count or 0,
        "last_comment_at": post.last_comment_at.isoformat() if post.last_comment_at else None,
        "created_at": post.created_at.isoformat(),
    }
    if is_admin:
        data["author_ref"] = post.author_ref
    return data


def gallery_page(
    db: Session,
    page: int = 1,
    per_page: Optional[int] = None,
    sort: str = "new",
    q: Optional[str] = None,
    author: Optional[str] = None,
    nsfw: str = "all",
    identity: Optional[str] = None,
    is_admin: bool = False,
) -> dict:
    """Filtered, sorted, paginated gallery query.

    ``author`` is a public author handle, never a client token.
    """
    if sort not in SORTS:
        bad_request(f"Unknown sort '{sort}'", "INVALID_SORT", {"allowed": list(SORTS)})
    if nsfw not in NSFW_FILTERS:
        bad_request(f"Unknown nsfw filter '{nsfw}'", "INVALID_FILTER", {"allowed": list(NSFW_FILTERS)})
    per_page = min(per_page or settings.page_size, settings.max_page_size)

    # Rows mid-migration hold a placeholder url and are not shown
    query = db.query(Post).filter(~Post.url.startswith(settings.placeholder_prefix))

    if q:
        term = f"%{q.strip()}%"
        query = query.filter(Post.prompt.ilike(term))
    author = normalize_author_handle(author)
    if author:
        query = query.filter(Post.author_handle == author)
    if nsfw == "hide":
        query = query.filter(Post.nsfw.is_(False))
    elif nsfw == "only":
        query = query.filter(Post.nsfw.is_(True))

    total = query.count()
    posts = (
        query.order_by(*SORTS[sort], Post.id)
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return paginated([post_to_dict(p, identity, is_admin) for p in posts], total, page, per_page)


def _get_post_or_404(db: Session, post_id: str) -> Post:
    post = db.get(Post, post_id)
    if not post:
        not_found("Post", post_id)
    return post


def _check_prompt(prompt: Optional[str]) -> Optional[str]:
    if prompt is None:
        return None
    prompt = prompt.strip()
    if len(prompt) > settings.prompt_max_length:
        validation_error(
            f"Prompt must be at most {settings.prompt_max_length} characters",
            "PROMPT_TOO_LONG",
        )
    return prompt or None


@router.get("")
def get_posts(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    sort: str = "new",
    q: Optional[str] = None,
    author: Optional[str] = None,
    nsfw: str = "all",
    db: Session = Depends(get_db),
    identity: Optional[str] = Depends(get_client_identity),
    is_admin: bool = Depends(get_is_admin),
):
    """Gallery listing with sort, prompt search, author handle and nsfw filters."""
    return gallery_page(db, page, per_page, sort, q, author, nsfw, identity, is_admin)


@router.get("/{post_id}")
def get_post(
    post_id: str,
    db: Session = Depends(get_db),
    identity: Optional[str] = Depends(get_client_identity),
    is_admin: bool = Depends(get_is_admin),
):
    """Get a single post by ID."""
    return post_to_dict(_get_post_or_404(db, post_id), identity, is_admin)


@router.post("")
@limiter.limit(settings.submit_rate_limit)
def create_post(
    request: Request,
    post_data: PostCreate,
    db: Session = Depends(get_db),
    identity: Optional[str] = Depends(get_client_identity),
    is_admin: bool = Depends(get_is_admin),
    resolver: MediaResolver = Depends(get_media_resolver),
):
    """Share a source url. The post is keyed by the url's stable identifier."""
    url = post_data.url.strip()
    identifier = extract(url)
    if not identifier:
        bad_request("Invalid URL format. Could not find a post identifier.", "INVALID_URL")

    prompt = _check_prompt(post_data.prompt)
    author_ref = normalize_client_id(post_data.author_ref) or identity

    resolution = None
    if not post_data.skip_media_check:
        resolution = resolver.resolve(identifier)
        if not resolution.available:
            validation_error(
                "Media for this post could not be found",
                "MEDIA_UNAVAILABLE",
                {"attempts": resolution.attempts},
            )

    row = {
        "id": identifier,
        "url": url,
        "prompt": prompt,
        "author_ref": author_ref,
        "nsfw": post_data.nsfw,
        "site_name": "Grok",
        "title": "Grok Creation",
        "width": 0,
        "height": 0,
    }
    row.update(resolver.media_refs(identifier, resolution))

    try:
        RecordStore(db).insert("posts", row)
    except ConflictError:
        conflict("URL already shared!", "ALREADY_SHARED")

    post = _get_post_or_404(db, identifier)
    logger.info("Post shared", post_id=identifier, author_handle=post.author_handle,
                media_checked=resolution is not None)
    return post_to_dict(post, author_ref, is_admin)


@router.patch("/{post_id}")
def update_post(
    post_id: str,
    post_update: PostUpdate,
    db: Session = Depends(get_db),
    identity: Optional[str] = Depends(get_client_identity),
    is_admin: bool = Depends(get_is_admin),
):
    """Edit prompt, nsfw flag or media refs (submitter or moderator)."""
    post = _get_post_or_404(db, post_id)
    if not can_edit(post.author_ref, identity, is_admin):
        forbidden("Only the submitter or a moderator can edit this post")

    update_data = post_update.model_dump(exclude_unset=True)
    if "prompt" in update_data:
        update_data["prompt"] = _check_prompt(update_data["prompt"])
    for key, value in update_data.items():
        if key == "nsfw" and value is None:
            continue
        setattr(post, key, value)

    db.commit()
    db.refresh(post)

    return post_to_dict(post, identity, is_admin)


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(require_admin),
):
    """Delete a post and its comments (moderator only)."""
    post = _get_post_or_404(db, post_id)
    db.delete(post)
    db.commit()
    logger.info("Post deleted", post_id=post_id)
    return deleted("Post deleted")


@router.post("/{post_id}/nsfw")
def set_nsfw(
    post_id: str,
    body: NsfwUpdate,
    db: Session = Depends(get_db),
    is_admin: bool = Depends(require_admin),
):
    """Set or flip the nsfw flag (moderator only)."""
    post = _get_post_or_404(db, post_id)
    post.nsfw = (not post.nsfw) if body.nsfw is None else body.nsfw
    db.commit()
    db.refresh(post)
    return post_to_dict(post, is_admin=is_admin)


def _increment(store: RecordStore, post_id: str, field: str) -> dict:
    try:
        store.increment_counter("posts", post_id, field)
    except RecordNotFound:
        not_found("Post", post_id)
    except StoreError as e:
        logger.error("Counter increment failed", error=e, post_id=post_id, field=field)
        server_error("Could not update counter")
    row = store.get("posts", post_id)
    return success({"id": post_id, field: row[field]})


@router.post("/{post_id}/click")
def record_click(post_id: str, store: RecordStore = Depends(get_store)):
    """Count a click-through to the source post."""
    return _increment(store, post_id, "clicks")


@router.post("/{post_id}/view")
def record_view(post_id: str, store: RecordStore = Depends(get_store)):
    """Count an inline preview view."""
    return _increment(store, post_id, "views")


@router.get("/{post_id}/media")
def get_post_media(
    post_id: str,
    db: Session = Depends(get_db),
    resolver: MediaResolver = Depends(get_media_resolver),
):
    """Resolve a fetchable preview url; unavailable renders as a placeholder."""
    post = _get_post_or_404(db, post_id)
    url = resolver.preview_url(post)
    return {"id": post.id, "url": url, "available": url is not None}
