"""
Comment routes for per-post discussion threads.

comment_count and last_comment_at on the post are maintained here, in the
same commit as the comment row itself.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import get_client_identity, get_is_admin, require_admin
from ..config import get_settings
from ..database import get_db
from ..limiter import limiter
from ..logging_config import api_logger as logger
from ..models.comment import Comment
from ..models.post import Post
from ..responses import deleted, not_found, require, validation_error
from ..schemas.comments import CommentCreate

settings = get_settings()

router = APIRouter(tags=["comments"])


def comment_to_dict(comment: Comment, identity: Optional[str] = None, is_admin: bool = False) -> dict:
    """Convert a Comment model to a dictionary response.

    The author token is only exposed to moderators.
    """
    data = {
        "id": comment.id,
        "post_id": comment.post_id,
        "content": comment.content,
        "mine": identity is not None and comment.author_ref == identity,
        "created_at": comment.created_at.isoformat(),
    }
    if is_admin:
        data["author_ref"] = comment.author_ref
    return data


@router.get("/api/posts/{post_id}/comments")
def get_comments(
    post_id: str,
    db: Session = Depends(get_db),
    identity: Optional[str] = Depends(get_client_identity),
    is_admin: bool = Depends(get_is_admin),
):
    """Comments for a post, oldest first."""
    if not db.get(Post, post_id):
        not_found("Post", post_id)

    comments = (
        db.query(Comment)
        .filter(Comment.post_id == post_id)
        .order_by(Comment.created_at.asc(), Comment.id)
        .all()
    )
    return [comment_to_dict(c, identity, is_admin) for c in comments]


@router.post("/api/posts/{post_id}/comments")
@limiter.limit(settings.comment_rate_limit)
def create_comment(
    request: Request,
    post_id: str,
    body: CommentCreate,
    db: Session = Depends(get_db),
    identity: Optional[str] = Depends(get_client_identity),
):
    """Add a comment to a post."""
    content = require(body.content, "content").strip()
    if len(content) > settings.comment_max_length:
        validation_error(
            f"Comment must be at most {settings.comment_max_length} characters",
            "COMMENT_TOO_LONG",
        )

    if not db.get(Post, post_id):
        not_found("Post", post_id)

    now = datetime.now(timezone.utc)
    comment = Comment(post_id=post_id, content=content, author_ref=identity, created_at=now)
    db.add(comment)
    db.query(Post).filter(Post.id == post_id).update(
        {Post.comment_count: Post.comment_count + 1, Post.last_comment_at: now},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(comment)

    logger.info("Comment added", post_id=post_id, comment_id=comment.id)
    return comment_to_dict(comment, identity)


@router.delete("/api/comments/{comment_id}")
def delete_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(require_admin),
):
    """Delete a comment (moderator only)."""
    comment = db.get(Comment, comment_id)
    if not comment:
        not_found("Comment", comment_id)

    post_id = comment.post_id
    db.delete(comment)
    db.query(Post).filter(Post.id == post_id, Post.comment_count > 0).update(
        {Post.comment_count: Post.comment_count - 1},
        synchronize_session=False,
    )
    db.commit()

    logger.info("Comment deleted", post_id=post_id, comment_id=comment_id)
    return deleted("Comment deleted")
