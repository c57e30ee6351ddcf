"""
Post model for shared gallery entries.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base
from ..identifiers import author_handle as handle_for


def _default_author_handle(context):
    return handle_for(context.get_current_parameters().get("author_ref"))


class Post(Base):
    __tablename__ = "posts"

    # Stable identifier from the source url once migrated; legacy rows may hold a surrogate
    id = Column(String(64), primary_key=True, index=True)
    url = Column(String(1000), unique=True, nullable=False)
    prompt = Column(Text, nullable=True)
    author_ref = Column(String(64), nullable=True, index=True)  # anonymous client token
    author_handle = Column(String(16), nullable=True, index=True, default=_default_author_handle)
    media_video_ref = Column(String(1000), nullable=True)
    media_image_ref = Column(String(1000), nullable=True)
    site_name = Column(String(100), nullable=True)
    title = Column(String(255), nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    nsfw = Column(Boolean, default=False, nullable=False)
    clicks = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    comment_count = Column(Integer, default=0, nullable=False)
    last_comment_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    # Relationships
    comments = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )
