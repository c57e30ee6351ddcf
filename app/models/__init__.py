from .post import Post
from .comment import Comment

__all__ = [
    "Post",
    "Comment",
]
