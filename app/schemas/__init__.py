from .posts import PostCreate, PostUpdate, NsfwUpdate
from .comments import CommentCreate

__all__ = [
    "PostCreate", "PostUpdate", "NsfwUpdate",
    "CommentCreate",
]
