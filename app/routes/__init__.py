from .posts import router as posts_router
from .comments import router as comments_router
from .authors import router as authors_router
from .health import router as health_router

__all__ = [
    "posts_router",
    "comments_router",
    "authors_router",
    "health_router",
]
