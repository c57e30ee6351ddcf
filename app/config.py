"""
Application configuration using environment variables.
"""
import logging
import os
import secrets
from functools import lru_cache
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from typing import List, Optional


class MediaForm(BaseModel):
    """One URL-construction pattern tried during media resolution."""
    name: str
    template: str
    kind: str = "animated"  # animated, static
    variant: str = "full"  # full, poster


DEFAULT_MEDIA_FORMS = [
    MediaForm(name="video", template="{base}/{id}.mp4", kind="animated", variant="full"),
    MediaForm(name="poster_jpg", template="{base}/{id}_thumbnail.jpg", kind="animated", variant="poster"),
    MediaForm(name="poster_png", template="{base}/{id}_thumbnail.png", kind="animated", variant="poster"),
    MediaForm(name="static_jpg", template="{alt_base}/{id}.jpg", kind="static", variant="full"),
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "ShareBoard API"
    debug: bool = False
    environment: str = "development"

    # Privileged sessions (moderation); unset means nobody is privileged
    admin_token: Optional[str] = None

    # Keys the public author handle derived from each client token
    secret_key: str = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./shareboard.db")

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Source platform
    source_url_template: str = "https://grok.com/imagine/post/{id}"

    # Media hosting
    media_base_url: str = "https://imagine-public.x.ai/imagine-public/share-videos"
    media_alt_base_url: str = "https://imagine-public.x.ai/imagine-public/share-images"
    media_forms: List[MediaForm] = DEFAULT_MEDIA_FORMS
    media_probe_timeout: float = 5.0  # seconds

    # Migration
    placeholder_prefix: str = "TEMP_MIGRATE_"

    # Limits
    comment_max_length: int = 1000
    prompt_max_length: int = 4000
    page_size: int = 40
    max_page_size: int = 100

    # Rate limiting
    submit_rate_limit: str = "10/minute"
    comment_rate_limit: str = "20/minute"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
if settings.environment == "production" and not settings.admin_token:
    logging.getLogger("shareboard.config").warning(
        "ADMIN_TOKEN is not set; moderation endpoints will reject every request"
    )
if settings.environment == "production" and not os.getenv("SECRET_KEY"):
    logging.getLogger("shareboard.config").warning(
        "SECRET_KEY is not set; author handles will change on every restart"
    )
