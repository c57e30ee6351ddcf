from pydantic import BaseModel, Field
from typing import Optional


class PostCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=1000)
    prompt: Optional[str] = None
    author_ref: Optional[str] = None
    nsfw: bool = False
    skip_media_check: bool = False


class PostUpdate(BaseModel):
    prompt: Optional[str] = None
    nsfw: Optional[bool] = None
    media_video_ref: Optional[str] = None
    media_image_ref: Optional[str] = None


class NsfwUpdate(BaseModel):
    # None flips the current value
    nsfw: Optional[bool] = None

