from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.models.post import Post

class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    body: Optional[str] = None

class PostOut(BaseModel):
    id: str
    title: str
    body: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, post: Post) -> "PostOut":
        return cls(
            id=str(post.id),
            title=post.title,
            body=post.body,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )
