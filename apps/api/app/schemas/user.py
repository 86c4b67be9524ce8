from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from app.models.post import Post
from app.models.user import User, check_password_length
from app.schemas.post import PostOut

class UserOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    age: Optional[int] = None
    posts: List[Union[PostOut, str]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # virtuals
    post_count: int = 0
    email_domain: Optional[str] = None
    has_profile_image: bool = False

    @classmethod
    def from_document(cls, user: User) -> "UserOut":
        """Posts are embedded when they were populated, ids otherwise."""
        posts = [
            PostOut.from_document(p) if isinstance(p, Post) else str(p.ref.id)
            for p in user.posts
        ]
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            age=user.age,
            posts=posts,
            created_at=user.created_at,
            updated_at=user.updated_at,
            post_count=user.post_count,
            email_domain=user.email_domain,
            has_profile_image=user.has_profile_image,
        )

class UserPage(BaseModel):
    items: List[UserOut]
    total: int
    page: int
    limit: int

class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    age: Optional[int] = Field(default=None, description="18..100")
    password: Optional[str] = None

    @field_validator("password")
    @classmethod
    def _bcrypt_limit(cls, v: Optional[str]) -> Optional[str]:
        return check_password_length(v)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

class CountOut(BaseModel):
    count: int
