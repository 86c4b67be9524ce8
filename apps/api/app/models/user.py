from typing import List, Optional

from beanie import (
    Delete,
    Document,
    Indexed,
    Insert,
    Link,
    PydanticObjectId,
    Replace,
    Save,
    after_event,
    before_event,
)
from beanie.operators import In
from loguru import logger
from pydantic import BaseModel, EmailStr, Field, PrivateAttr, computed_field, field_validator
from pymongo import ASCENDING, IndexModel

from app.db.plugins import Timestamps
from app.models.post import Post
from app.services.security import hash_password

MIN_AGE = 18
MAX_AGE = 100
BCRYPT_MAX_BYTES = 72


def check_password_length(value: Optional[str]) -> Optional[str]:
    # bcrypt only looks at the first 72 bytes
    if value is not None and len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


class ProfileImage(BaseModel):
    data: bytes
    content_type: str = "application/octet-stream"


class PasswordHolder(BaseModel):
    """
    Keeps a bcrypt hash in ``password``.

    Plain text only comes in through ``set_password``; that marks it so the
    next insert / save hashes it. Whatever was loaded from the collection is
    written back untouched.
    """

    password: Optional[str] = None
    _password_changed: bool = PrivateAttr(default=False)

    @field_validator("password")
    @classmethod
    def _bcrypt_limit(cls, v: Optional[str]) -> Optional[str]:
        return check_password_length(v)

    def set_password(self, plain: Optional[str]) -> None:
        self.password = check_password_length(plain)
        self._password_changed = plain is not None

    @before_event(Insert, Replace, Save)
    def hash_new_password(self) -> None:
        if self._password_changed and self.password:
            self.password = hash_password(self.password)
        self._password_changed = False


class User(Document, Timestamps, PasswordHolder):
    name: Optional[str] = None
    email: Indexed(EmailStr, unique=True)
    age: Optional[int] = Field(default=None, ge=MIN_AGE, le=MAX_AGE)
    profile_image: Optional[ProfileImage] = None
    posts: List[Link[Post]] = Field(default_factory=list)

    class Settings:
        name = "users"
        indexes = [IndexModel([("age", ASCENDING), ("name", ASCENDING)])]

    def post_ids(self) -> List[PydanticObjectId]:
        return [p.ref.id if isinstance(p, Link) else p.id for p in self.posts]

    @computed_field
    @property
    def post_count(self) -> int:
        return len(self.posts)

    @computed_field
    @property
    def email_domain(self) -> Optional[str]:
        return self.email.rpartition("@")[2] or None

    @computed_field
    @property
    def has_profile_image(self) -> bool:
        return self.profile_image is not None

    @after_event(Insert)
    def log_created(self) -> None:
        logger.info("User {} saved", self.id)

    @before_event(Delete)
    def log_removal(self) -> None:
        logger.info("Deleting user {} with {} post(s)", self.id, len(self.posts))

    @after_event(Delete)
    async def remove_posts(self) -> None:
        ids = self.post_ids()
        if not ids:
            return
        result = await Post.find(In("_id", ids)).delete()
        logger.info("Removed {} posts of deleted user {}", result.deleted_count, self.id)


class BasicUser(Document, Timestamps, PasswordHolder):
    """Same collection, the minimal shape used by the getting-started script."""

    name: Optional[str] = None
    email: EmailStr

    class Settings:
        name = "users"
