from typing import Annotated, Optional

from beanie import Document, Indexed
from pydantic import Field

from app.db.plugins import Timestamps


class Post(Document, Timestamps):
    title: Annotated[str, Indexed()] = Field(..., min_length=1, max_length=200)
    body: Optional[str] = None

    class Settings:
        name = "posts"
