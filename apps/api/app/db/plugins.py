from __future__ import annotations

from datetime import datetime
from typing import Optional

from beanie import Insert, Replace, Save, before_event
from pydantic import BaseModel


class Timestamps(BaseModel):
    """
    Mix into a Document to keep creation / modification times.

        class Post(Document, Timestamps): ...
    """

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @before_event(Insert, Replace, Save)
    def touch(self) -> None:
        now = datetime.utcnow()
        if self.created_at is None:
            self.created_at = now
        self.updated_at = now
