from pydantic import BaseModel
from typing import List, Optional, Union

class AgeStats(BaseModel):
    count: int
    avg_age: Optional[float] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None

class AgeBucket(BaseModel):
    bucket: Union[int, str]
    count: int

class UserPostCount(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    post_count: int
    titles: List[str] = []
