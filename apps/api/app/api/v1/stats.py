from fastapi import APIRouter, Query
from typing import List

from app.db import repos
from app.schemas.stats import AgeBucket, AgeStats, UserPostCount

router = APIRouter(tags=["stats"])

@router.get("/stats/users/age", response_model=AgeStats)
async def age_stats():
    return await repos.user_age_stats()

@router.get("/stats/users/age-buckets", response_model=List[AgeBucket])
async def age_buckets():
    return await repos.user_age_buckets()

@router.get("/stats/users/posts", response_model=List[UserPostCount])
async def posts_per_user(limit: int = Query(10, ge=1, le=100)):
    return await repos.posts_per_user(limit=limit)
