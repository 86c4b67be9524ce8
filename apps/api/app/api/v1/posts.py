from fastapi import APIRouter, HTTPException, Query, status
from typing import List, Optional

from app.utils.object_id import parse_object_id
from app.db import repos
from app.schemas.post import PostCreate, PostOut
from app.services.user_query import paginate

router = APIRouter(tags=["posts"])

@router.post("/posts", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(payload: PostCreate):
    post = await repos.create_post(payload.model_dump(exclude_none=True))
    return PostOut.from_document(post)

@router.get("/posts", response_model=List[PostOut])
async def list_posts(page: int = Query(1, ge=1), limit: Optional[int] = Query(None, ge=1)):
    skip, limit = paginate(page, limit)
    posts = await repos.list_posts(skip=skip, limit=limit)
    return [PostOut.from_document(p) for p in posts]

@router.post("/users/{user_id}/posts", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post_for_user(user_id: str, payload: PostCreate):
    oid = parse_object_id(user_id, "user_id")
    try:
        post = await repos.create_post_for_user(oid, payload.model_dump(exclude_none=True))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PostOut.from_document(post)
