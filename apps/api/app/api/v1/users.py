from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Response, UploadFile, status

from app.core.config import settings
from app.db import repos
from app.schemas.user import CountOut, UserOut, UserPage, UserUpdate
from app.services.user_query import build_user_filter, paginate, parse_sort
from app.utils.object_id import parse_object_id

router = APIRouter(tags=["users"])

def _user_filter(
    name: Optional[str] = None,
    names: Optional[List[str]] = None,
    exclude_name: Optional[str] = None,
    email_contains: Optional[str] = None,
    name_prefix: Optional[str] = None,
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
    match_any: bool = False,
):
    return build_user_filter(
        name=name,
        names=names,
        exclude_name=exclude_name,
        email_contains=email_contains,
        name_prefix=name_prefix,
        min_age=min_age,
        max_age=max_age,
        match_any=match_any,
    )

@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    email: str = Form(...),
    name: Optional[str] = Form(None),
    age: Optional[int] = Form(None),
    password: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
):
    data = {"name": name, "email": email, "age": age, "password": password}

    if profile_image is not None and profile_image.filename:
        content = await profile_image.read()
        if len(content) > settings.PROFILE_IMAGE_MAX_BYTES:
            raise HTTPException(status_code=413, detail="Profile image too large")
        data["profile_image"] = {
            "data": content,
            "content_type": profile_image.content_type or "application/octet-stream",
        }

    user = await repos.create_user(data)
    return UserOut.from_document(user)

@router.get("/users", response_model=UserPage)
async def list_users(
    name: Optional[str] = None,
    names: Optional[List[str]] = Query(None),
    exclude_name: Optional[str] = None,
    email_contains: Optional[str] = None,
    name_prefix: Optional[str] = None,
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
    match_any: bool = False,
    sort: Optional[str] = Query(None, description="e.g. -age,name"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    populate: Optional[str] = Query(None, description="'posts' to resolve post references"),
):
    filter = _user_filter(name, names, exclude_name, email_contains, name_prefix, min_age, max_age, match_any)
    try:
        order = parse_sort(sort)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    skip, limit = paginate(page, limit)

    users = await repos.list_users(filter, sort=order, skip=skip, limit=limit, populate=populate == "posts")
    total = await repos.count_users(filter)
    return UserPage(
        items=[UserOut.from_document(u) for u in users],
        total=total,
        page=page,
        limit=limit,
    )

@router.get("/users/count", response_model=CountOut)
async def count_users(
    name: Optional[str] = None,
    names: Optional[List[str]] = Query(None),
    exclude_name: Optional[str] = None,
    email_contains: Optional[str] = None,
    name_prefix: Optional[str] = None,
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
    match_any: bool = False,
):
    filter = _user_filter(name, names, exclude_name, email_contains, name_prefix, min_age, max_age, match_any)
    return CountOut(count=await repos.count_users(filter))

@router.get("/users/{user_id}", response_model=UserOut)
async def get_user(user_id: str, populate: Optional[str] = None):
    user = await repos.get_user(parse_object_id(user_id, "user_id"), populate=populate == "posts")
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserOut.from_document(user)

@router.get("/users/{user_id}/profile-image")
async def get_profile_image(user_id: str):
    user = await repos.get_user(parse_object_id(user_id, "user_id"))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    image = user.profile_image
    if image is None:
        raise HTTPException(status_code=404, detail="User has no profile image")
    return Response(content=bytes(image.data), media_type=image.content_type)

@router.patch("/users/{user_id}", response_model=UserOut)
async def update_user(user_id: str, payload: UserUpdate):
    oid = parse_object_id(user_id, "user_id")
    changes = payload.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")

    user = await repos.update_user(oid, changes)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserOut.from_document(user)

@router.delete("/users/{user_id}")
async def delete_user(user_id: str):
    deleted = await repos.delete_user(parse_object_id(user_id, "user_id"))
    if not deleted:
        raise HTTPException(status_code=404, detail="User not found")
    return {"deleted": True, "id": user_id}
