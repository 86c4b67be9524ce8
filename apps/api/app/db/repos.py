from typing import Any, Dict, List, Optional, Sequence, Tuple

from beanie import init_beanie
from bson import ObjectId
from loguru import logger

from app.db.mongo import get_client, get_db
from app.models.post import Post
from app.models.user import BasicUser, User

DOCUMENT_MODELS = [User, BasicUser, Post]

AGE_BUCKETS = [18, 30, 45, 60, 101]

async def init_models():
    """Bind the documents to the current database and create their indexes."""
    await init_beanie(database=get_db(), document_models=DOCUMENT_MODELS)

# ---- users ---------------------------------------------------------------

async def populate_posts(users: List[User]) -> List[User]:
    for user in users:
        await user.fetch_link("posts")
        # posts that were deleted come back as unresolved links
        user.posts = [p for p in user.posts if isinstance(p, Post)]
    return users

async def create_user(data: Dict[str, Any]) -> User:
    user = User(**data)
    user.set_password(data.get("password"))
    return await user.insert()

async def list_users(
    filter: Dict[str, Any],
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    skip: int = 0,
    limit: int = 0,
    populate: bool = False,
) -> List[User]:
    users = await User.find(filter, sort=list(sort) if sort else None, skip=skip, limit=limit).to_list()
    if populate:
        users = await populate_posts(users)
    return users

async def count_users(filter: Dict[str, Any]) -> int:
    return await User.find(filter).count()

async def get_user(user_id: ObjectId, populate: bool = False) -> Optional[User]:
    user = await User.get(user_id)
    if user and populate:
        await populate_posts([user])
    return user

async def update_user(user_id: ObjectId, changes: Dict[str, Any]) -> Optional[User]:
    """
    Apply ``changes`` to one user. The stored document merged with the changes
    is validated first, so bounds and required fields still hold.
    """
    user = await User.get(user_id)
    if user is None:
        return None

    merged = User.model_validate({**user.model_dump(), **changes})
    for key, value in changes.items():
        if key == "password":
            user.set_password(value)
        else:
            setattr(user, key, getattr(merged, key))
    return await user.save()

async def delete_user(user_id: ObjectId) -> bool:
    """Delete hooks on User take the user's posts with it."""
    user = await User.get(user_id)
    if user is None:
        return False
    await user.delete()
    return True

# ---- posts ---------------------------------------------------------------

async def create_post(data: Dict[str, Any]) -> Post:
    return await Post(**data).insert()

async def list_posts(skip: int = 0, limit: int = 0) -> List[Post]:
    return await Post.find_all(sort=[("created_at", -1)], skip=skip, limit=limit).to_list()

async def create_post_for_user(user_id: ObjectId, data: Dict[str, Any]) -> Post:
    """
    Insert a post and link it from the user in one transaction.
    Needs a replica set or sharded cluster (transactions are not available on
    a standalone mongod).
    """
    session = get_client().start_session()
    await session.start_transaction()
    try:
        user = await User.get(user_id, session=session)
        if user is None:
            raise LookupError("User not found")
        post = await Post(**data).insert(session=session)
        user.posts.append(post)
        await user.save(session=session)
        await session.commit_transaction()
    except Exception as e:
        # a failed commit already ended the transaction
        if session.in_transaction:
            await session.abort_transaction()
        logger.warning("Transaction aborted for user {}: {}", user_id, e)
        raise
    finally:
        await session.end_session()
    return post

# ---- aggregation ---------------------------------------------------------

async def user_age_stats() -> Dict[str, Any]:
    pipeline = [
        {"$match": {"age": {"$ne": None}}},
        {
            "$group": {
                "_id": None,
                "count": {"$sum": 1},
                "avg_age": {"$avg": "$age"},
                "min_age": {"$min": "$age"},
                "max_age": {"$max": "$age"},
            }
        },
        {"$project": {"_id": 0}},
    ]
    rows = await User.aggregate(pipeline).to_list()
    if not rows:
        return {"count": 0, "avg_age": None, "min_age": None, "max_age": None}
    return rows[0]

async def user_age_buckets() -> List[Dict[str, Any]]:
    pipeline = [
        {"$match": {"age": {"$ne": None}}},
        {
            "$bucket": {
                "groupBy": "$age",
                "boundaries": AGE_BUCKETS,
                "default": "other",
                "output": {"count": {"$sum": 1}},
            }
        },
    ]
    rows = await User.aggregate(pipeline).to_list()
    return [{"bucket": r["_id"], "count": r["count"]} for r in rows]

async def posts_per_user(limit: int = 10) -> List[Dict[str, Any]]:
    pipeline = [
        {
            "$lookup": {
                "from": Post.get_collection_name(),
                # links are stored as DBRefs
                "localField": "posts.$id",
                "foreignField": "_id",
                "as": "post_docs",
            }
        },
        {
            "$project": {
                "name": 1,
                "email": 1,
                "post_count": {"$size": "$post_docs"},
                "titles": "$post_docs.title",
            }
        },
        {"$sort": {"post_count": -1, "name": 1}},
        {"$limit": limit},
    ]
    rows = await User.aggregate(pipeline).to_list()
    return [
        {
            "id": str(r["_id"]),
            "name": r.get("name"),
            "email": r.get("email"),
            "post_count": r.get("post_count", 0),
            "titles": r.get("titles", []),
        }
        for r in rows
    ]
