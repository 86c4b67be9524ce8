from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.core.config import settings

SORTABLE_FIELDS = {"name", "email", "age", "created_at", "updated_at"}


def build_user_filter(
    name: Optional[str] = None,
    names: Optional[Sequence[str]] = None,
    exclude_name: Optional[str] = None,
    email_contains: Optional[str] = None,
    name_prefix: Optional[str] = None,
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
    match_any: bool = False,
) -> Dict[str, Any]:
    """
    Translate list/count query params into a Mongo filter.
    Clauses are AND-ed; ``match_any`` OR-s them instead.
    """
    clauses: List[Dict[str, Any]] = []

    if name is not None:
        clauses.append({"name": {"$eq": name}})
    if names:
        clauses.append({"name": {"$in": list(names)}})
    if exclude_name is not None:
        clauses.append({"name": {"$ne": exclude_name}})
    if email_contains:
        clauses.append({"email": {"$regex": re.escape(email_contains), "$options": "i"}})
    if name_prefix:
        clauses.append({"name": {"$regex": "^" + re.escape(name_prefix), "$options": "i"}})

    age: Dict[str, int] = {}
    if min_age is not None:
        age["$gte"] = min_age
    if max_age is not None:
        age["$lte"] = max_age
    if age:
        clauses.append({"age": age})

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$or" if match_any else "$and": clauses}


def parse_sort(raw: Optional[str]) -> List[Tuple[str, int]]:
    """'-age,name' -> [('age', -1), ('name', 1)]"""
    if not raw:
        return []

    out: List[Tuple[str, int]] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        direction = -1 if part.startswith("-") else 1
        field = part.lstrip("+-")
        if field not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort by '{field}'")
        out.append((field, direction))
    return out


def paginate(page: int = 1, limit: Optional[int] = None) -> Tuple[int, int]:
    """1-based page number -> (skip, limit)."""
    page = max(1, page)
    if not limit or limit < 1:
        limit = settings.DEFAULT_PAGE_SIZE
    limit = min(limit, settings.MAX_PAGE_SIZE)
    return (page - 1) * limit, limit
