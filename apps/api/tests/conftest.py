"""
In-memory stand-ins for the PyMongo async client used by the tests.

Only the parts the app and Beanie touch are implemented: equality and the
handful of query operators the user filters produce, $set / $unset
updates, unique indexes, sessions with transaction state, simple
match/project/sort pipelines and canned results for grouping pipelines.
"""
from __future__ import annotations

import copy
import re
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError, InvalidOperation

from app.core.config import settings
from app.db import mongo, repos
from app.main import create_app

SIMPLE_STAGES = {"$match", "$project", "$sort", "$skip", "$limit"}


def _match_ops(value: Any, ops: Dict[str, Any]) -> bool:
    for op, arg in ops.items():
        if op == "$options":
            continue
        if op == "$eq":
            ok = value == arg
        elif op == "$ne":
            ok = value != arg
        elif op == "$in":
            ok = value in arg
        elif op == "$gte":
            ok = value is not None and value >= arg
        elif op == "$lte":
            ok = value is not None and value <= arg
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in ops.get("$options", "") else 0
            ok = isinstance(value, str) and re.search(arg, value, flags) is not None
        else:
            raise NotImplementedError(op)
        if not ok:
            return False
    return True


def matches(doc: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    for key, cond in filter.items():
        if key == "$and":
            if not all(matches(doc, c) for c in cond):
                return False
        elif key == "$or":
            if not any(matches(doc, c) for c in cond):
                return False
        elif isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not _match_ops(doc.get(key), cond):
                return False
        elif doc.get(key) != cond:
            return False
    return True


def _project(doc: Dict[str, Any], projection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not projection:
        return copy.deepcopy(doc)
    keep = {k for k, v in projection.items() if v}
    keep.add("_id")
    return {k: copy.deepcopy(v) for k, v in doc.items() if k in keep}


def _apply_update(doc: Dict[str, Any], update: Dict[str, Any]) -> None:
    for op, fields in update.items():
        if op == "$set":
            doc.update(copy.deepcopy(fields))
        elif op == "$unset":
            for key in fields:
                doc.pop(key, None)
        else:
            raise NotImplementedError(op)


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def sort(self, keys, direction=None):
        if isinstance(keys, str):
            keys = [(keys, direction or 1)]
        for field, order in reversed(list(keys)):
            self._docs.sort(
                key=lambda d: (d.get(field) is not None, d.get(field)),
                reverse=order < 0,
            )
        return self

    def skip(self, n: int):
        self._docs = self._docs[n:]
        return self

    def limit(self, n: int):
        if n:
            self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return list(self._docs if length is None else self._docs[:length])

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.indexes: Dict[str, SimpleNamespace] = {}
        self.pipelines: List[List[Dict[str, Any]]] = []
        self.aggregate_results: List[Dict[str, Any]] = []
        self.sessions: List[Any] = []
        self.insert_error: Optional[Exception] = None

    def _track(self, session):
        if session is not None:
            self.sessions.append(session)

    def _check_unique(self, doc: Dict[str, Any]) -> None:
        for index in self.indexes.values():
            if not index.unique:
                continue
            for other in self.docs:
                if other is not doc and all(other.get(f) == doc.get(f) for f in index.fields):
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name} index: {index.name}",
                        code=11000,
                    )

    async def index_information(self):
        info = {"_id_": {"key": [("_id", 1)]}}
        for index in self.indexes.values():
            info[index.name] = {"key": list(index.keys), "unique": index.unique}
        return info

    async def create_indexes(self, models, session=None, **kwargs):
        names = []
        for model in models:
            definition = model.document
            keys = list(definition["key"].items())
            self.indexes[definition["name"]] = SimpleNamespace(
                name=definition["name"],
                keys=keys,
                fields=[k for k, _ in keys],
                unique=definition.get("unique", False),
            )
            names.append(definition["name"])
        return names

    async def insert_one(self, doc: Dict[str, Any], session=None, **kwargs):
        self._track(session)
        if self.insert_error is not None:
            raise self.insert_error
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self._check_unique(stored)
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one(self, filter: Optional[Dict[str, Any]] = None, projection=None, session=None, **kwargs):
        self._track(session)
        for doc in self.docs:
            if matches(doc, filter or {}):
                return _project(doc, projection)
        return None

    def find(
        self,
        filter: Optional[Dict[str, Any]] = None,
        projection=None,
        sort=None,
        skip: int = 0,
        limit: int = 0,
        session=None,
        **kwargs,
    ):
        self._track(session)
        cursor = FakeCursor([_project(d, projection) for d in self.docs if matches(d, filter or {})])
        if sort:
            cursor.sort(sort)
        return cursor.skip(skip or 0).limit(limit or 0)

    async def count_documents(self, filter: Dict[str, Any], session=None, **kwargs):
        return sum(1 for d in self.docs if matches(d, filter))

    async def find_one_and_update(
        self,
        filter: Dict[str, Any],
        update: Dict[str, Any],
        session=None,
        return_document=False,
        upsert: bool = False,
        **kwargs,
    ):
        self._track(session)
        for doc in self.docs:
            if matches(doc, filter):
                before = copy.deepcopy(doc)
                _apply_update(doc, update)
                try:
                    self._check_unique(doc)
                except DuplicateKeyError:
                    doc.clear()
                    doc.update(before)
                    raise
                return copy.deepcopy(doc if return_document else before)
        if not upsert:
            return None
        new = {k: v for k, v in filter.items() if not k.startswith("$") and not isinstance(v, dict)}
        _apply_update(new, update)
        await self.insert_one(new, session=session)
        return copy.deepcopy(new) if return_document else None

    async def delete_one(self, filter: Dict[str, Any], session=None, **kwargs):
        self._track(session)
        for i, doc in enumerate(self.docs):
            if matches(doc, filter):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, filter: Dict[str, Any], session=None, **kwargs):
        self._track(session)
        keep = [d for d in self.docs if not matches(d, filter)]
        deleted = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=deleted)

    async def aggregate(self, pipeline: List[Dict[str, Any]], session=None, **kwargs):
        self._track(session)
        self.pipelines.append(pipeline)
        if not all(next(iter(stage)) in SIMPLE_STAGES for stage in pipeline):
            return FakeCursor(copy.deepcopy(self.aggregate_results))

        cursor = FakeCursor(copy.deepcopy(self.docs))
        for stage in pipeline:
            op, arg = next(iter(stage.items()))
            if op == "$match":
                cursor = FakeCursor([d for d in cursor._docs if matches(d, arg)])
            elif op == "$project":
                cursor = FakeCursor([_project(d, arg) for d in cursor._docs])
            elif op == "$sort":
                cursor.sort(list(arg.items()))
            elif op == "$skip":
                cursor.skip(arg)
            else:
                cursor.limit(arg)
        return cursor


class FakeDatabase:
    def __init__(self, name: str, client: "FakeMongoClient"):
        self.name = name
        self.client = client
        self.collections: Dict[str, FakeCollection] = {}
        self.ping_error: Optional[Exception] = None

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def command(self, command, *args, **kwargs):
        name = next(iter(command)) if isinstance(command, dict) else command
        if name == "ping" and self.ping_error is not None:
            raise self.ping_error
        if name == "buildInfo":
            return {"version": "7.0.0", "ok": 1.0}
        return {"ok": 1.0}

    async def list_collection_names(self, **kwargs):
        return list(self.collections)


class FakeSession:
    """Tracks transaction state the way the driver enforces it."""

    def __init__(self, commit_error: Optional[Exception] = None):
        self.state = "none"
        self.commit_error = commit_error
        self.committed = False
        self.aborted = False
        self.ended = False

    @property
    def in_transaction(self) -> bool:
        return self.state == "in_progress"

    async def start_transaction(self):
        if self.in_transaction:
            raise InvalidOperation("Transaction already in progress")
        self.state = "in_progress"

    async def commit_transaction(self):
        if self.state == "aborted":
            raise InvalidOperation("Cannot call commitTransaction after calling abortTransaction")
        self.state = "committed"
        if self.commit_error is not None:
            raise self.commit_error
        self.committed = True

    async def abort_transaction(self):
        if self.state == "committed":
            raise InvalidOperation("Cannot call abortTransaction after calling commitTransaction")
        if self.state == "aborted":
            raise InvalidOperation("Cannot call abortTransaction twice")
        self.state = "aborted"
        self.aborted = True

    async def end_session(self):
        self.ended = True


class FakeMongoClient:
    def __init__(self):
        self.databases: Dict[str, FakeDatabase] = {}
        self.admin = FakeDatabase("admin", self)
        self.sessions: List[FakeSession] = []
        self.commit_error: Optional[Exception] = None
        self.metadata: List[Any] = []
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name, self)
        return self.databases[name]

    def append_metadata(self, metadata):
        self.metadata.append(metadata)

    def start_session(self):
        session = FakeSession(commit_error=self.commit_error)
        self.sessions.append(session)
        return session

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(settings, "PASSWORD_HASH_ROUNDS", 4)


@pytest.fixture
def fake_mongo(monkeypatch) -> FakeMongoClient:
    client = FakeMongoClient()
    monkeypatch.setattr(mongo, "_client", client)
    return client


@pytest.fixture
def fake_db(fake_mongo) -> FakeDatabase:
    return fake_mongo[mongo.get_db_name()]


@pytest_asyncio.fixture
async def models(fake_db) -> FakeDatabase:
    await repos.init_models()
    return fake_db


@pytest.fixture
def client(fake_mongo):
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def create_user(client):
    def _create(email: str = "sai1234@gmail.com", **fields):
        data = {"email": email, **{k: str(v) for k, v in fields.items()}}
        resp = client.post("/api/v1/users", data=data)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
