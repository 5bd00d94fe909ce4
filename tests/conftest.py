"""
Shared fixtures for the API tests.

The routers talk to MongoDB through motor; here ``get_db`` is overridden with
a small in-memory stand-in that implements just the collection calls the
routers make.
"""
import copy
import re
from datetime import datetime

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import create_access_token
from database import get_db
from main import app


class InsertOneResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class UpdateResult:
    def __init__(self, matched_count):
        self.matched_count = matched_count
        self.modified_count = matched_count


class DeleteResult:
    def __init__(self, deleted_count):
        self.deleted_count = deleted_count


def matches(doc: dict, query: dict) -> bool:
    for key, cond in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
            continue

        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$regex":
                    flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                    if not isinstance(value, str) or not re.search(arg, value, flags):
                        return False
                elif op == "$options":
                    continue
                elif op == "$ne":
                    if value == arg:
                        return False
                elif op == "$in":
                    if value not in arg:
                        return False
                else:
                    raise NotImplementedError(op)
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for key, direction in reversed(keys):
            self._docs.sort(key=lambda d: (d.get(key) is None, d.get(key) or ""), reverse=direction < 0)
        return self

    def skip(self, n):
        self._docs = self._docs[n:]
        return self

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self):
        self.docs = []

    async def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return InsertOneResult(doc["_id"])

    async def find_one(self, query):
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if matches(d, query or {})])

    async def count_documents(self, query):
        return sum(1 for d in self.docs if matches(d, query))

    async def update_one(self, query, update):
        for doc in self.docs:
            if matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return UpdateResult(1)
        return UpdateResult(0)

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if matches(doc, query):
                del self.docs[i]
                return DeleteResult(1)
        return DeleteResult(0)


class FakeDatabase:
    def __init__(self):
        self.users = FakeCollection()
        self.staff = FakeCollection()


def bearer(user_id) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def client(db):
    async def override_get_db():
        return db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _add_user(db, role):
    user_id = ObjectId()
    db.users.docs.append(
        {
            "_id": user_id,
            "name": f"{role} user",
            "email": f"{role}@example.com",
            "role": role,
            "created_at": datetime.utcnow(),
        }
    )
    return user_id


@pytest.fixture
def admin_headers(db):
    return bearer(_add_user(db, "admin"))


@pytest.fixture
def user_headers(db):
    return bearer(_add_user(db, "staff"))


@pytest.fixture
def new_staff(client, admin_headers):
    """Create a staff member through the API and return its JSON."""

    def create(**fields):
        payload = {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "role": "Doctor",
            "department": "Cardiology",
            "email": "ada@example.com",
        }
        payload.update(fields)
        res = client.post("/api/staff", json=payload, headers=admin_headers)
        assert res.status_code == 200, res.text
        return res.json()

    return create
