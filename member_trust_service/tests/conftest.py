import asyncio
import datetime
from typing import Any, Dict, List, Optional

import pytest
from mongomock import MongoClient as MongoMockClient

from member_trust_service.app.service.exceptions import NotificationFailure, StorageFailure
from member_trust_service.app.service.interfaces.account_client import AbstractAccountClient
from member_trust_service.app.service.interfaces.notifier import AbstractNotifier
from member_trust_service.app.service.interfaces.object_store import AbstractObjectStore

TEST_DB_NAME = "member_trust_test_db"
START_TIME = datetime.datetime(2026, 1, 5, 9, 30, tzinfo=datetime.timezone.utc)


# --- Motor-style async access over mongomock ---
# Every call yields to the event loop first, so concurrent tasks interleave the way they would against a server.

class AsyncMongoMockCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def skip(self, count):
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    async def to_list(self, length=None):
        await asyncio.sleep(0)
        documents = list(self._cursor)
        return documents if length is None else documents[:length]


class AsyncMongoMockCollection:
    def __init__(self, collection):
        self.sync = collection

    def find(self, *args, **kwargs):
        return AsyncMongoMockCursor(self.sync.find(*args, **kwargs))

    def aggregate(self, *args, **kwargs):
        return AsyncMongoMockCursor(self.sync.aggregate(*args, **kwargs))

    def __getattr__(self, name):
        operation = getattr(self.sync, name)

        async def call(*args, **kwargs):
            await asyncio.sleep(0)
            return operation(*args, **kwargs)
        return call


class AsyncMongoMockDatabase:
    def __init__(self, database):
        self.sync = database

    def __getitem__(self, name):
        return AsyncMongoMockCollection(self.sync[name])

    async def command(self, *args, **kwargs):
        return {"ok": 1.0}


@pytest.fixture
def mongo_db():
    client = MongoMockClient(tz_aware=True)
    yield AsyncMongoMockDatabase(client[TEST_DB_NAME])
    client.close()


# --- Clock ---

class MutableClock:
    def __init__(self, start: datetime.datetime):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + datetime.timedelta(**kwargs)


@pytest.fixture
def clock():
    return MutableClock(START_TIME)


# --- Collaborators ---

class FakeObjectStore(AbstractObjectStore):
    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.put_calls: List[Dict[str, Any]] = []
        self.delete_calls: List[str] = []
        self.fail_put = False
        self.fail_delete_for: set = set()

    async def put(self, data, path, content_type, metadata):
        self.put_calls.append({"path": path, "content_type": content_type, "metadata": metadata, "size": len(data)})
        if self.fail_put:
            raise StorageFailure()
        self.objects[path] = data
        return path

    async def signed_url(self, storage_ref, ttl_seconds):
        return f"https://objects.test/{storage_ref}?expires_in={ttl_seconds}"

    async def delete(self, storage_ref):
        self.delete_calls.append(storage_ref)
        if storage_ref in self.fail_delete_for:
            raise StorageFailure()
        self.objects.pop(storage_ref, None)


class FakeNotifier(AbstractNotifier):
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.mode = "ok" # ok | fail | hang | skip

    async def notify(self, recipient_id, template_kind, payload):
        self.calls.append({"recipient_id": recipient_id, "template_kind": template_kind, "payload": payload})
        if self.mode == "fail":
            raise NotificationFailure()
        if self.mode == "hang":
            await asyncio.sleep(5)
        return self.mode != "skip"


class FakeAccountClient(AbstractAccountClient):
    def __init__(self):
        self.activated: List[str] = []
        self.fail = False

    async def activate(self, member_id):
        if self.fail:
            raise RuntimeError("account service unavailable")
        self.activated.append(member_id)


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def account_client():
    return FakeAccountClient()


# --- Members ---

@pytest.fixture
def seed_member(mongo_db):
    def _seed(member_id: str, email: Optional[str] = None, phone_number: Optional[str] = None,
              address: Optional[str] = None, display_name: Optional[str] = None, status: str = "PENDING"):
        mongo_db.sync["members"].insert_one({
            "id": member_id,
            "display_name": display_name or member_id.title(),
            "graduation_year": 2006,
            "email": email,
            "phone_number": phone_number,
            "address": address,
            "status": status,
        })
    return _seed
