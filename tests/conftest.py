"""Shared test fixtures"""
import copy
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import AutoReconnect, DuplicateKeyError

from energy_sync.core.config import Config
from energy_sync.messaging import InMemoryBroker, build_topology

# Unique indexes created by the repositories' ensure_indexes()
UNIQUE_KEYS = {
    "users": [("user_id",)],
    "synced_users": [("user_id",)],
    "devices": [("device_id",)],
    "monitored_devices": [("device_id",)],
    "hourly_consumption": [("device_id", "hour_start")],
}


def _matches(document, query):
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict):
            for op, operand in condition.items():
                if op == "$gte" and not (value is not None and value >= operand):
                    return False
                if op == "$lt" and not (value is not None and value < operand):
                    return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents):
        self._documents = documents

    def sort(self, key, direction=1):
        self._documents.sort(key=lambda d: d[key], reverse=direction < 0)
        return self

    async def to_list(self, length=None):
        return list(self._documents)


class FakeCollection:
    """In-memory stand-in for a motor collection, raising pymongo errors like the driver"""

    def __init__(self, name, unique=()):
        self.name = name
        self.unique = list(unique)
        self.documents = []
        self.calls = []
        self._failures = []
        self.create_index = AsyncMock()
        self.create_indexes = AsyncMock()

    def fail_next(self, times=1, error=None):
        """Make the next ``times`` operations raise ``error`` (AutoReconnect by default)"""
        self._failures.extend([error or AutoReconnect("connection refused")] * times)

    def _before(self, operation):
        self.calls.append(operation)
        if self._failures:
            raise self._failures.pop(0)

    def _check_unique(self, document, ignore=None):
        for fields in self.unique:
            key = tuple(document.get(f) for f in fields)
            for other in self.documents:
                if other is not ignore and tuple(other.get(f) for f in fields) == key:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name}", 11000)

    def _find(self, query):
        return [d for d in self.documents if _matches(d, query)]

    @staticmethod
    def _apply(document, update, inserting=False):
        for key, value in update.get("$set", {}).items():
            document[key] = value
        for key, value in update.get("$inc", {}).items():
            document[key] = document.get(key, 0) + value
        if inserting:
            for key, value in update.get("$setOnInsert", {}).items():
                document[key] = value

    async def insert_one(self, document):
        self._before("insert_one")
        document = copy.deepcopy(document)
        self._check_unique(document)
        self.documents.append(document)
        return SimpleNamespace(inserted_id=len(self.documents))

    async def update_one(self, query, update, upsert=False):
        self._before("update_one")
        matches = self._find(query)
        if matches:
            self._apply(matches[0], update)
            return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

        document = {k: v for k, v in query.items() if not isinstance(v, dict)}
        self._apply(document, update, inserting=True)
        self._check_unique(document)
        self.documents.append(document)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=len(self.documents))

    async def update_many(self, query, update):
        self._before("update_many")
        matches = self._find(query)
        for document in matches:
            self._apply(document, update)
        return SimpleNamespace(matched_count=len(matches), modified_count=len(matches))

    async def delete_one(self, query):
        self._before("delete_one")
        matches = self._find(query)
        if matches:
            self.documents.remove(matches[0])
        return SimpleNamespace(deleted_count=len(matches[:1]))

    async def delete_many(self, query):
        self._before("delete_many")
        matches = self._find(query)
        for document in matches:
            self.documents.remove(document)
        return SimpleNamespace(deleted_count=len(matches))

    async def find_one(self, query, projection=None):
        self._before("find_one")
        matches = self._find(query)
        return copy.deepcopy(matches[0]) if matches else None

    async def count_documents(self, query, limit=0):
        self._before("count_documents")
        count = len(self._find(query))
        return min(count, limit) if limit else count

    def find(self, query=None, projection=None):
        self.calls.append("find")
        return FakeCursor(copy.deepcopy(self._find(query or {})))


class FakeDatabase:
    def __init__(self, name="test_db"):
        self.name = name
        self.collections = {}
        self.command = AsyncMock(return_value={"ok": 1})

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name, UNIQUE_KEYS.get(name, ()))
        return self.collections[name]


class FakeMessage:
    """Delivery double recording how the consumer settled it"""

    def __init__(self, body, message_id="msg-1", correlation_id="corr-1", redelivered=False):
        self.body = body if isinstance(body, bytes) else body.encode("utf-8")
        self.message_id = message_id
        self.correlation_id = correlation_id
        self.redelivered = redelivered
        self.ack = AsyncMock()
        self.nack = AsyncMock()
        self.reject = AsyncMock()


@pytest.fixture
def fake_db():
    """In-memory MongoDB database"""
    return FakeDatabase()


def make_settings(role, **overrides):
    values = {"message_broker_type": "memory", "reconnect_delay": 0.01, **overrides}
    return Config(service_role=role, **values)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def memory_broker_factory():
    def factory(role, **overrides):
        settings = make_settings(role, **overrides)
        return settings, InMemoryBroker(build_topology(settings))
    return factory


@pytest.fixture
def user_created_body():
    return (
        b'{"type": "USER_CREATED", "data": {"id": 42, "role": "client", "name": "Ana Pop",'
        b' "email": "ana@example.com", "avatar_url": null}, "timestamp": "2025-11-17T14:05:00Z"}'
    )


@pytest.fixture
def device_created_body():
    return (
        b'{"type": "DEVICE_CREATED", "data": {"id": 7, "name": "Heat pump", "max_consumption": 2.5},'
        b' "timestamp": "2025-11-17T14:05:00Z"}'
    )


@pytest.fixture
def message_factory():
    return FakeMessage


@pytest.fixture
def db_factory():
    """Separate in-memory databases, one per simulated service"""
    return FakeDatabase
