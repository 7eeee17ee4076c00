from types import SimpleNamespace

import pytest
from pymongo.errors import AutoReconnect, ServerSelectionTimeoutError


class FakeCollection:
    """Just enough of a pymongo collection for the event store."""

    def __init__(self):
        self.docs = {}
        self.indexes = []
        self.fail_writes = False
        self._next_id = 0

    def create_index(self, key, unique=False):
        self.indexes.append((key, unique))

    def replace_one(self, filter, replacement, upsert=False):
        if self.fail_writes:
            raise AutoReconnect("connection lost")
        key = filter["id"]
        if key in self.docs:
            existing = {k: v for k, v in self.docs[key].items() if k != "_id"}
            modified = existing != replacement
            self.docs[key] = {"_id": self.docs[key]["_id"], **replacement}
            return SimpleNamespace(matched_count=1, modified_count=int(modified), upserted_id=None)
        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        self._next_id += 1
        self.docs[key] = {"_id": self._next_id, **replacement}
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=self._next_id)

    def delete_many(self, filter):
        cutoff = filter["date"]["$lt"]
        doomed = [k for k, d in self.docs.items() if d["date"] < cutoff]
        for k in doomed:
            del self.docs[k]
        return SimpleNamespace(deleted_count=len(doomed))

    def find_one(self, filter):
        doc = self.docs.get(filter["id"])
        return dict(doc) if doc else None

    def count_documents(self, filter):
        return len(self.docs)


class FakeMongoServer:
    """Holds collections across client connections; hands out FakeMongoClient instances."""

    def __init__(self):
        self.collections = {}
        self.clients = []
        self.reachable = True

    def collection(self, database="DuendeDB", name="events"):
        return self.collections.setdefault((database, name), FakeCollection())

    def __call__(self, uri, **kwargs):
        client = FakeMongoClient(self, uri, kwargs)
        self.clients.append(client)
        return client


class FakeMongoClient:
    def __init__(self, server, uri, options):
        self.server = server
        self.uri = uri
        self.options = options
        self.closed = False
        self.admin = SimpleNamespace(command=self._command)

    def _command(self, name):
        if not self.server.reachable:
            raise ServerSelectionTimeoutError("no servers found")
        return {"ok": 1}

    def __getitem__(self, database):
        return _FakeDatabase(self.server, database)

    def close(self):
        self.closed = True


class _FakeDatabase:
    def __init__(self, server, name):
        self.server = server
        self.name = name

    def __getitem__(self, collection):
        return self.server.collection(self.name, collection)


class FakeSource:
    """Event source returning canned candidates per query, or raising for queries mapped to an exception."""

    name = "fake"

    def __init__(self, results):
        self.results = results
        self.calls = []

    def fetch(self, query):
        self.calls.append(query)
        result = self.results.get(query, [])
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def mongo_server():
    return FakeMongoServer()


@pytest.fixture
def quiet_log():
    lines = []

    def log(message, level="INFO"):
        lines.append((level, message))

    log.lines = lines
    return log


@pytest.fixture
def make_source():
    return FakeSource
