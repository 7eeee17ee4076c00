from pymongo import MongoClient
from pymongo.errors import PyMongoError

from duende.errors import StoreError
from duende.utils.dates import to_day


class MongoEventStore:
    """
    Event store backed by a MongoDB collection, keyed on the event `id`.

    The client is opened for one run only:

        with store:
            store.upsert_batch(records)

    Entering the block connects and pings the server; leaving it closes the
    client on every exit path. Every pymongo failure surfaces as StoreError.
    """

    def __init__(self, uri, database, collection, client_factory=MongoClient, timeout_ms=10000):
        self.uri = uri
        self.database = database
        self.collection_name = collection
        self.client_factory = client_factory
        self.timeout_ms = timeout_ms
        self._client = None
        self._collection = None

    def open(self):
        try:
            self._client = self.client_factory(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
            self._client.admin.command("ping")
            self._collection = self._client[self.database][self.collection_name]
            self._collection.create_index("id", unique=True)
        except PyMongoError as e:
            self.close()
            raise StoreError(f"Could not connect to MongoDB: {e}") from e
        return self

    def close(self):
        client, self._client, self._collection = self._client, None, None
        if client is not None:
            client.close()

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def collection(self):
        if self._collection is None:
            raise StoreError("Store is not open; use it inside a `with store:` block")
        return self._collection

    def upsert(self, record):
        """
        Insert the record, or replace the stored one with the same id.
        Returns True if anything changed in the collection.
        """
        document = record.to_document()
        try:
            result = self.collection.replace_one({"id": record.id}, document, upsert=True)
        except PyMongoError as e:
            raise StoreError(f"Upsert failed for {record.id}: {e}") from e
        return result.upserted_id is not None or result.modified_count > 0

    def upsert_batch(self, records):
        """
        Upsert each record in order.
        Returns {"written": n, "skipped": m}; skipped records were already stored unchanged.
        """
        counts = {"written": 0, "skipped": 0}
        for record in records:
            if self.upsert(record):
                counts["written"] += 1
            else:
                counts["skipped"] += 1
        return counts

    def expire_before(self, reference):
        """Delete stored events dated before the reference day. Returns the count removed."""
        cutoff = to_day(reference).isoformat()
        try:
            result = self.collection.delete_many({"date": {"$lt": cutoff}})
        except PyMongoError as e:
            raise StoreError(f"Expiry failed: {e}") from e
        return result.deleted_count
