"""
MongoDB access layer.

`DocumentStore` owns the single `MongoClient` used by the analytics
repositories. It is created and closed by the application lifespan in
`main.py` and handed to `ActivityLogRepo` / `MetricsRepo` through their
constructors; nothing else opens connections.

Two collections are exposed:
- `user_activities` — append-only activity events
- `analytics` — one metric bucket per (metricType, date)

Usage:
    store = DocumentStore(settings.mongo_uri(), settings.mongo_database)
    store.open()
    try:
        repo = ActivityLogRepo(store)
        ...
    finally:
        store.close()
"""

import re
from typing import Callable, Optional

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection

from errors import ConnectionClosed
from logger import setup_logger

logger = setup_logger(__name__)

ACTIVITY_COLLECTION = "user_activities"
ANALYTICS_COLLECTION = "analytics"

_CREDENTIALS = re.compile(r"(?<=://)[^@]*(?=@)")


def mask_credentials(uri: str) -> str:
    """Replace the `user:password` part of a URI with `****`.

    `mongodb://bob:pw@db:27017/app` -> `mongodb://****@db:27017/app`.
    URIs without credentials come back unchanged.
    """

    if "://" not in uri or "@" not in uri:
        return uri
    return _CREDENTIALS.sub("****", uri, count=1)


class HealthStatus(BaseModel):
    healthy: bool
    message: Optional[str] = None


class DocumentStore:
    """Connection handle for the analytics document database.

    `client_factory` defaults to `pymongo.MongoClient`; tests pass
    `mongomock.MongoClient` instead.
    """

    def __init__(
        self,
        uri: str,
        database: str,
        client_factory: Callable[..., MongoClient] = MongoClient,
        timeout_ms: int = 5000,
    ):
        self.uri = uri
        self.database_name = database
        self._client_factory = client_factory
        self._timeout_ms = timeout_ms
        self._client = None
        self._db = None
        self._closed = False

    def open(self) -> "DocumentStore":
        if self._closed:
            raise ConnectionClosed("Document store has been closed")
        if self._client is not None:
            return self

        logger.info("Initializing MongoDB connection to: %s", mask_credentials(self.uri))
        self._client = self._client_factory(
            self.uri,
            tz_aware=True,
            serverSelectionTimeoutMS=self._timeout_ms,
            socketTimeoutMS=self._timeout_ms,
        )
        self._db = self._client[self.database_name]
        logger.info("Connected to MongoDB database: %s", self.database_name)
        return self

    def close(self) -> None:
        """Release the client. Safe to call more than once or before `open()`."""

        if self._client is not None:
            logger.info("Closing MongoDB connection")
            self._client.close()
        self._client = None
        self._db = None
        self._closed = True

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def _collection(self, name: str) -> Collection:
        if self._db is None:
            state = "closed" if self._closed else "not open"
            raise ConnectionClosed(f"Document store is {state}; cannot access '{name}'")
        return self._db[name]

    @property
    def activity_events(self) -> Collection:
        return self._collection(ACTIVITY_COLLECTION)

    @property
    def metric_buckets(self) -> Collection:
        return self._collection(ANALYTICS_COLLECTION)

    def ensure_indexes(self) -> None:
        """Create the indexes the repositories rely on.

        The unique (metricType, date) index backs the find-or-create upsert
        so two concurrent callers cannot both insert a bucket.
        """

        self.metric_buckets.create_index(
            [("metricType", ASCENDING), ("date", ASCENDING)],
            unique=True,
            name="metric_type_date_unique",
        )
        self.activity_events.create_index(
            [("userId", ASCENDING), ("timestamp", DESCENDING)],
            name="user_timestamp",
        )
        self.activity_events.create_index(
            [("timestamp", DESCENDING)], name="timestamp"
        )

    def ping(self) -> HealthStatus:
        """Zero-cost count against the activity collection.

        Never raises: any failure is reported as an unhealthy status.
        """

        try:
            self.activity_events.count_documents({"_id": "health-check"})
            return HealthStatus(healthy=True)
        except Exception as e:
            logger.error("MongoDB health check failed: %s", mask_credentials(str(e)))
            return HealthStatus(healthy=False, message=f"MongoDB connection failure: {e}")
