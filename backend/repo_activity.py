"""
Repository: MongoDB operations for the `user_activities` collection.

This file contains only DB interaction code. It maps `ActivityEvent`
models to Mongo documents and back. Keep business rules (date parsing,
user scoping decisions) in `service_analytics.py`.

Important notes:
- The log is append-only: there is no update path, and deletes happen only
  through `delete_older_than` for retention.
- Every read sorts newest-first on `timestamp`.
- Driver errors are logged with the operation and key parameters, then
  re-raised as `StoreUnavailable` (`WriteFailure` for inserts). Nothing is
  retried.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from document_store import DocumentStore
from errors import StoreUnavailable, WriteFailure
from logger import setup_logger
from models import ActivityEvent, as_utc

logger = setup_logger(__name__)


class ActivityLogRepo:
    """DB access only for activity events.

    Responsibilities:
    - Default a missing timestamp to now (UTC) on insert
    - Copy the store-assigned id back onto the inserted event
    - Run the three read patterns and retention deletes
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def insert(self, event: ActivityEvent) -> ActivityEvent:
        """Persist `event` and return it with `id` populated."""

        if event.timestamp is None:
            event.timestamp = datetime.now(timezone.utc)

        try:
            result = self.store.activity_events.insert_one(event.to_document())
        except PyMongoError as e:
            logger.exception(
                "Error inserting user activity log for userId=%s type=%s",
                event.user_id, event.activity_type,
            )
            raise WriteFailure(f"Failed to insert activity event: {e}") from e

        if result.inserted_id is not None:
            event.id = str(result.inserted_id)
        return event

    def find_by_user(self, user_id: int) -> List[ActivityEvent]:
        return self._find({"userId": user_id}, "find_by_user", user_id=user_id)

    def find_by_activity_type(self, activity_type: str) -> List[ActivityEvent]:
        return self._find(
            {"activityType": activity_type},
            "find_by_activity_type",
            activity_type=activity_type,
        )

    def find_by_date_range(
        self, start: datetime, end: datetime, user_id: Optional[int] = None
    ) -> List[ActivityEvent]:
        """Events with `start <= timestamp < end`, newest first.

        `user_id` narrows the range to one user; by default all users match.
        """

        query: Dict[str, Any] = {"timestamp": {"$gte": as_utc(start), "$lt": as_utc(end)}}
        if user_id is not None:
            query["userId"] = user_id
        return self._find(query, "find_by_date_range", start=start, end=end, user_id=user_id)

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete events with `timestamp < cutoff`; returns the number removed."""

        try:
            result = self.store.activity_events.delete_many(
                {"timestamp": {"$lt": as_utc(cutoff)}}
            )
        except PyMongoError as e:
            logger.exception("Error deleting user activity logs older than %s", cutoff)
            raise StoreUnavailable(f"Failed to delete activity events: {e}") from e
        return result.deleted_count

    def _find(self, query: Dict[str, Any], op: str, **context) -> List[ActivityEvent]:
        try:
            cursor = self.store.activity_events.find(query).sort("timestamp", DESCENDING)
            return [ActivityEvent.from_document(doc) for doc in cursor]
        except PyMongoError as e:
            logger.exception("Error in %s (%s)", op, context)
            raise StoreUnavailable(f"Failed to read activity events: {e}") from e
