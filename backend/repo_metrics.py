"""
Repository: MongoDB operations for the `analytics` collection.

One `MetricBucket` exists per (metricType, date). `find_or_create` keeps
that true under concurrent callers by doing a single upsert against the
unique `metric_type_date_unique` index instead of a find followed by an
insert. When two upserts race, MongoDB rejects the loser with a duplicate
key error; the loser then reads the winner's bucket.

`update_metrics` and `save` replace documents wholesale. There is no
field-level merge of `metrics`.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from document_store import DocumentStore
from errors import NotFound, StoreUnavailable, WriteFailure
from logger import setup_logger
from models import MetricBucket, TimeSeriesPoint, day_start

logger = setup_logger(__name__)


def _object_id(bucket_id: str) -> ObjectId:
    try:
        return ObjectId(bucket_id)
    except (InvalidId, TypeError) as e:
        raise NotFound(f"Analytics data not found with id: {bucket_id}") from e


class MetricsRepo:
    """DB access only for metric buckets."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def find_or_create(self, metric_type: str, day: date) -> MetricBucket:
        """Return the bucket for (metric_type, day), creating an empty one if absent.

        Calling this twice with the same key returns the same bucket id.
        """

        key = {"metricType": metric_type, "date": day_start(day)}
        now = datetime.now(timezone.utc)
        collection = self.store.metric_buckets
        try:
            try:
                doc = collection.find_one_and_update(
                    key,
                    {
                        "$setOnInsert": {
                            "createdAt": now,
                            "updatedAt": now,
                            "metrics": {},
                            "timeSeriesData": [],
                        }
                    },
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                # Lost the upsert race; the other caller's bucket is the one.
                logger.info(
                    "Concurrent create for metricType=%s date=%s, reading existing bucket",
                    metric_type, day,
                )
                doc = collection.find_one(key)
        except PyMongoError as e:
            logger.exception(
                "Error finding/creating analytics data for metricType=%s date=%s",
                metric_type, day,
            )
            raise StoreUnavailable(f"Failed to find or create metric bucket: {e}") from e

        if doc is None:
            raise StoreUnavailable(
                f"Metric bucket for {metric_type}/{day} vanished during find-or-create"
            )
        return MetricBucket.from_document(doc)

    def find_by_id(self, bucket_id: str) -> Optional[MetricBucket]:
        try:
            oid = _object_id(bucket_id)
        except NotFound:
            return None
        try:
            doc = self.store.metric_buckets.find_one({"_id": oid})
        except PyMongoError as e:
            logger.exception("Error loading analytics data with id=%s", bucket_id)
            raise StoreUnavailable(f"Failed to load metric bucket: {e}") from e
        return MetricBucket.from_document(doc) if doc else None

    def save(self, bucket: MetricBucket) -> MetricBucket:
        """Insert a new bucket or replace an existing one by id.

        `created_at` is set only when missing; `updated_at` is always
        refreshed. Replacement is whole-document.
        """

        now = datetime.now(timezone.utc)
        if bucket.created_at is None:
            bucket.created_at = now
        bucket.updated_at = now

        collection = self.store.metric_buckets
        try:
            if bucket.id is None:
                result = collection.insert_one(bucket.to_document())
                bucket.id = str(result.inserted_id)
            else:
                collection.replace_one({"_id": _object_id(bucket.id)}, bucket.to_document())
        except PyMongoError as e:
            logger.exception(
                "Error saving analytics data metricType=%s date=%s id=%s",
                bucket.metric_type, bucket.day, bucket.id,
            )
            raise WriteFailure(f"Failed to save metric bucket: {e}") from e
        return bucket

    def update_metrics(self, bucket_id: str, metrics: Dict[str, Any]) -> MetricBucket:
        """Replace the bucket's whole metrics map and return the stored result.

        Keys present before but missing from `metrics` are dropped.
        """

        oid = _object_id(bucket_id)
        collection = self.store.metric_buckets
        try:
            existing = collection.find_one({"_id": oid})
            if existing is None:
                raise NotFound(f"Analytics data not found with id: {bucket_id}")

            bucket = MetricBucket.from_document(existing)
            bucket.metrics = metrics
            bucket.updated_at = datetime.now(timezone.utc)

            doc = collection.find_one_and_replace(
                {"_id": oid},
                bucket.to_document(),
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.exception("Error updating metrics for analytics data with id=%s", bucket_id)
            raise StoreUnavailable(f"Failed to update metrics: {e}") from e

        if doc is None:
            raise NotFound(f"Analytics data not found with id: {bucket_id}")
        return MetricBucket.from_document(doc)

    def append_sample(self, bucket_id: str, sample: TimeSeriesPoint) -> MetricBucket:
        """Push one sample onto `timeSeriesData` and return the updated bucket."""

        oid = _object_id(bucket_id)
        try:
            doc = self.store.metric_buckets.find_one_and_update(
                {"_id": oid},
                {
                    "$push": {"timeSeriesData": sample.to_document()},
                    "$set": {"updatedAt": datetime.now(timezone.utc)},
                },
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.exception("Error appending time-series sample to analytics data id=%s", bucket_id)
            raise StoreUnavailable(f"Failed to append sample: {e}") from e

        if doc is None:
            raise NotFound(f"Analytics data not found with id: {bucket_id}")
        return MetricBucket.from_document(doc)

    def find_by_date_range(self, metric_type: str, start: date, end: date) -> List[MetricBucket]:
        """Buckets with `start <= date < end`, oldest first."""

        query = {
            "metricType": metric_type,
            "date": {"$gte": day_start(start), "$lt": day_start(end)},
        }
        try:
            cursor = self.store.metric_buckets.find(query).sort("date", ASCENDING)
            return [MetricBucket.from_document(doc) for doc in cursor]
        except PyMongoError as e:
            logger.exception(
                "Error finding analytics data for metricType=%s range=[%s, %s)",
                metric_type, start, end,
            )
            raise StoreUnavailable(f"Failed to read metric buckets: {e}") from e

    def metric_types(self) -> List[str]:
        try:
            return sorted(self.store.metric_buckets.distinct("metricType"))
        except PyMongoError as e:
            logger.exception("Error listing metric types")
            raise StoreUnavailable(f"Failed to list metric types: {e}") from e

    def delete_older_than(self, metric_type: str, cutoff: date) -> int:
        """Delete buckets of `metric_type` dated strictly before `cutoff`."""

        try:
            result = self.store.metric_buckets.delete_many(
                {"metricType": metric_type, "date": {"$lt": day_start(cutoff)}}
            )
        except PyMongoError as e:
            logger.exception(
                "Error deleting analytics data metricType=%s older than %s", metric_type, cutoff
            )
            raise StoreUnavailable(f"Failed to delete metric buckets: {e}") from e
        return result.deleted_count
