"""
Service / facade layer for activity events and metric buckets.

This module parses and validates boundary inputs (date strings, required
bounds) before calling the repositories. It contains no Mongo queries.

Key responsibilities:
- turn `yyyy-MM-dd` strings into half-open ranges
- route "record metrics for a day" through find-or-create + full replace
- expose retention pruning for the maintenance script
- surface the document store health probe
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from dates import end_of_day_exclusive, parse_day, start_of_day
from document_store import DocumentStore, HealthStatus
from errors import ValidationFailure
from logger import setup_logger
from models import ActivityEvent, MetricBucket, TimeSeriesPoint
from repo_activity import ActivityLogRepo
from repo_metrics import MetricsRepo

logger = setup_logger(__name__)


class AnalyticsService:
    """Validation + date handling in front of the analytics repositories.

    Example usage:
        store = DocumentStore(settings.mongo_uri(), settings.mongo_database).open()
        svc = AnalyticsService(store, ActivityLogRepo(store), MetricsRepo(store))
        svc.upsert_metrics("daily_tasks", "2024-03-01", {"completed": 4})
    """

    def __init__(self, store: DocumentStore, activity: ActivityLogRepo, metrics: MetricsRepo):
        self.store = store
        self.activity = activity
        self.metrics = metrics

    # ---- activity ----

    def record_activity(self, event: ActivityEvent) -> ActivityEvent:
        logger.debug(
            "Recording user activity for userId: %s, type: %s",
            event.user_id, event.activity_type,
        )
        return self.activity.insert(event)

    def list_activity(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[ActivityEvent]:
        """Events for `user_id`, newest first.

        With both dates the result is limited to
        `[start_date 00:00, end_date + 1 day 00:00)`. A single date on its
        own is ignored.
        """

        start_day = parse_day(start_date, "start date")
        end_day = parse_day(end_date, "end date")

        logger.debug("Fetching activity logs for userId: %s", user_id)
        if start_day and end_day:
            return self.activity.find_by_date_range(
                start_of_day(start_day), end_of_day_exclusive(end_day), user_id=user_id
            )
        return self.activity.find_by_user(user_id)

    def list_activity_by_type(self, activity_type: str) -> List[ActivityEvent]:
        return self.activity.find_by_activity_type(activity_type)

    def prune_activity(self, older_than: datetime) -> int:
        deleted = self.activity.delete_older_than(older_than)
        logger.info("Deleted %d activity events older than %s", deleted, older_than)
        return deleted

    # ---- metrics ----

    def list_metrics(
        self, metric_type: str, start_date: Optional[str], end_date: Optional[str]
    ) -> List[MetricBucket]:
        """Buckets for `metric_type` in `[start_date, end_date)`, oldest first."""

        start_day = parse_day(start_date, "start date")
        end_day = parse_day(end_date, "end date")
        if start_day is None or end_day is None:
            raise ValidationFailure("Both startDate and endDate are required")

        logger.debug("Fetching analytics data for metricType: %s", metric_type)
        return self.metrics.find_by_date_range(metric_type, start_day, end_day)

    def upsert_metrics(
        self, metric_type: str, date_str: str, metrics: Dict[str, Any]
    ) -> MetricBucket:
        """Replace the metrics of the (metric_type, date) bucket, creating it if needed."""

        day = self._required_day(date_str)
        logger.debug("Updating metrics for type: %s and date: %s", metric_type, day)
        bucket = self.metrics.find_or_create(metric_type, day)
        return self.metrics.update_metrics(bucket.id, metrics)

    def record_sample(
        self,
        metric_type: str,
        date_str: str,
        values: Dict[str, Any],
        timestamp: Optional[datetime] = None,
    ) -> MetricBucket:
        day = self._required_day(date_str)
        bucket = self.metrics.find_or_create(metric_type, day)
        sample = TimeSeriesPoint(
            timestamp=timestamp or datetime.now(timezone.utc), values=values
        )
        return self.metrics.append_sample(bucket.id, sample)

    def prune_metrics(self, metric_type: str, older_than: date) -> int:
        deleted = self.metrics.delete_older_than(metric_type, older_than)
        logger.info(
            "Deleted %d %s metric buckets older than %s", deleted, metric_type, older_than
        )
        return deleted

    def prune_all_metrics(self, older_than: date) -> Dict[str, int]:
        return {mt: self.prune_metrics(mt, older_than) for mt in self.metrics.metric_types()}

    # ---- health ----

    def health_check(self) -> HealthStatus:
        return self.store.ping()

    @staticmethod
    def _required_day(date_str: Optional[str]) -> date:
        day = parse_day(date_str)
        if day is None:
            raise ValidationFailure("Invalid date format. Use yyyy-MM-dd")
        return day
