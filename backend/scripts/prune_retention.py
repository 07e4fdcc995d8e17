#!/usr/bin/env python3
"""
Retention pruning for activity events and metric buckets.

Nothing in the API deletes old analytics data on its own; schedule this
script (cron, k8s CronJob...) instead.

Usage:
    python scripts/prune_retention.py [--activity-days N] [--metrics-days N] [--dry-run]

Defaults come from ACTIVITY_RETENTION_DAYS / METRICS_RETENTION_DAYS.
"""

import argparse
import os
import sys
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)) + '/..')

from document_store import DocumentStore
from repo_activity import ActivityLogRepo
from repo_metrics import MetricsRepo
from service_analytics import AnalyticsService
from settings import settings


def main(activity_days: int, metrics_days: int, dry_run: bool = False) -> int:
    now = datetime.now(timezone.utc)
    activity_cutoff = now - timedelta(days=activity_days)
    metrics_cutoff = (now - timedelta(days=metrics_days)).date()

    store = DocumentStore(
        settings.mongo_uri(), settings.mongo_database, timeout_ms=settings.mongo_timeout_ms
    ).open()
    try:
        svc = AnalyticsService(store, ActivityLogRepo(store), MetricsRepo(store))
        if dry_run:
            old_events = store.activity_events.count_documents({"timestamp": {"$lt": activity_cutoff}})
            print(f"Would delete {old_events} activity events older than {activity_cutoff.isoformat()}")
            print(f"Would prune metric buckets dated before {metrics_cutoff.isoformat()}")
            return 0

        deleted = svc.prune_activity(activity_cutoff)
        print(f"Deleted {deleted} activity events older than {activity_cutoff.isoformat()}")
        for metric_type, count in svc.prune_all_metrics(metrics_cutoff).items():
            print(f"Deleted {count} '{metric_type}' buckets dated before {metrics_cutoff.isoformat()}")
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delete analytics data past its retention window")
    parser.add_argument("--activity-days", type=int, default=settings.activity_retention_days)
    parser.add_argument("--metrics-days", type=int, default=settings.metrics_retention_days)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    sys.exit(main(args.activity_days, args.metrics_days, args.dry_run))
