import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from errors import NotFound
from models import MetricBucket, TimeSeriesPoint, day_start
from repo_metrics import MetricsRepo

DAY = date(2024, 3, 1)


@pytest.fixture
def repo(store):
    return MetricsRepo(store)


def test_find_or_create_creates_empty_bucket(repo, store):
    bucket = repo.find_or_create("daily_tasks", DAY)

    assert bucket.id is not None
    assert bucket.metric_type == "daily_tasks"
    assert bucket.day == DAY
    assert bucket.metrics == {}
    assert bucket.time_series_data == []
    assert bucket.created_at is not None
    assert bucket.created_at == bucket.updated_at
    assert store.metric_buckets.count_documents({}) == 1


def test_find_or_create_is_idempotent(repo, store):
    first = repo.find_or_create("daily_tasks", DAY)
    second = repo.find_or_create("daily_tasks", DAY)

    assert first.id == second.id
    assert first.created_at == second.created_at
    assert store.metric_buckets.count_documents({}) == 1


def test_find_or_create_distinguishes_keys(repo):
    a = repo.find_or_create("daily_tasks", DAY)
    b = repo.find_or_create("daily_tasks", date(2024, 3, 2))
    c = repo.find_or_create("daily_expenses", DAY)

    assert len({a.id, b.id, c.id}) == 3


def test_concurrent_find_or_create_yields_one_bucket(repo, store):
    workers = 8
    barrier = threading.Barrier(workers)

    def call():
        barrier.wait()
        return repo.find_or_create("page_views", DAY).id

    with ThreadPoolExecutor(max_workers=workers) as pool:
        ids = list(pool.map(lambda _: call(), range(workers)))

    assert len(set(ids)) == 1
    assert store.metric_buckets.count_documents({"metricType": "page_views"}) == 1


def test_find_or_create_reads_winner_after_duplicate_key():
    winner = {
        "_id": ObjectId(),
        "metricType": "page_views",
        "date": day_start(DAY),
        "createdAt": datetime(2024, 3, 1, 0, 0, 1, tzinfo=timezone.utc),
        "updatedAt": datetime(2024, 3, 1, 0, 0, 1, tzinfo=timezone.utc),
        "metrics": {"views": 3},
        "timeSeriesData": [],
    }
    store = MagicMock()
    store.metric_buckets.find_one_and_update.side_effect = DuplicateKeyError("E11000")
    store.metric_buckets.find_one.return_value = winner

    bucket = MetricsRepo(store).find_or_create("page_views", DAY)

    assert bucket.id == str(winner["_id"])
    assert bucket.metrics == {"views": 3}
    store.metric_buckets.find_one_and_update.assert_called_once()


def test_update_metrics_replaces_whole_map(repo):
    bucket = repo.find_or_create("daily_tasks", DAY)
    repo.update_metrics(bucket.id, {"a": 1, "b": 2})

    updated = repo.update_metrics(bucket.id, {"c": 3})

    assert updated.metrics == {"c": 3}
    assert updated.id == bucket.id
    assert updated.created_at == bucket.created_at
    assert updated.updated_at >= bucket.updated_at
    assert repo.find_by_id(bucket.id).metrics == {"c": 3}


def test_update_metrics_keeps_value_kinds(repo):
    bucket = repo.find_or_create("daily_tasks", DAY)
    updated = repo.update_metrics(
        bucket.id,
        {"done": 4, "ratio": 0.5, "streak": True, "label": "good", "split": {"work": 3}},
    )

    assert updated.metrics["done"] == 4 and type(updated.metrics["done"]) is int
    assert updated.metrics["streak"] is True
    assert updated.metrics["split"] == {"work": 3}


def test_update_metrics_missing_bucket(repo):
    with pytest.raises(NotFound):
        repo.update_metrics(str(ObjectId()), {"a": 1})
    with pytest.raises(NotFound):
        repo.update_metrics("not-an-object-id", {"a": 1})


def test_save_inserts_then_replaces(repo, store):
    bucket = MetricBucket(metric_type="daily_expenses", day=DAY, metrics={"total": 12.5})

    saved = repo.save(bucket)
    assert saved.id is not None
    assert saved.created_at is not None
    created_at = repo.find_by_id(saved.id).created_at

    saved.metrics = {"count": 2}
    saved.time_series_data = [TimeSeriesPoint(timestamp=datetime(2024, 3, 1, 8, tzinfo=timezone.utc), values={"x": 1})]
    replaced = repo.save(saved)

    stored = repo.find_by_id(replaced.id)
    assert stored.metrics == {"count": 2}
    assert stored.created_at == created_at
    assert stored.time_series_data[0].values == {"x": 1}
    assert store.metric_buckets.count_documents({}) == 1


def test_append_sample(repo):
    bucket = repo.find_or_create("page_views", DAY)
    ts = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)

    updated = repo.append_sample(bucket.id, TimeSeriesPoint(timestamp=ts, values={"views": 10}))
    updated = repo.append_sample(bucket.id, TimeSeriesPoint(timestamp=ts, values={"views": 12}))

    assert [p.values["views"] for p in updated.time_series_data] == [10, 12]
    assert updated.time_series_data[0].timestamp == ts

    with pytest.raises(NotFound):
        repo.append_sample(str(ObjectId()), TimeSeriesPoint(timestamp=ts))


def test_find_by_date_range_half_open_ascending(repo):
    for d in (date(2024, 2, 29), date(2024, 3, 3), date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 4)):
        repo.find_or_create("daily_tasks", d)
    repo.find_or_create("daily_expenses", date(2024, 3, 2))

    found = repo.find_by_date_range("daily_tasks", date(2024, 3, 1), date(2024, 3, 4))

    assert [b.day for b in found] == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]
    assert all(b.metric_type == "daily_tasks" for b in found)


def test_delete_older_than_is_strict_and_scoped(repo):
    for d in (date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)):
        repo.find_or_create("daily_tasks", d)
    repo.find_or_create("daily_expenses", date(2024, 2, 1))

    assert repo.delete_older_than("daily_tasks", date(2024, 2, 29)) == 1

    remaining = repo.find_by_date_range("daily_tasks", date(2024, 1, 1), date(2025, 1, 1))
    assert [b.day for b in remaining] == [date(2024, 2, 29), date(2024, 3, 1)]
    assert repo.metric_types() == ["daily_expenses", "daily_tasks"]
