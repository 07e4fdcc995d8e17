"""
Pydantic models used across the backend.

Field names are snake_case in Python and camelCase on the wire and in
MongoDB (`userId`, `activityType`, `timeSeriesData`...). Repositories use
`to_document()` / `from_document()` to move between a model and a raw
Mongo document; the store-assigned `_id` is exposed as the string `id`.

Guidelines:
- Metric maps are typed with `MetricValue` rather than `Any` so values
  keep their kind (bool stays bool, int stays int) through validation.
- Datetimes are normalized to timezone-aware UTC. Naive inputs are
  treated as UTC.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    RootModel,
    field_validator,
)
from pydantic.alias_generators import to_camel
from typing_extensions import TypeAliasType

MetricValue = TypeAliasType(
    "MetricValue",
    "Union[StrictBool, StrictInt, StrictFloat, StrictStr, Dict[str, MetricValue], List[MetricValue]]",
)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_start(day: date) -> datetime:
    """Midnight UTC for `day`; BSON has no date-only type."""

    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        # `_id` is handled by the repositories, which own ObjectId conversion
        return self.model_dump(by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        data = dict(doc)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


class ActivityEvent(CamelModel):
    """One user action.

    Fields:
    - `user_id`: owning user (relational id).
    - `activity_type`: free-form tag, e.g. `task_created`, `login`.
    - `timestamp`: set to now (UTC) by `ActivityLogRepo.insert` when absent.
    - `additional_details`: arbitrary JSON context.
    """

    id: Optional[str] = None
    user_id: int
    username: Optional[str] = None
    activity_type: str
    description: Optional[str] = None
    timestamp: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    additional_details: Optional[Dict[str, Any]] = None

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None


class TimeSeriesPoint(CamelModel):
    timestamp: datetime
    values: Dict[str, MetricValue] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)


class MetricBucket(CamelModel):
    """Daily aggregate container keyed by (metric_type, day).

    `day` is serialized as `date`. `metrics` is replaced wholesale by
    `MetricsRepo.update_metrics`; it is never merged field by field.
    """

    id: Optional[str] = None
    metric_type: str
    day: date = Field(alias="date")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metrics: Dict[str, MetricValue] = Field(default_factory=dict)
    time_series_data: List[TimeSeriesPoint] = Field(default_factory=list)

    @field_validator("day", mode="before")
    @classmethod
    def _calendar_day(cls, v):
        # Stored as midnight UTC
        if isinstance(v, datetime):
            return as_utc(v).date()
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc_stamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    def to_document(self) -> Dict[str, Any]:
        doc = super().to_document()
        doc["date"] = day_start(self.day)
        return doc


class MetricsPayload(RootModel[Dict[str, MetricValue]]):
    """Request body for replacing a bucket's metrics map."""


class SampleIn(CamelModel):
    """Request body for appending one time-series sample to a bucket."""

    timestamp: Optional[datetime] = None
    values: Dict[str, MetricValue] = Field(default_factory=dict)


class ExpenseRecord(BaseModel):
    """Read-only row from the relational `expenses` table."""

    user_id: int
    amount: Decimal
    category: str
    expense_date: datetime


class ExpenseSummary(CamelModel):
    total_amount: float
    by_category: Dict[str, float]
    user_id: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None
