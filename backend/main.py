from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request

from document_store import DocumentStore, mask_credentials
from errors import NotFound, StoreUnavailable, ValidationFailure
from logger import setup_logger
from models import ActivityEvent, ExpenseSummary, MetricBucket, MetricsPayload, SampleIn
from repo_activity import ActivityLogRepo
from repo_expenses import ExpenseRepo
from repo_metrics import MetricsRepo
from service_analytics import AnalyticsService
from service_expenses import ExpenseSummaryService
from settings import settings

logger = setup_logger(__name__)

router = APIRouter()


def get_analytics(request: Request) -> AnalyticsService:
    return request.app.state.analytics


def get_expenses(request: Request) -> ExpenseSummaryService:
    return request.app.state.expenses


@router.get("/health")
def health(svc: AnalyticsService = Depends(get_analytics)):
    status = svc.health_check()
    if not status.healthy:
        raise HTTPException(
            status_code=500,
            detail=f"DB health check failed: {mask_credentials(status.message or '')}",
        )
    return {"ok": True}


@router.post("/api/analytics/activity", response_model=ActivityEvent, status_code=201)
def record_activity(event: ActivityEvent, svc: AnalyticsService = Depends(get_analytics)):
    try:
        return svc.record_activity(event)
    except StoreUnavailable:
        logger.error("Error recording user activity for userId=%s", event.user_id)
        raise HTTPException(status_code=500, detail="Failed to record activity")


@router.get("/api/analytics/activity/user/{user_id}", response_model=List[ActivityEvent])
def user_activity(
    user_id: int,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    svc: AnalyticsService = Depends(get_analytics),
):
    try:
        return svc.list_activity(user_id, start_date, end_date)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailable:
        logger.error("Error fetching activity logs for userId=%s", user_id)
        raise HTTPException(status_code=500, detail="Failed to retrieve activity logs")


@router.get("/api/analytics/activity/type/{activity_type}", response_model=List[ActivityEvent])
def activity_by_type(activity_type: str, svc: AnalyticsService = Depends(get_analytics)):
    try:
        return svc.list_activity_by_type(activity_type)
    except StoreUnavailable:
        logger.error("Error fetching activity logs for type=%s", activity_type)
        raise HTTPException(status_code=500, detail="Failed to retrieve activity logs")


@router.get("/api/analytics/metrics/{metric_type}", response_model=List[MetricBucket])
def metrics_in_range(
    metric_type: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    svc: AnalyticsService = Depends(get_analytics),
):
    try:
        return svc.list_metrics(metric_type, start_date, end_date)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailable:
        logger.error("Error fetching analytics data for metricType=%s", metric_type)
        raise HTTPException(status_code=500, detail="Failed to retrieve analytics data")


@router.put("/api/analytics/metrics/{metric_type}/{day}", response_model=MetricBucket)
def put_metrics(
    metric_type: str,
    day: str,
    metrics: MetricsPayload,
    svc: AnalyticsService = Depends(get_analytics),
):
    try:
        return svc.upsert_metrics(metric_type, day, metrics.root)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailable:
        logger.error("Error updating metrics for type=%s date=%s", metric_type, day)
        raise HTTPException(status_code=500, detail="Failed to update metrics")


@router.post("/api/analytics/metrics/{metric_type}/{day}/samples", response_model=MetricBucket)
def post_sample(
    metric_type: str,
    day: str,
    sample: SampleIn,
    svc: AnalyticsService = Depends(get_analytics),
):
    try:
        return svc.record_sample(metric_type, day, sample.values, sample.timestamp)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailable:
        logger.error("Error recording sample for type=%s date=%s", metric_type, day)
        raise HTTPException(status_code=500, detail="Failed to record sample")


@router.get(
    "/api/expenses/summary",
    response_model=ExpenseSummary,
    response_model_exclude_none=True,
)
def expense_summary(
    user_id: Optional[str] = Query(None, alias="userId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    svc: ExpenseSummaryService = Depends(get_expenses),
):
    try:
        uid = None
        if user_id is not None:
            try:
                uid = int(user_id)
            except ValueError as e:
                raise ValidationFailure("userId must be an integer") from e
        return svc.get_expense_summary(uid, start_date, end_date)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailable:
        logger.error("Error calculating expense summary for userId=%s", user_id)
        raise HTTPException(status_code=500, detail="Failed to calculate expense summary")


def create_app(
    store: Optional[DocumentStore] = None,
    expense_repo: Optional[ExpenseRepo] = None,
) -> FastAPI:
    """Build the app. The lifespan owns the document store: it opens the
    connection on startup and closes it exactly once on shutdown.

    Tests pass a store backed by mongomock and a fake expense repo.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        doc_store = store or DocumentStore(
            settings.mongo_uri(),
            settings.mongo_database,
            timeout_ms=settings.mongo_timeout_ms,
        )
        doc_store.open()
        try:
            doc_store.ensure_indexes()
            app.state.analytics = AnalyticsService(
                doc_store, ActivityLogRepo(doc_store), MetricsRepo(doc_store)
            )
            app.state.expenses = ExpenseSummaryService(expense_repo or ExpenseRepo())
            yield
        finally:
            doc_store.close()

    app = FastAPI(title="Organizer Analytics Backend", lifespan=lifespan)
    app.include_router(router)
    return app


app = create_app()
