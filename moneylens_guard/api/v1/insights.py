"""Insights, predictions and notifications produced by the scans"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from moneylens_guard.api.dependencies import get_context, get_notification_client
from moneylens_guard.api.v1.schemas import InsightSchema, NotificationSchema, PredictionSchema, ScanRequest
from moneylens_guard.context import GuardContext
from moneylens_guard.domain.models import Insight
from moneylens_guard.infrastructure.clients.notifications import NotificationWebhookClient

router = APIRouter()


def insight_schema(insight: Insight) -> InsightSchema:
    return InsightSchema(
        id=insight.id,
        type=insight.type,
        title=insight.title,
        description=insight.description,
        severity=insight.severity.value,
        confidence=insight.confidence,
        timestamp=insight.timestamp,
        actionable=insight.actionable,
        suggested_action=insight.suggested_action,
    )


@router.get("/insights", response_model=List[InsightSchema])
async def list_insights(
    limit: int = Query(50, ge=1, le=500),
    context: GuardContext = Depends(get_context),
):
    """Most recent insights first"""
    return [insight_schema(i) for i in reversed(context.insights.insights[-limit:])]


@router.post("/insights/scan", response_model=List[InsightSchema])
async def run_scan(
    request_body: ScanRequest,
    background_tasks: BackgroundTasks,
    context: GuardContext = Depends(get_context),
    notifier: NotificationWebhookClient = Depends(get_notification_client),
):
    """Run a scan now instead of waiting for the scheduler"""
    if request_body.depth == "deep":
        new = context.run_deep_scan()
    else:
        new = context.run_shallow_scan()

    if notifier.pending:
        background_tasks.add_task(notifier.flush)

    return [insight_schema(i) for i in new]


@router.get("/predictions", response_model=List[PredictionSchema])
async def list_predictions(
    limit: int = Query(20, ge=1, le=500),
    context: GuardContext = Depends(get_context),
):
    return [
        PredictionSchema(
            type=p.type,
            value=p.value,
            confidence=p.confidence,
            timeframe=p.timeframe,
            factors=p.factors,
            timestamp=p.timestamp,
        )
        for p in reversed(list(context.insights.predictions)[-limit:])
    ]


@router.get("/notifications", response_model=List[NotificationSchema])
async def list_notifications(context: GuardContext = Depends(get_context)):
    """Last 50 notifications, newest first"""
    return [
        NotificationSchema(
            title=n.title,
            message=n.message,
            severity=n.severity.value,
            source=n.source,
            timestamp=n.timestamp,
        )
        for n in reversed(context.notifications.recent)
    ]
