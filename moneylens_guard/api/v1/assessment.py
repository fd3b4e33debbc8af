"""POST /v1/assess - spending risk assessment endpoint"""

import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from moneylens_guard.api.dependencies import get_context, get_notification_client, get_request_id
from moneylens_guard.api.v1.schemas import AssessRequest, AssessResponse, RiskFactorSchema
from moneylens_guard.context import GuardContext
from moneylens_guard.domain.exceptions import InvalidAmountError
from moneylens_guard.domain.models import Location
from moneylens_guard.infrastructure.clients.notifications import NotificationWebhookClient
from moneylens_guard.infrastructure.observability.logging import log_assessment

router = APIRouter()


@router.post("/assess", response_model=AssessResponse)
async def assess_purchase(
    request_body: AssessRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    context: GuardContext = Depends(get_context),
    notifier: NotificationWebhookClient = Depends(get_notification_client),
):
    """
    Score a prospective purchase and return the gating decision.

    Flow:
    1. Combine amount, merchant history, location, time and frequency factors
    2. Raise the score if an anomaly was flagged for the merchant
    3. Notify (and forward to the webhook) when the action is not "allow"
    """
    start_time = time.time()
    request_id = get_request_id(request)

    location = None
    if request_body.location is not None:
        location = Location(
            request_body.location.lat,
            request_body.location.lng,
            request_body.location.accuracy_meters,
        )

    try:
        assessment = context.assess(
            request_body.amount,
            request_body.merchant,
            request_body.category,
            location,
        )
    except InvalidAmountError as e:
        logging.warning(f"Invalid amount: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    if notifier.pending:
        background_tasks.add_task(notifier.flush)

    duration_ms = (time.time() - start_time) * 1000
    log_assessment(
        request_id,
        request_body.merchant,
        request_body.amount,
        assessment.score,
        assessment.level.value,
        assessment.action.value,
        duration_ms,
    )

    return AssessResponse(
        score=assessment.score,
        level=assessment.level.value,
        action=assessment.action.value,
        recommendation=assessment.recommendation,
        factors=[
            RiskFactorSchema(
                category=f.category.value,
                severity=f.severity.value,
                message=f.message,
                weight=f.weight,
            )
            for f in assessment.factors
        ],
    )
