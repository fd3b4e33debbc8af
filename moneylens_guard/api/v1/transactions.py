"""Transaction intake, merchant patterns and spending summary"""

import logging
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from moneylens_guard.api.dependencies import get_context, get_notification_client, get_request_id
from moneylens_guard.api.v1.schemas import (
    CapStatusSchema,
    PatternSchema,
    SummaryResponse,
    TransactionRequest,
    TransactionResponse,
)
from moneylens_guard.context import GuardContext
from moneylens_guard.domain.exceptions import (
    InvalidAmountError,
    InvalidTransactionDataError,
    SpendingCapExceededError,
)
from moneylens_guard.domain.models import Location, Transaction
from moneylens_guard.infrastructure.clients.notifications import NotificationWebhookClient

router = APIRouter()

SUMMARY_WINDOWS = {"7d": 7, "30d": 30, "90d": 90, "all": None}


def to_local_naive(moment: Optional[datetime], context: GuardContext) -> datetime:
    """The ledger works in local wall-clock time"""
    if moment is None:
        return context.clock()
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    request_body: TransactionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    context: GuardContext = Depends(get_context),
    notifier: NotificationWebhookClient = Depends(get_notification_client),
):
    """Record a purchase; rejected with 409 when its spending cap is already used up"""
    request_id = get_request_id(request)

    location = None
    if request_body.location is not None:
        location = Location(request_body.location.lat, request_body.location.lng, request_body.location.accuracy_meters)

    transaction = Transaction(
        id=request_body.id or str(uuid.uuid4()),
        amount=request_body.amount,
        merchant=request_body.merchant,
        category=request_body.category,
        timestamp=to_local_naive(request_body.timestamp, context),
        location=location,
    )

    try:
        status = context.submit_transaction(transaction)
    except SpendingCapExceededError as e:
        logging.warning(f"Cap exceeded: {e}", extra={"request_id": request_id})
        raise HTTPException(
            status_code=409,
            detail={"error": str(e), "cap_status": asdict(e.status)},
        )
    except (InvalidAmountError, InvalidTransactionDataError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    if notifier.pending:
        background_tasks.add_task(notifier.flush)

    return TransactionResponse(
        id=transaction.id,
        merchant=transaction.merchant,
        amount=transaction.amount,
        cap_status=CapStatusSchema(**asdict(status)),
    )


@router.get("/transactions/summary", response_model=SummaryResponse)
async def get_summary(
    window: str = Query("30d", description="7d, 30d, 90d or all"),
    context: GuardContext = Depends(get_context),
):
    if window not in SUMMARY_WINDOWS:
        raise HTTPException(status_code=400, detail="Invalid window")

    summary = context.ledger.summary(context.clock(), SUMMARY_WINDOWS[window])
    return SummaryResponse(window=window, **summary)


@router.get("/patterns", response_model=List[PatternSchema])
async def list_patterns(context: GuardContext = Depends(get_context)):
    """Per-merchant spending patterns, highest spend first"""
    patterns = sorted(context.aggregator.snapshot(), key=lambda p: p.total_spent, reverse=True)
    return [
        PatternSchema(
            merchant=p.merchant,
            total_spent=round(p.total_spent, 2),
            visit_count=p.visit_count,
            average_amount=round(p.average_amount, 2),
            last_visit=p.last_visit,
            risk_tier=p.risk_tier.value,
        )
        for p in patterns
    ]
