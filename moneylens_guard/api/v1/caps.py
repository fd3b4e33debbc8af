"""Spending caps and per-merchant overrides"""

from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from moneylens_guard.api.dependencies import get_context
from moneylens_guard.api.v1.schemas import CapCreateRequest, CapSchema, CapStatusSchema, OverrideRequest
from moneylens_guard.context import GuardContext

router = APIRouter()


@router.get("/caps", response_model=List[CapSchema])
async def list_caps(context: GuardContext = Depends(get_context)):
    return [CapSchema(**asdict(c)) for c in context.caps.caps]


@router.post("/caps", response_model=CapSchema, status_code=201)
async def create_cap(request_body: CapCreateRequest, context: GuardContext = Depends(get_context)):
    cap = context.caps.create(
        kind=request_body.kind,
        target=request_body.target,
        amount=request_body.amount,
        active=request_body.active,
    )
    return CapSchema(**asdict(cap))


@router.delete("/caps/{cap_id}", status_code=204)
async def delete_cap(cap_id: str, context: GuardContext = Depends(get_context)):
    if not any(c.id == cap_id for c in context.caps.caps):
        raise HTTPException(status_code=404, detail="Cap not found")
    context.caps.delete(cap_id)


@router.get("/caps/status", response_model=CapStatusSchema)
async def cap_status(merchant: str, category: str = "general", context: GuardContext = Depends(get_context)):
    return CapStatusSchema(**asdict(context.caps.status(merchant, category)))


@router.put("/caps/overrides/{merchant}", response_model=OverrideRequest)
async def set_override(merchant: str, request_body: OverrideRequest, context: GuardContext = Depends(get_context)):
    """Let one merchant bypass its cap until the override is cleared"""
    context.caps.set_override(merchant, request_body.enabled)
    return OverrideRequest(enabled=context.caps.has_override(merchant))
